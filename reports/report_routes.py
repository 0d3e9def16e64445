from flask import Blueprint, request, jsonify
from reports.report_service import ReportService
from user.jwt_middleware import tenant_required, current_tenant_id

bp = Blueprint("reports", __name__)


@bp.route("/sales-summary", methods=["GET"])
@tenant_required
def sales_summary():
    start, end = ReportService.resolve_period(request.args)
    return jsonify(ReportService.sales_summary(current_tenant_id(), start, end)), 200


@bp.route("/invoice-summary", methods=["GET"])
@tenant_required
def invoice_summary():
    return jsonify(ReportService.invoice_summary(current_tenant_id())), 200


@bp.route("/outstanding", methods=["GET"])
@tenant_required
def outstanding():
    return jsonify(ReportService.outstanding(current_tenant_id())), 200


@bp.route("/tax-summary", methods=["GET"])
@tenant_required
def tax_summary():
    start, end = ReportService.resolve_period(request.args)
    return jsonify(ReportService.tax_summary(current_tenant_id(), start, end)), 200


@bp.route("/revenue-trend", methods=["GET"])
@tenant_required
def revenue_trend():
    return jsonify(ReportService.revenue_trend(current_tenant_id(), request.args.get("months"))), 200


@bp.route("/top-products", methods=["GET"])
@tenant_required
def top_products():
    start, end = ReportService.optional_period(request.args)
    return jsonify(ReportService.top_products(current_tenant_id(), start, end)), 200


@bp.route("/top-customers", methods=["GET"])
@tenant_required
def top_customers():
    start, end = ReportService.optional_period(request.args)
    return jsonify(ReportService.top_customers(current_tenant_id(), start, end)), 200


@bp.route("/product-profit", methods=["GET"])
@tenant_required
def product_profit():
    start, end = ReportService.resolve_period(request.args)
    return jsonify(ReportService.product_profit(current_tenant_id(), start, end)), 200


@bp.route("/pnl", methods=["GET"])
@tenant_required
def pnl():
    start, end = ReportService.resolve_period(request.args, allow_month_fy=True)
    return jsonify(ReportService.pnl(current_tenant_id(), start, end)), 200


@bp.route("/pnl-cash", methods=["GET"])
@tenant_required
def pnl_cash():
    start, end = ReportService.resolve_period(request.args, allow_month_fy=True)
    return jsonify(ReportService.pnl_cash(current_tenant_id(), start, end)), 200
