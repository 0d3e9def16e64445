from flask import Blueprint, jsonify
from reports.report_service import ReportService
from user.jwt_middleware import tenant_required, current_tenant_id

bp = Blueprint("suppliers", __name__)


@bp.route("/<int:supplier_id>/ledger", methods=["GET"])
@tenant_required
def supplier_ledger(supplier_id):
    return jsonify(ReportService.supplier_ledger(current_tenant_id(), supplier_id)), 200
