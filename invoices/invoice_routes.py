from flask import Blueprint, request, jsonify, send_file, current_app
from invoices.invoice_service import InvoiceService
from src.validators import clamp_int, pagination_args
from user.jwt_middleware import tenant_required, current_tenant_id
import pandas as pd
import io
from datetime import datetime

bp = Blueprint("invoices", __name__)

CSV_COLUMNS = ["Invoice Number", "Date", "Status", "Subtotal", "Tax", "Total", "Created At"]


@bp.route("", methods=["POST"])
@tenant_required
def create_invoice():
    payload = request.get_json(silent=True) or {}
    invoice = InvoiceService.create_invoice(current_tenant_id(), payload)
    return jsonify(invoice), 201


@bp.route("", methods=["GET"])
@tenant_required
def list_invoices():
    if (request.args.get("format") or "").lower() == "csv":
        return export_invoices_csv()
    limit, offset = pagination_args(
        request.args,
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )
    result = InvoiceService.list_invoices(
        current_tenant_id(),
        status=request.args.get("status"),
        customer_id=request.args.get("customer_id"),
        limit=limit,
        offset=offset,
    )
    return jsonify(result), 200


def export_invoices_csv():
    rows = InvoiceService.export_rows(current_tenant_id())
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    output = io.StringIO()
    df.to_csv(output, index=False)
    output.seek(0)

    filename = f"invoices_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    return send_file(
        io.BytesIO(output.getvalue().encode('utf-8')),
        mimetype='text/csv',
        as_attachment=True,
        download_name=filename
    )


@bp.route("/cleanup-drafts", methods=["POST"])
@tenant_required
def cleanup_drafts():
    payload = request.get_json(silent=True) or {}
    days = clamp_int(payload.get("days"), default=30, minimum=1, maximum=36500)
    return jsonify(InvoiceService.cleanup_drafts(current_tenant_id(), days)), 200


@bp.route("/<int:invoice_id>", methods=["GET"])
@tenant_required
def get_invoice(invoice_id):
    return jsonify(InvoiceService.get_invoice_detail(current_tenant_id(), invoice_id)), 200


@bp.route("/<int:invoice_id>", methods=["PATCH"])
@tenant_required
def update_invoice_status(invoice_id):
    payload = request.get_json(silent=True) or {}
    return jsonify(InvoiceService.update_invoice_status(current_tenant_id(), invoice_id, payload)), 200


@bp.route("/<int:invoice_id>", methods=["DELETE"])
@tenant_required
def delete_invoice(invoice_id):
    return jsonify(InvoiceService.delete_invoice(current_tenant_id(), invoice_id)), 200
