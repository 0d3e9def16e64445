from flask import Blueprint, request, jsonify
from payments.payment_service import PaymentService
from user.jwt_middleware import tenant_required, current_tenant_id

# Payments live under their parent document's URL
invoice_payments_bp = Blueprint("invoice_payments", __name__)
bill_payments_bp = Blueprint("purchase_bill_payments", __name__)


@invoice_payments_bp.route("/<int:invoice_id>/payments", methods=["POST"])
@tenant_required
def record_invoice_payment(invoice_id):
    payload = request.get_json(silent=True) or {}
    return jsonify(PaymentService.record_invoice_payment(current_tenant_id(), invoice_id, payload)), 201


@invoice_payments_bp.route("/<int:invoice_id>/payments/<int:payment_id>", methods=["DELETE"])
@tenant_required
def delete_invoice_payment(invoice_id, payment_id):
    return jsonify(PaymentService.delete_invoice_payment(current_tenant_id(), invoice_id, payment_id)), 200


@bill_payments_bp.route("/<int:bill_id>/payments", methods=["POST"])
@tenant_required
def record_bill_payment(bill_id):
    payload = request.get_json(silent=True) or {}
    return jsonify(PaymentService.record_bill_payment(current_tenant_id(), bill_id, payload)), 201


@bill_payments_bp.route("/<int:bill_id>/payments/<int:payment_id>", methods=["DELETE"])
@tenant_required
def delete_bill_payment(bill_id, payment_id):
    return jsonify(PaymentService.delete_bill_payment(current_tenant_id(), bill_id, payment_id)), 200
