from flask import Blueprint, request, jsonify, current_app
from purchases.purchase_bill_service import PurchaseBillService
from purchases.inventory_service import InventoryService
from src.validators import pagination_args
from user.jwt_middleware import tenant_required, current_tenant_id

bp = Blueprint("purchase_bills", __name__)


@bp.route("", methods=["POST"])
@tenant_required
def create_purchase_bill():
    payload = request.get_json(silent=True) or {}
    return jsonify(PurchaseBillService.create_bill(current_tenant_id(), payload)), 201


@bp.route("", methods=["GET"])
@tenant_required
def list_purchase_bills():
    limit, offset = pagination_args(
        request.args,
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )
    result = PurchaseBillService.list_bills(
        current_tenant_id(),
        status=request.args.get("status"),
        supplier_id=request.args.get("supplier_id"),
        limit=limit,
        offset=offset,
    )
    return jsonify(result), 200


@bp.route("/<int:bill_id>", methods=["GET"])
@tenant_required
def get_purchase_bill(bill_id):
    return jsonify(PurchaseBillService.get_bill_detail(current_tenant_id(), bill_id)), 200


@bp.route("/<int:bill_id>", methods=["PATCH"])
@tenant_required
def update_purchase_bill(bill_id):
    payload = request.get_json(silent=True) or {}
    return jsonify(PurchaseBillService.update_bill(current_tenant_id(), bill_id, payload)), 200


@bp.route("/<int:bill_id>", methods=["DELETE"])
@tenant_required
def delete_purchase_bill(bill_id):
    return jsonify(PurchaseBillService.delete_bill(current_tenant_id(), bill_id)), 200


@bp.route("/<int:bill_id>/record", methods=["POST"])
@tenant_required
def record_purchase_bill(bill_id):
    return jsonify(InventoryService.record_purchase_bill(current_tenant_id(), bill_id)), 200
