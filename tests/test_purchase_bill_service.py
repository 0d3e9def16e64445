from decimal import Decimal
import pytest
from src.extensions import db
from src.exceptions import ConflictException, ResourceNotFoundException, StoreException, ValidationException
from purchases.purchase_bill import PurchaseBill, PurchaseBillItem
from purchases.purchase_bill_service import PurchaseBillService
from purchases.inventory_service import InventoryService
from tenants.tenant import Tenant
from conftest import make_product


def bill_payload(supplier, items, **extra):
    payload = {"supplier_id": supplier.id, "bill_date": "2024-06-01", "items": items}
    payload.update(extra)
    return payload


def test_blank_bill_number_is_auto_assigned(tenant, supplier, product_a):
    items = [{"product_id": product_a.id, "quantity": 2, "purchase_price": "10.255"}]
    first = PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, items))
    second = PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, items, bill_number="  "))
    assert first["bill_number"] == "PB-0001"
    assert second["bill_number"] == "PB-0002"
    assert db.session.get(Tenant, tenant.id).purchase_bill_next_number == 3
    assert first["status"] == "draft"
    assert first["subtotal"] == first["total"] == 20.51


def test_explicit_duplicate_bill_number_conflicts(tenant, supplier, product_a):
    items = [{"product_id": product_a.id, "quantity": 1, "purchase_price": 5}]
    PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, items, bill_number="SUP-77"))
    with pytest.raises(ConflictException):
        PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, items, bill_number="SUP-77"))
    assert PurchaseBill.query.count() == 1
    # explicit numbers leave the counter alone
    assert db.session.get(Tenant, tenant.id).purchase_bill_next_number == 1


def test_products_must_belong_to_tenant(tenant, other_tenant, supplier):
    foreign = make_product(other_tenant.id, "Foreign")
    with pytest.raises(ResourceNotFoundException):
        PurchaseBillService.create_bill(tenant.id, bill_payload(
            supplier, [{"product_id": foreign.id, "quantity": 1, "purchase_price": 1}]
        ))
    assert PurchaseBill.query.count() == 0


@pytest.mark.parametrize("item", [
    {"quantity": 1, "purchase_price": 1},
    {"product_id": 1, "quantity": 0, "purchase_price": 1},
    {"product_id": 1, "quantity": 1, "purchase_price": -1},
])
def test_item_validation(tenant, supplier, item):
    with pytest.raises(ValidationException):
        PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, [item]))


def test_edit_replaces_items_and_totals(tenant, supplier, product_a, product_b):
    created = PurchaseBillService.create_bill(tenant.id, bill_payload(
        supplier, [{"product_id": product_a.id, "quantity": 1, "purchase_price": 5}]
    ))
    updated = PurchaseBillService.update_bill(tenant.id, created["id"], bill_payload(
        supplier,
        [
            {"product_id": product_a.id, "quantity": 2, "purchase_price": 7},
            {"product_id": product_b.id, "quantity": 3, "purchase_price": 1.5},
        ],
        bill_number="SUP-1",
        bill_date="2024-06-15",
    ))
    assert updated["bill_number"] == "SUP-1"
    assert updated["bill_date"] == "2024-06-15"
    assert updated["total"] == 18.5
    assert [i["amount"] for i in updated["items"]] == [14.0, 4.5]
    assert PurchaseBillItem.query.filter_by(purchase_bill_id=created["id"]).count() == 2


def test_edit_requires_bill_number(tenant, supplier, product_a):
    created = PurchaseBillService.create_bill(tenant.id, bill_payload(
        supplier, [{"product_id": product_a.id, "quantity": 1, "purchase_price": 5}]
    ))
    with pytest.raises(ValidationException):
        PurchaseBillService.update_bill(tenant.id, created["id"], bill_payload(
            supplier, [{"product_id": product_a.id, "quantity": 1, "purchase_price": 5}]
        ))


def test_failed_edit_restores_previous_bill(tenant, supplier, product_a, product_b, monkeypatch):
    created = PurchaseBillService.create_bill(tenant.id, bill_payload(
        supplier, [{"product_id": product_a.id, "quantity": 4, "purchase_price": 5}], bill_number="OLD-1"
    ))

    def broken_insert(bill_id, lines):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(PurchaseBillService, "_insert_items", staticmethod(broken_insert))
    with pytest.raises(StoreException):
        PurchaseBillService.update_bill(tenant.id, created["id"], bill_payload(
            supplier, [{"product_id": product_b.id, "quantity": 1, "purchase_price": 1}], bill_number="NEW-1"
        ))

    db.session.expire_all()
    bill = db.session.get(PurchaseBill, created["id"])
    assert bill.bill_number == "OLD-1"
    assert bill.total == Decimal("20.00")
    assert [(i.product_id, i.quantity) for i in bill.items] == [(product_a.id, Decimal("4.00"))]


def test_edit_failing_midway_through_new_items_leaves_only_old_items(
    tenant, supplier, product_a, product_b, monkeypatch
):
    created = PurchaseBillService.create_bill(tenant.id, bill_payload(
        supplier, [{"product_id": product_a.id, "quantity": 4, "purchase_price": 5}], bill_number="OLD-1"
    ))
    new_product_id = product_b.id
    real_add = db.session.add
    new_rows = []

    def failing_add(obj, *args, **kwargs):
        if isinstance(obj, PurchaseBillItem) and obj.product_id == new_product_id:
            new_rows.append(obj)
            if len(new_rows) == 2:
                raise RuntimeError("store unavailable")
        return real_add(obj, *args, **kwargs)

    monkeypatch.setattr(db.session, "add", failing_add)
    with pytest.raises(StoreException):
        PurchaseBillService.update_bill(tenant.id, created["id"], bill_payload(supplier, [
            {"product_id": new_product_id, "quantity": 1, "purchase_price": 1},
            {"product_id": new_product_id, "quantity": 2, "purchase_price": 1},
        ], bill_number="NEW-1"))
    monkeypatch.undo()

    assert len(new_rows) == 2
    db.session.expire_all()
    bill = db.session.get(PurchaseBill, created["id"])
    assert bill.bill_number == "OLD-1"
    assert bill.total == Decimal("20.00")
    assert [(i.product_id, i.quantity) for i in bill.items] == [(product_a.id, Decimal("4.00"))]
    assert PurchaseBillItem.query.filter_by(product_id=new_product_id).count() == 0


def test_recorded_bill_cannot_be_edited_or_deleted(tenant, supplier, product_a):
    created = PurchaseBillService.create_bill(tenant.id, bill_payload(
        supplier, [{"product_id": product_a.id, "quantity": 1, "purchase_price": 5}]
    ))
    InventoryService.record_purchase_bill(tenant.id, created["id"])
    with pytest.raises(ConflictException):
        PurchaseBillService.update_bill(tenant.id, created["id"], bill_payload(
            supplier, [{"product_id": product_a.id, "quantity": 9, "purchase_price": 5}], bill_number="X"
        ))
    with pytest.raises(ConflictException):
        PurchaseBillService.delete_bill(tenant.id, created["id"])


def test_draft_bill_delete_removes_items(tenant, supplier, product_a):
    created = PurchaseBillService.create_bill(tenant.id, bill_payload(
        supplier, [{"product_id": product_a.id, "quantity": 1, "purchase_price": 5}]
    ))
    PurchaseBillService.delete_bill(tenant.id, created["id"])
    assert PurchaseBill.query.count() == 0
    assert PurchaseBillItem.query.count() == 0


def test_list_bills_filters_and_pages(tenant, other_tenant, supplier, product_a):
    items = [{"product_id": product_a.id, "quantity": 1, "purchase_price": 40}]
    older = PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, items, bill_date="2024-05-01"))
    newer = PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, items, bill_date="2024-06-15"))
    InventoryService.record_purchase_bill(tenant.id, older["id"])

    listed = PurchaseBillService.list_bills(tenant.id)
    assert listed["total"] == 2
    assert [row["id"] for row in listed["data"]] == [newer["id"], older["id"]]
    assert listed["data"][0]["supplier"]["name"] == "Wholesale Co"

    drafts = PurchaseBillService.list_bills(tenant.id, status="draft")
    assert [row["id"] for row in drafts["data"]] == [newer["id"]]
    paged = PurchaseBillService.list_bills(tenant.id, limit=1, offset=1)
    assert paged["total"] == 2
    assert [row["id"] for row in paged["data"]] == [older["id"]]
    assert PurchaseBillService.list_bills(other_tenant.id)["total"] == 0


def test_bill_detail_carries_items_and_balance(tenant, other_tenant, supplier, product_a):
    items = [{"product_id": product_a.id, "quantity": 3, "purchase_price": "12.50"}]
    bill = PurchaseBillService.create_bill(tenant.id, bill_payload(supplier, items))

    detail = PurchaseBillService.get_bill_detail(tenant.id, bill["id"])
    assert detail["supplier"]["id"] == supplier.id
    assert [i["amount"] for i in detail["items"]] == [37.5]
    assert detail["payments"] == []
    assert detail["balance"] == 37.5
    with pytest.raises(ResourceNotFoundException):
        PurchaseBillService.get_bill_detail(other_tenant.id, bill["id"])


def test_bill_quantity_beyond_two_decimals_is_rejected(tenant, supplier, product_a):
    with pytest.raises(ValidationException):
        PurchaseBillService.create_bill(tenant.id, bill_payload(
            supplier, [{"product_id": product_a.id, "quantity": "2.333", "purchase_price": 10}]
        ))
    assert PurchaseBill.query.count() == 0
