from datetime import date
from decimal import Decimal
import pytest
from src.extensions import db
from src.exceptions import ConflictException, ResourceNotFoundException, ValidationException
from invoices.invoice import Invoice
from payments.payment import Payment, PurchasePayment
from payments.payment_service import PaymentService
from purchases.purchase_bill import PurchaseBill
from purchases.purchase_bill_service import PurchaseBillService


@pytest.fixture
def invoice_1000(make_invoice, untaxed_product):
    created = make_invoice([{"product_id": untaxed_product.id, "quantity": 1}], status="sent")
    assert created["total"] == 1000.0
    return created


def pay(tenant, invoice, amount, **extra):
    payload = {"amount": amount, "payment_method": "cash"}
    payload.update(extra)
    return PaymentService.record_invoice_payment(tenant.id, invoice["id"], payload)


def test_payment_above_balance_is_rejected_and_exact_balance_pays(tenant, invoice_1000):
    pay(tenant, invoice_1000, "800")
    with pytest.raises(ConflictException) as exc:
        pay(tenant, invoice_1000, "250")
    assert "200.00" in exc.value.message
    assert Payment.query.count() == 1

    result = pay(tenant, invoice_1000, "200.00", payment_method="upi")
    assert result["invoice_status"] == "paid"
    invoice = db.session.get(Invoice, invoice_1000["id"])
    assert invoice.amount_paid == Decimal("1000.00")
    assert invoice.status == "paid"


def test_partial_payment_on_draft_moves_it_to_sent(make_invoice, tenant, untaxed_product):
    draft = make_invoice([{"product_id": untaxed_product.id, "quantity": 1}], status="draft")
    result = pay(tenant, draft, 100)
    assert result["invoice_status"] == "sent"


def test_recompute_is_idempotent(tenant, invoice_1000):
    pay(tenant, invoice_1000, "333.33")
    first = PaymentService.recompute_invoice(invoice_1000["id"])
    second = PaymentService.recompute_invoice(invoice_1000["id"])
    assert first == second
    assert first["amount_paid"] == Decimal("333.33")
    assert first["status"] == "sent"


def test_deleting_the_only_payment_reverts_to_sent(tenant, invoice_1000):
    payment = pay(tenant, invoice_1000, "1000")
    assert payment["invoice_status"] == "paid"
    result = PaymentService.delete_invoice_payment(tenant.id, invoice_1000["id"], payment["id"])
    assert result == {"amount_paid": 0.0, "status": "sent"}
    invoice = db.session.get(Invoice, invoice_1000["id"])
    assert invoice.amount_paid == Decimal("0.00")
    assert invoice.status == "sent"


def test_delete_payment_must_belong_to_invoice_and_tenant(tenant, other_tenant, invoice_1000, make_invoice, untaxed_product):
    payment = pay(tenant, invoice_1000, "10")
    other_invoice = make_invoice([{"product_id": untaxed_product.id, "quantity": 1}])
    with pytest.raises(ResourceNotFoundException):
        PaymentService.delete_invoice_payment(tenant.id, other_invoice["id"], payment["id"])
    with pytest.raises(ResourceNotFoundException):
        PaymentService.delete_invoice_payment(other_tenant.id, invoice_1000["id"], payment["id"])
    assert Payment.query.count() == 1


@pytest.mark.parametrize("payload", [
    {"amount": 0, "payment_method": "cash"},
    {"amount": "-5", "payment_method": "cash"},
    {"amount": "abc", "payment_method": "cash"},
    {"amount": 10, "payment_method": "cheque"},
])
def test_payment_validation(tenant, invoice_1000, payload):
    with pytest.raises(ValidationException):
        PaymentService.record_invoice_payment(tenant.id, invoice_1000["id"], payload)


def test_invalid_paid_at_defaults_to_today(tenant, invoice_1000):
    result = pay(tenant, invoice_1000, 10, paid_at="yesterday-ish")
    assert result["paid_at"] == date.today().isoformat()
    result = pay(tenant, invoice_1000, 10, paid_at="2024-02-29")
    assert result["paid_at"] == "2024-02-29"


def test_payment_amount_is_rounded(tenant, invoice_1000):
    result = pay(tenant, invoice_1000, "10.005")
    assert result["amount"] == 10.01


def test_concurrent_payment_over_allocation_is_undone(tenant, invoice_1000, monkeypatch):
    pay(tenant, invoice_1000, "800")
    # both writers read the balance before either inserted
    monkeypatch.setattr(
        PaymentService, "_outstanding_balance",
        staticmethod(lambda total, amount_paid: Decimal("1000.00")),
    )
    with pytest.raises(ConflictException):
        pay(tenant, invoice_1000, "250")

    invoice = db.session.get(Invoice, invoice_1000["id"])
    assert Payment.query.count() == 1
    assert invoice.amount_paid == Decimal("800.00")
    assert invoice.status == "sent"


@pytest.fixture
def bill(tenant, supplier, product_a):
    return PurchaseBillService.create_bill(tenant.id, {
        "supplier_id": supplier.id,
        "bill_date": "2024-05-02",
        "items": [{"product_id": product_a.id, "quantity": 10, "purchase_price": "50"}],
    })


def test_bill_payments_update_amount_paid_only(tenant, bill):
    result = PaymentService.record_bill_payment(tenant.id, bill["id"], {
        "amount": "200", "payment_method": "bank_transfer", "reference": "NEFT-1",
    })
    assert result["bill_amount_paid"] == 200.0
    stored = db.session.get(PurchaseBill, bill["id"])
    assert stored.amount_paid == Decimal("200.00")
    assert stored.status == "draft"

    with pytest.raises(ConflictException):
        PaymentService.record_bill_payment(tenant.id, bill["id"], {"amount": "300.01", "payment_method": "cash"})

    PaymentService.delete_bill_payment(tenant.id, bill["id"], result["id"])
    assert db.session.get(PurchaseBill, bill["id"]).amount_paid == Decimal("0.00")
    assert PurchasePayment.query.count() == 0
