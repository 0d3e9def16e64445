from datetime import date
from decimal import Decimal
from src.extensions import db
from tenants.tenant import Tenant
from tenants.numbering_service import NumberingService
from invoices.invoice import Invoice


def test_peek_formats_prefix_and_padding(tenant):
    assert NumberingService.peek(tenant, "invoice") == ("INV-0001", 1)
    assert NumberingService.peek(tenant, "purchase_bill") == ("PB-0001", 1)


def test_peek_falls_back_for_blank_prefix_and_bad_counter(tenant):
    tenant.invoice_prefix = "   "
    tenant.invoice_next_number = 0
    db.session.commit()
    assert NumberingService.peek(tenant, "invoice") == ("INV-0001", 1)


def test_format_number_does_not_truncate_large_counters():
    assert NumberingService.format_number("INV-", 12345) == "INV-12345"


def test_advance_never_moves_counter_backwards(tenant):
    assert NumberingService.advance(tenant.id, "invoice", 4) is True
    db.session.commit()
    # a slower writer that used counter 2 must not rewind it
    assert NumberingService.advance(tenant.id, "invoice", 2) is False
    db.session.commit()
    assert db.session.get(Tenant, tenant.id).invoice_next_number == 5


def test_sequential_invoices_get_sequential_numbers(make_invoice, tenant):
    first = make_invoice([{"description": "Labour", "quantity": 1, "unit_price": 10}])
    second = make_invoice([{"description": "Labour", "quantity": 1, "unit_price": 10}])
    assert first["invoice_number"] == "INV-0001"
    assert second["invoice_number"] == "INV-0002"
    assert db.session.get(Tenant, tenant.id).invoice_next_number == 3


def test_number_taken_by_concurrent_writer_is_bumped(make_invoice, tenant, customer):
    # another request inserted INV-0001 but has not advanced the counter yet
    db.session.add(Invoice(
        tenant_id=tenant.id, customer_id=customer.id, invoice_number="INV-0001",
        invoice_date=date(2024, 5, 1), status="draft", subtotal=Decimal("0"),
        tax_amount=Decimal("0"), total=Decimal("0"),
    ))
    db.session.commit()

    created = make_invoice([{"description": "Labour", "quantity": 1, "unit_price": 10}])
    assert created["invoice_number"] == "INV-0002"
    assert db.session.get(Tenant, tenant.id).invoice_next_number == 3


def test_numbers_are_scoped_per_tenant(make_invoice, other_tenant):
    from customers.customer import Customer
    from invoices.invoice_service import InvoiceService

    make_invoice([{"description": "Labour", "quantity": 1, "unit_price": 10}])
    other_customer = Customer(tenant_id=other_tenant.id, name="Elsewhere")
    db.session.add(other_customer)
    db.session.commit()
    created = InvoiceService.create_invoice(other_tenant.id, {
        "customer_id": other_customer.id,
        "invoice_date": "2024-05-10",
        "items": [{"description": "Labour", "quantity": 1, "unit_price": 10}],
    })
    assert created["invoice_number"] == "INV-0001"
