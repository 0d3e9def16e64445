from decimal import Decimal
import pytest
from src.config import TestConfig
from src.extensions import db
from src.main import create_app
from tenants.tenant import Tenant
from user.user import User
from user.jwt_utils import generate_access_token
from customers.customer import Customer
from suppliers.supplier import Supplier
from products.product import Product


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tenant(app):
    shop = Tenant(name="Test Shop", slug="test-shop", tax_percent=Decimal("18"))
    db.session.add(shop)
    db.session.commit()
    return shop


@pytest.fixture
def other_tenant(app):
    shop = Tenant(name="Other Shop", slug="other-shop", tax_percent=Decimal("5"))
    db.session.add(shop)
    db.session.commit()
    return shop


@pytest.fixture
def user(tenant):
    u = User(auth_id="auth-user-1", email="owner@example.com", tenant_id=tenant.id)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def auth_headers(user):
    token = generate_access_token(user.auth_id, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer(tenant):
    c = Customer(tenant_id=tenant.id, name="Asha Traders", email="asha@example.com")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def supplier(tenant):
    s = Supplier(tenant_id=tenant.id, name="Wholesale Co")
    db.session.add(s)
    db.session.commit()
    return s


def make_product(tenant_id, name, price="0", tax_percent=None, last_purchase_price=None, hsn=None):
    product = Product(
        tenant_id=tenant_id,
        name=name,
        price=Decimal(price),
        tax_percent=Decimal(tax_percent) if tax_percent is not None else None,
        last_purchase_price=Decimal(last_purchase_price) if last_purchase_price is not None else None,
        hsn_sac_code=hsn,
        stock_quantity=Decimal("0"),
    )
    db.session.add(product)
    db.session.commit()
    return product


@pytest.fixture
def product_a(tenant):
    return make_product(tenant.id, "Widget A", price="100.00", last_purchase_price="60.00", hsn="8471")


@pytest.fixture
def product_b(tenant):
    return make_product(tenant.id, "Widget B", price="50.00", tax_percent="5")


@pytest.fixture
def untaxed_product(tenant):
    return make_product(tenant.id, "Service Plan", price="1000.00", tax_percent="0", last_purchase_price="400.00")


@pytest.fixture
def make_invoice(tenant, customer):
    """Create an invoice through the composer; returns the response dict."""
    from invoices.invoice_service import InvoiceService

    def _make(items, status="sent", invoice_date="2024-05-10", gst_type="intra", customer_id=None):
        return InvoiceService.create_invoice(tenant.id, {
            "customer_id": customer_id or customer.id,
            "invoice_date": invoice_date,
            "status": status,
            "gst_type": gst_type,
            "items": items,
        })
    return _make
