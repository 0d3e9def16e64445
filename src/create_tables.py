import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.extensions import db
# Import all model files
from tenants.tenant import Tenant
from user.user import User
from customers.customer import Customer
from suppliers.supplier import Supplier
from products.product import Product
from invoices.invoice import Invoice
from invoices.invoice_item import InvoiceItem
from payments.payment import Payment, PurchasePayment
from purchases.purchase_bill import PurchaseBill, PurchaseBillItem


def create_tables(drop=False):
    if drop:
        db.drop_all()
    db.create_all()
    print("All tables created successfully")


if __name__ == "__main__":
    from src.main import create_app
    app = create_app()
    with app.app_context():
        create_tables(drop="--drop" in sys.argv)
