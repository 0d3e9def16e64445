from datetime import datetime
from src.extensions import db

class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)

    # Shop display name and URL slug
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)

    currency_code = db.Column(db.String(10), default="INR")
    currency_symbol = db.Column(db.String(10), default="₹")

    # Default tax percent when a product has no override
    tax_percent = db.Column(db.Numeric(5, 2), nullable=True)

    # Document numbering (only NumberingService writes the counters)
    invoice_prefix = db.Column(db.String(20), default="INV-")
    invoice_next_number = db.Column(db.Integer, nullable=False, default=1)
    purchase_bill_prefix = db.Column(db.String(20), default="PB-")
    purchase_bill_next_number = db.Column(db.Integer, nullable=False, default=1)

    # Printed on invoices
    invoice_notes = db.Column(db.Text, nullable=True)
    invoice_terms = db.Column(db.Text, nullable=True)
    page_size = db.Column(db.String(10), default="A4")
    logo_path = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
