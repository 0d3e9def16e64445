from datetime import datetime
from src.extensions import db

class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Product Name
    name = db.Column(db.String(255), nullable=False)

    # Selling price, used when an invoice line gives none
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Overrides the shop's default tax percent when set
    tax_percent = db.Column(db.Numeric(5, 2), nullable=True)

    # HSN / SAC classification code
    hsn_sac_code = db.Column(db.String(20), nullable=True)

    # Stock and cost; written only when a purchase bill is recorded
    stock_quantity = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    last_purchase_price = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)
