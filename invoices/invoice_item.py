from datetime import datetime
from src.extensions import db
from sqlalchemy.orm import relationship

class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)  # null for ad-hoc lines
    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)  # round(quantity * unit_price)

    # Cost snapshot from product.last_purchase_price at creation
    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cost_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    tax_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    gst_type = db.Column(db.String(10), nullable=False, default="intra")
    cgst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sgst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    igst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    hsn_sac_code = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    invoice = relationship("Invoice", back_populates="items")
    product = relationship("Product")
