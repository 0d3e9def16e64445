from datetime import datetime
from src.extensions import db
from sqlalchemy.orm import relationship

class Invoice(db.Model):
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    invoice_number = db.Column(db.String(50), nullable=False)
    invoice_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="draft")  # draft / sent / paid

    # Totals are fixed at creation: total = subtotal + tax_amount
    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    tax_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # effective, display only
    tax_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # Derived from payments by PaymentService
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    gst_type = db.Column(db.String(10), nullable=False, default="intra")  # intra / inter
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    items = relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    payments = relationship(
        "Payment", back_populates="invoice", cascade="all, delete-orphan",
        order_by="Payment.id",
    )
