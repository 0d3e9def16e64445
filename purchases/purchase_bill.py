from datetime import datetime
from src.extensions import db

class PurchaseBill(db.Model):
    __tablename__ = "purchase_bills"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "bill_number", name="uq_purchase_bills_tenant_number"),
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    bill_number = db.Column(db.String(100), nullable=False)
    bill_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="draft")  # draft / recorded
    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    items = db.relationship(
        "PurchaseBillItem", back_populates="purchase_bill", cascade="all, delete-orphan",
        order_by="PurchaseBillItem.id",
    )
    payments = db.relationship(
        "PurchasePayment", back_populates="purchase_bill", cascade="all, delete-orphan",
        order_by="PurchasePayment.id",
    )


class PurchaseBillItem(db.Model):
    __tablename__ = "purchase_bill_items"

    id = db.Column(db.Integer, primary_key=True)
    purchase_bill_id = db.Column(db.Integer, db.ForeignKey("purchase_bills.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    purchase_price = db.Column(db.Numeric(12, 2), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    purchase_bill = db.relationship("PurchaseBill", back_populates="items")
    product = db.relationship("Product")
