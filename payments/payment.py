from datetime import datetime
from src.extensions import db
from src.money import to_number


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)  # cash / upi / bank_transfer
    reference = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    invoice = db.relationship("Invoice", back_populates="payments")


class PurchasePayment(db.Model):
    __tablename__ = "purchase_payments"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    purchase_bill_id = db.Column(db.Integer, db.ForeignKey("purchase_bills.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    reference = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    purchase_bill = db.relationship("PurchaseBill", back_populates="payments")


def payment_to_dict(payment):
    return {
        "id": payment.id,
        "amount": to_number(payment.amount),
        "payment_method": payment.payment_method,
        "reference": payment.reference,
        "paid_at": payment.paid_at.isoformat() if payment.paid_at else None,
        "created_at": payment.created_at.isoformat() if payment.created_at else None,
    }
