import logging
from datetime import date
from src.extensions import db
from src.exceptions import ConflictException, ResourceNotFoundException
from src.money import round_money, sum_money, to_decimal, to_number
from src.validators import parse_choice, parse_optional_date, parse_positive
from payments.payment import Payment, PurchasePayment, payment_to_dict
from invoices.invoice import Invoice
from purchases.purchase_bill import PurchaseBill

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cash", "upi", "bank_transfer")


class PaymentService:
    """
    Records and removes payments and keeps the parent's amount_paid (and,
    for invoices, status) equal to what the full payment set says.

    The balance check and the insert are two separate statements. Two
    payments racing on the same document can both pass the check, so after
    every insert the parent is recomputed and an over-allocation undoes the
    new payment.
    """

    @staticmethod
    def _parse_payment(payload):
        amount = parse_positive(payload.get("amount"), "amount")
        method = parse_choice(payload.get("payment_method"), "payment_method", PAYMENT_METHODS)
        reference = str(payload.get("reference") or "").strip() or None
        # an unusable paid_at means "today"
        paid_at = parse_optional_date(payload.get("paid_at"), default=date.today())
        return amount, method, reference, paid_at

    @staticmethod
    def _outstanding_balance(total, amount_paid):
        return round_money(to_decimal(total) - to_decimal(amount_paid))

    # ---- recompute -------------------------------------------------------

    @staticmethod
    def recompute_invoice(invoice_id):
        """amount_paid = sum of all payments; status = paid if covered, else sent."""
        invoice = db.session.get(Invoice, invoice_id)
        if not invoice:
            raise ResourceNotFoundException("Invoice not found")
        amounts = [p.amount for p in Payment.query.filter_by(invoice_id=invoice_id).all()]
        amount_paid = sum_money(amounts)
        status = "paid" if amount_paid >= round_money(invoice.total) else "sent"
        Invoice.query.filter_by(id=invoice_id).update(
            {Invoice.amount_paid: amount_paid, Invoice.status: status},
            synchronize_session=False,
        )
        db.session.commit()
        db.session.refresh(invoice)
        return {"amount_paid": amount_paid, "status": status, "total": round_money(invoice.total)}

    @staticmethod
    def recompute_bill(bill_id):
        """amount_paid = sum of all payments. Bill status is not touched."""
        bill = db.session.get(PurchaseBill, bill_id)
        if not bill:
            raise ResourceNotFoundException("Purchase bill not found")
        amounts = [p.amount for p in PurchasePayment.query.filter_by(purchase_bill_id=bill_id).all()]
        amount_paid = sum_money(amounts)
        PurchaseBill.query.filter_by(id=bill_id).update(
            {PurchaseBill.amount_paid: amount_paid},
            synchronize_session=False,
        )
        db.session.commit()
        db.session.refresh(bill)
        return {"amount_paid": amount_paid, "status": bill.status, "total": round_money(bill.total)}

    # ---- invoices --------------------------------------------------------

    @staticmethod
    def record_invoice_payment(tenant_id, invoice_id, payload):
        amount, method, reference, paid_at = PaymentService._parse_payment(payload)
        invoice = Invoice.query.filter_by(id=invoice_id, tenant_id=tenant_id).first()
        if not invoice:
            raise ResourceNotFoundException("Invoice not found")

        balance = PaymentService._outstanding_balance(invoice.total, invoice.amount_paid)
        if amount > balance:
            raise ConflictException(f"Amount exceeds balance due ({balance})")

        payment = Payment(
            tenant_id=tenant_id,
            invoice_id=invoice.id,
            amount=round_money(amount),
            payment_method=method,
            reference=reference,
            paid_at=paid_at,
        )
        db.session.add(payment)
        db.session.commit()
        payment_id = payment.id

        result = PaymentService.recompute_invoice(invoice.id)
        if result["amount_paid"] > result["total"]:
            logger.warning(
                "Invoice %s over-allocated by concurrent payments (%s > %s); removing payment %s",
                invoice.id, result["amount_paid"], result["total"], payment_id,
            )
            Payment.query.filter_by(id=payment_id).delete(synchronize_session=False)
            db.session.commit()
            PaymentService.recompute_invoice(invoice.id)
            raise ConflictException("Amount exceeds balance due (another payment was recorded concurrently)")

        logger.info("Tenant %s: payment %s of %s on invoice %s", tenant_id, payment_id, payment.amount, invoice.id)
        data = payment_to_dict(payment)
        data["invoice_id"] = invoice.id
        data["invoice_status"] = result["status"]
        data["invoice_amount_paid"] = to_number(result["amount_paid"])
        return data

    @staticmethod
    def delete_invoice_payment(tenant_id, invoice_id, payment_id):
        payment = Payment.query.filter_by(
            id=payment_id, invoice_id=invoice_id, tenant_id=tenant_id
        ).first()
        if not payment:
            raise ResourceNotFoundException("Payment not found")
        db.session.delete(payment)
        db.session.commit()
        result = PaymentService.recompute_invoice(invoice_id)
        logger.info("Tenant %s: removed payment %s from invoice %s", tenant_id, payment_id, invoice_id)
        return {"amount_paid": to_number(result["amount_paid"]), "status": result["status"]}

    # ---- purchase bills --------------------------------------------------

    @staticmethod
    def record_bill_payment(tenant_id, bill_id, payload):
        amount, method, reference, paid_at = PaymentService._parse_payment(payload)
        bill = PurchaseBill.query.filter_by(id=bill_id, tenant_id=tenant_id).first()
        if not bill:
            raise ResourceNotFoundException("Purchase bill not found")

        balance = PaymentService._outstanding_balance(bill.total, bill.amount_paid)
        if amount > balance:
            raise ConflictException(f"Amount exceeds balance due ({balance})")

        payment = PurchasePayment(
            tenant_id=tenant_id,
            purchase_bill_id=bill.id,
            amount=round_money(amount),
            payment_method=method,
            reference=reference,
            paid_at=paid_at,
        )
        db.session.add(payment)
        db.session.commit()
        payment_id = payment.id

        result = PaymentService.recompute_bill(bill.id)
        if result["amount_paid"] > result["total"]:
            logger.warning(
                "Purchase bill %s over-allocated by concurrent payments (%s > %s); removing payment %s",
                bill.id, result["amount_paid"], result["total"], payment_id,
            )
            PurchasePayment.query.filter_by(id=payment_id).delete(synchronize_session=False)
            db.session.commit()
            PaymentService.recompute_bill(bill.id)
            raise ConflictException("Amount exceeds balance due (another payment was recorded concurrently)")

        logger.info("Tenant %s: payment %s of %s on purchase bill %s", tenant_id, payment_id, payment.amount, bill.id)
        data = payment_to_dict(payment)
        data["purchase_bill_id"] = bill.id
        data["bill_amount_paid"] = to_number(result["amount_paid"])
        return data

    @staticmethod
    def delete_bill_payment(tenant_id, bill_id, payment_id):
        payment = PurchasePayment.query.filter_by(
            id=payment_id, purchase_bill_id=bill_id, tenant_id=tenant_id
        ).first()
        if not payment:
            raise ResourceNotFoundException("Payment not found")
        db.session.delete(payment)
        db.session.commit()
        result = PaymentService.recompute_bill(bill_id)
        logger.info("Tenant %s: removed payment %s from purchase bill %s", tenant_id, payment_id, bill_id)
        return {"amount_paid": to_number(result["amount_paid"])}
