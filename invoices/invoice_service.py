import logging
from datetime import datetime, timedelta
from src.extensions import db
from src.exceptions import ConflictException, ResourceNotFoundException, ValidationException
from src.money import round_money, to_decimal, to_number
from src.saga import Saga
from src.validators import parse_date, parse_choice, parse_id, parse_quantity, parse_non_negative
from invoices.invoice import Invoice
from invoices.invoice_item import InvoiceItem
from invoices.tax_service import TaxService
from customers.customer import Customer
from products.product import Product
from tenants.tenant import Tenant
from tenants.numbering_service import NumberingService
from payments.payment import payment_to_dict

logger = logging.getLogger(__name__)

INVOICE_STATUSES = ("draft", "sent", "paid")

# Allowed status changes through PATCH
STATUS_TRANSITIONS = {
    "draft": ("sent",),
    "sent": ("paid",),
    "paid": (),
}

CSV_EXPORT_LIMIT = 2000


def invoice_to_dict(invoice):
    return {
        "id": invoice.id,
        "customer_id": invoice.customer_id,
        "invoice_number": invoice.invoice_number,
        "invoice_date": invoice.invoice_date.isoformat() if invoice.invoice_date else None,
        "status": invoice.status,
        "subtotal": to_number(invoice.subtotal),
        "tax_percent": to_number(invoice.tax_percent),
        "tax_amount": to_number(invoice.tax_amount),
        "total": to_number(invoice.total),
        "amount_paid": to_number(invoice.amount_paid),
        "balance": to_number(to_decimal(invoice.total) - to_decimal(invoice.amount_paid)),
        "gst_type": invoice.gst_type,
        "notes": invoice.notes,
        "created_at": invoice.created_at.isoformat() if invoice.created_at else None,
    }


def invoice_item_to_dict(item):
    return {
        "id": item.id,
        "product_id": item.product_id,
        "description": item.description,
        "quantity": float(item.quantity),
        "unit_price": to_number(item.unit_price),
        "amount": to_number(item.amount),
        "cost_price": to_number(item.cost_price),
        "cost_amount": to_number(item.cost_amount),
        "tax_percent": to_number(item.tax_percent),
        "gst_type": item.gst_type,
        "cgst_amount": to_number(item.cgst_amount),
        "sgst_amount": to_number(item.sgst_amount),
        "igst_amount": to_number(item.igst_amount),
        "hsn_sac_code": item.hsn_sac_code,
    }


class InvoiceService:
    @staticmethod
    def _get_invoice(tenant_id, invoice_id):
        invoice = Invoice.query.filter_by(id=invoice_id, tenant_id=tenant_id).first()
        if not invoice:
            raise ResourceNotFoundException("Invoice not found")
        return invoice

    @staticmethod
    def _prepare_lines(tenant_id, raw_items, gst_type, tenant_tax_percent):
        """
        Validate every input line and compute its amounts. Nothing is written
        here, so a bad line rejects the whole invoice up front.
        """
        lines = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise ValidationException(f"items[{index}] must be an object")
            label = f"items[{index}]"
            quantity = parse_quantity(raw.get("quantity"), f"{label}.quantity")
            description = str(raw.get("description") or "").strip()

            product = None
            if raw.get("product_id") not in (None, ""):
                product_id = parse_id(raw.get("product_id"), f"{label}.product_id")
                product = Product.query.filter_by(id=product_id, tenant_id=tenant_id).first()
                if not product:
                    raise ResourceNotFoundException(f"{label}: product {product_id} not found")

            if raw.get("unit_price") not in (None, ""):
                unit_price = parse_non_negative(raw.get("unit_price"), f"{label}.unit_price")
            elif product is not None:
                unit_price = to_decimal(product.price)
            else:
                raise ValidationException(f"{label}.unit_price is required")

            if not description and product is not None:
                description = product.name
            if not description:
                raise ValidationException(f"{label}.description is required")

            tax_percent = TaxService.resolve_tax_percent(
                product.tax_percent if product is not None else None, tenant_tax_percent
            )
            tax = TaxService.split_line(quantity, unit_price, tax_percent, gst_type)
            cost_price = round_money(product.last_purchase_price) if product is not None else round_money(0)
            hsn = None
            if product is not None and product.hsn_sac_code:
                hsn = str(product.hsn_sac_code).strip()[:20] or None

            lines.append({
                "product_id": product.id if product is not None else None,
                "description": description[:500],
                "quantity": quantity,
                "unit_price": round_money(unit_price),
                "cost_price": cost_price,
                "cost_amount": round_money(quantity * cost_price),
                "tax_percent": tax_percent,
                "gst_type": gst_type,
                "tax": tax,
                "hsn_sac_code": hsn,
            })
        return lines

    @staticmethod
    def _insert_item(invoice_id, line):
        tax = line["tax"]
        item = InvoiceItem(
            invoice_id=invoice_id,
            product_id=line["product_id"],
            description=line["description"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            amount=tax.amount,
            cost_price=line["cost_price"],
            cost_amount=line["cost_amount"],
            tax_percent=line["tax_percent"],
            gst_type=line["gst_type"],
            cgst_amount=tax.cgst,
            sgst_amount=tax.sgst,
            igst_amount=tax.igst,
            hsn_sac_code=line["hsn_sac_code"],
        )
        db.session.add(item)
        db.session.commit()
        return item.id

    @staticmethod
    def _delete_invoice_row(invoice_id):
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is not None:
            # items go with it through the relationship cascade
            db.session.delete(invoice)

    @staticmethod
    def create_invoice(tenant_id, payload):
        """
        Create an invoice with its items.

        payload: {customer_id, invoice_date, status?, gst_type?, notes?,
                  items: [{product_id?, description?, quantity, unit_price?}]}

        The header, the items and the counter advance are separate commits
        run as a saga. If an item insert fails the header is deleted again;
        if that delete also fails a PartialFailureException is raised and the
        invoice must be cleaned up by hand.
        """
        customer_id = parse_id(payload.get("customer_id"), "customer_id")
        invoice_date = parse_date(payload.get("invoice_date"), "invoice_date")
        status = parse_choice(payload.get("status"), "status", INVOICE_STATUSES, default="draft")
        raw_items = payload.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationException("items array is required and non-empty")

        customer = Customer.query.filter_by(id=customer_id, tenant_id=tenant_id).first()
        if not customer:
            raise ResourceNotFoundException("Customer not found or does not belong to your shop")

        tenant = db.session.get(Tenant, tenant_id)
        if not tenant:
            raise ResourceNotFoundException("Tenant not found")
        gst_type = TaxService.normalize_gst_type(payload.get("gst_type"))
        lines = InvoiceService._prepare_lines(tenant_id, raw_items, gst_type, tenant.tax_percent)
        totals = TaxService.summarize([line["tax"] for line in lines], tenant.tax_percent)
        notes = payload.get("notes")

        state = {}

        def build_invoice(number):
            return Invoice(
                tenant_id=tenant_id,
                customer_id=customer_id,
                invoice_number=number,
                invoice_date=invoice_date,
                status=status,
                subtotal=totals.subtotal,
                tax_percent=totals.tax_percent,
                tax_amount=totals.tax_amount,
                total=totals.total,
                amount_paid=0,
                gst_type=gst_type,
                notes=notes,
            )

        def insert_invoice():
            invoice, counter = NumberingService.insert_numbered(
                tenant_id, "invoice", Invoice, "invoice_number", build_invoice
            )
            state["invoice_id"] = invoice.id
            state["counter"] = counter
            return invoice.id

        def undo_invoice():
            InvoiceService._delete_invoice_row(state["invoice_id"])

        def insert_items():
            return [InvoiceService._insert_item(state["invoice_id"], line) for line in lines]

        def advance_counter():
            return NumberingService.advance(tenant_id, "invoice", state["counter"])

        (
            Saga("create_invoice")
            .step("invoice", insert_invoice, undo_invoice)
            .step("items", insert_items)
            .step("counter", advance_counter)
            .run()
        )

        invoice = db.session.get(Invoice, state["invoice_id"])
        logger.info("Tenant %s: created invoice %s (%s)", tenant_id, invoice.invoice_number, invoice.id)
        data = invoice_to_dict(invoice)
        data["items"] = [invoice_item_to_dict(i) for i in invoice.items]
        return data

    @staticmethod
    def _filtered_query(tenant_id, status=None, customer_id=None):
        query = Invoice.query.filter(Invoice.tenant_id == tenant_id)
        if status:
            query = query.filter(Invoice.status == str(status).strip().lower())
        if customer_id not in (None, ""):
            query = query.filter(Invoice.customer_id == parse_id(customer_id, "customer_id"))
        return query

    @staticmethod
    def list_invoices(tenant_id, status=None, customer_id=None, limit=50, offset=0):
        query = InvoiceService._filtered_query(tenant_id, status, customer_id)
        total = query.count()
        rows = (
            query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        data = []
        for invoice in rows:
            row = invoice_to_dict(invoice)
            row["customer_name"] = invoice.customer.name if invoice.customer else None
            data.append(row)
        return {"data": data, "total": total}

    @staticmethod
    def export_rows(tenant_id):
        """Rows for the CSV export, newest first."""
        rows = (
            Invoice.query.filter_by(tenant_id=tenant_id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .limit(CSV_EXPORT_LIMIT)
            .all()
        )
        return [{
            "Invoice Number": r.invoice_number,
            "Date": r.invoice_date.isoformat() if r.invoice_date else "",
            "Status": r.status,
            "Subtotal": to_number(r.subtotal),
            "Tax": to_number(r.tax_amount),
            "Total": to_number(r.total),
            "Created At": r.created_at.strftime('%Y-%m-%d %H:%M:%S') if r.created_at else "",
        } for r in rows]

    @staticmethod
    def get_invoice_detail(tenant_id, invoice_id):
        invoice = InvoiceService._get_invoice(tenant_id, invoice_id)
        data = invoice_to_dict(invoice)
        data["customer"] = invoice.customer.to_summary() if invoice.customer else None
        data["items"] = [invoice_item_to_dict(i) for i in invoice.items]
        data["payments"] = [payment_to_dict(p) for p in invoice.payments]
        return data

    @staticmethod
    def update_invoice_status(tenant_id, invoice_id, payload):
        """Only the status moves after creation: draft -> sent -> paid."""
        invoice = InvoiceService._get_invoice(tenant_id, invoice_id)
        new_status = parse_choice(payload.get("status"), "status", INVOICE_STATUSES)
        if new_status not in STATUS_TRANSITIONS[invoice.status]:
            raise ConflictException(f"Cannot change invoice status from {invoice.status} to {new_status}")

        old_status = invoice.status
        updated = (
            Invoice.query
            .filter(Invoice.id == invoice.id, Invoice.status == old_status)
            .update({Invoice.status: new_status}, synchronize_session=False)
        )
        if not updated:
            db.session.rollback()
            raise ConflictException("Invoice was changed by another request")
        db.session.commit()
        db.session.refresh(invoice)
        logger.info("Tenant %s: invoice %s %s -> %s", tenant_id, invoice.id, old_status, new_status)
        return invoice_to_dict(invoice)

    @staticmethod
    def delete_invoice(tenant_id, invoice_id):
        invoice = InvoiceService._get_invoice(tenant_id, invoice_id)
        if invoice.status != "draft":
            raise ConflictException("Only draft invoices can be deleted")
        db.session.delete(invoice)
        db.session.commit()
        logger.info("Tenant %s: deleted draft invoice %s", tenant_id, invoice_id)
        return {"message": "Invoice deleted"}

    @staticmethod
    def cleanup_drafts(tenant_id, days=30):
        """Delete draft invoices created more than `days` days ago."""
        cutoff = datetime.utcnow() - timedelta(days=days)
        drafts = Invoice.query.filter(
            Invoice.tenant_id == tenant_id,
            Invoice.status == "draft",
            Invoice.created_at < cutoff,
        ).all()
        for invoice in drafts:
            db.session.delete(invoice)
        db.session.commit()
        logger.info("Tenant %s: removed %s stale draft invoices", tenant_id, len(drafts))
        return {"deleted": len(drafts), "cutoff": cutoff.isoformat()}
