import calendar
import re
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from src.exceptions import ResourceNotFoundException, ValidationException
from src.money import round_money, sum_money, to_decimal, to_number
from src.validators import parse_date, clamp_int
from invoices.invoice import Invoice
from invoices.invoice_item import InvoiceItem
from customers.customer import Customer
from products.product import Product
from purchases.purchase_bill import PurchaseBill
from payments.payment import Payment, PurchasePayment
from suppliers.supplier import Supplier

MONTH_RE = re.compile(r"^\d{4}-\d{2}$")
FY_RE = re.compile(r"^\d{4}-\d{4}$")

REVENUE_STATUSES = ("sent", "paid")
NO_CUSTOMER = "—"


def month_bounds(year, month):
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def percent(part, whole):
    whole = round_money(whole)
    if whole <= 0:
        return Decimal("0.00")
    return round_money(to_decimal(part) / whole * 100)


class ReportService:
    """Read-only aggregates over one tenant's invoices, bills and payments."""

    # ---- periods ---------------------------------------------------------

    @staticmethod
    def resolve_period(args, allow_month_fy=False, today=None):
        """
        (from, to) dates from query args. from/to default to the current
        calendar month one side at a time; with allow_month_fy, `month=YYYY-MM`
        or `fy=YYYY-YYYY` (1 April to 31 March) take precedence.
        """
        today = today or date.today()
        raw_from = str(args.get("from") or "").strip()
        raw_to = str(args.get("to") or "").strip()
        month = str(args.get("month") or "").strip()
        fy = str(args.get("fy") or "").strip()

        start = parse_date(raw_from, "from") if raw_from else None
        end = parse_date(raw_to, "to") if raw_to else None

        if allow_month_fy and MONTH_RE.match(month) and 1 <= int(month[5:]) <= 12:
            start, end = month_bounds(int(month[:4]), int(month[5:]))
        elif allow_month_fy and FY_RE.match(fy):
            start_year = int(fy[:4])
            start, end = date(start_year, 4, 1), date(start_year + 1, 3, 31)

        default_start, default_end = month_bounds(today.year, today.month)
        start = start or default_start
        end = end or default_end
        ReportService._check_order(start, end)
        return start, end

    @staticmethod
    def optional_period(args):
        """from/to filters that stay open when omitted."""
        raw_from = str(args.get("from") or "").strip()
        raw_to = str(args.get("to") or "").strip()
        start = parse_date(raw_from, "from") if raw_from else None
        end = parse_date(raw_to, "to") if raw_to else None
        if start and end:
            ReportService._check_order(start, end)
        return start, end

    @staticmethod
    def _check_order(start, end):
        if start > end:
            raise ValidationException("from must be before or equal to to")

    @staticmethod
    def _invoices(tenant_id, statuses, start=None, end=None):
        query = Invoice.query.filter(Invoice.tenant_id == tenant_id, Invoice.status.in_(statuses))
        if start:
            query = query.filter(Invoice.invoice_date >= start)
        if end:
            query = query.filter(Invoice.invoice_date <= end)
        return query.all()

    @staticmethod
    def _items_for(invoice_ids):
        if not invoice_ids:
            return []
        return InvoiceItem.query.filter(InvoiceItem.invoice_id.in_(invoice_ids)).order_by(InvoiceItem.id).all()

    @staticmethod
    def _group_items(tenant_id, items):
        """
        Group invoice lines by product id, or by 'adhoc:<first 50 chars of
        description>' for lines without a product.
        """
        groups = OrderedDict()
        for item in items:
            key = item.product_id if item.product_id else f"adhoc:{(item.description or '')[:50]}"
            group = groups.setdefault(key, {
                "product_id": item.product_id,
                "description": item.description or "",
                "quantity": Decimal("0"),
                "sales": Decimal("0"),
                "cost": Decimal("0"),
            })
            group["quantity"] += to_decimal(item.quantity)
            group["sales"] += to_decimal(item.amount)
            group["cost"] += to_decimal(item.cost_amount)

        product_ids = [g["product_id"] for g in groups.values() if g["product_id"]]
        names = {}
        if product_ids:
            names = {
                p.id: p.name for p in Product.query.filter(
                    Product.tenant_id == tenant_id, Product.id.in_(product_ids)
                )
            }
        for group in groups.values():
            if group["product_id"]:
                group["name"] = names.get(group["product_id"]) or group["description"]
            else:
                group["name"] = group["description"] or "Ad-hoc"
        return list(groups.values())

    # ---- sales -----------------------------------------------------------

    @staticmethod
    def sales_summary(tenant_id, start, end):
        invoices = ReportService._invoices(tenant_id, ("paid",), start, end)
        return {
            "total_revenue": to_number(sum_money(i.total for i in invoices)),
            "invoice_count": len(invoices),
            "from": start.isoformat(),
            "to": end.isoformat(),
        }

    @staticmethod
    def invoice_summary(tenant_id):
        summary = OrderedDict((s, {"count": 0, "total": Decimal("0")}) for s in ("draft", "sent", "paid"))
        for invoice in Invoice.query.filter_by(tenant_id=tenant_id).all():
            bucket = summary.get(invoice.status)
            if bucket is None:
                continue
            bucket["count"] += 1
            bucket["total"] += to_decimal(invoice.total)
        return {status: {"count": b["count"], "total": to_number(b["total"])} for status, b in summary.items()}

    @staticmethod
    def outstanding(tenant_id):
        invoices = (
            Invoice.query.filter_by(tenant_id=tenant_id, status="sent")
            .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
            .all()
        )
        customer_ids = {i.customer_id for i in invoices if i.customer_id}
        names = {}
        if customer_ids:
            names = {
                c.id: c.name for c in Customer.query.filter(
                    Customer.tenant_id == tenant_id, Customer.id.in_(customer_ids)
                )
            }
        return {
            "total_due": to_number(sum_money(i.total for i in invoices)),
            "invoices": [{
                "id": i.id,
                "invoice_number": i.invoice_number,
                "invoice_date": i.invoice_date.isoformat() if i.invoice_date else None,
                "customer_name": names.get(i.customer_id) or NO_CUSTOMER,
                "total": to_number(i.total),
                "amount_paid": to_number(i.amount_paid),
                "balance": to_number(to_decimal(i.total) - to_decimal(i.amount_paid)),
            } for i in invoices],
        }

    @staticmethod
    def tax_summary(tenant_id, start, end):
        invoices = ReportService._invoices(tenant_id, REVENUE_STATUSES, start, end)
        month_of = {i.id: i.invoice_date.strftime("%Y-%m") for i in invoices}
        by_month = {}
        totals = {"cgst": Decimal("0"), "sgst": Decimal("0"), "igst": Decimal("0")}
        for item in ReportService._items_for(list(month_of)):
            row = by_month.setdefault(month_of[item.invoice_id], {
                "cgst": Decimal("0"), "sgst": Decimal("0"), "igst": Decimal("0"),
            })
            for key, value in (("cgst", item.cgst_amount), ("sgst", item.sgst_amount), ("igst", item.igst_amount)):
                row[key] += to_decimal(value)
                totals[key] += to_decimal(value)

        def render(values):
            return {
                "cgst": to_number(values["cgst"]),
                "sgst": to_number(values["sgst"]),
                "igst": to_number(values["igst"]),
                "total_tax": to_number(values["cgst"] + values["sgst"] + values["igst"]),
            }

        return {
            "period": {"from": start.isoformat(), "to": end.isoformat()},
            "by_month": [dict(month=m, **render(by_month[m])) for m in sorted(by_month)],
            "totals": render(totals),
            "invoice_count": len(invoices),
        }

    @staticmethod
    def revenue_trend(tenant_id, months=None, today=None):
        months = clamp_int(months, default=6, minimum=1, maximum=24)
        today = today or date.today()
        buckets = OrderedDict()
        for offset in range(months - 1, -1, -1):
            year, month = shift_month(today.year, today.month, -offset)
            buckets[f"{year:04d}-{month:02d}"] = Decimal("0")

        for invoice in Invoice.query.filter_by(tenant_id=tenant_id, status="paid").all():
            key = invoice.invoice_date.strftime("%Y-%m")
            if key in buckets:
                buckets[key] += to_decimal(invoice.total)
        return {
            "data": [{"month": k, "revenue": to_number(v)} for k, v in buckets.items()],
            "months": months,
        }

    @staticmethod
    def top_products(tenant_id, start=None, end=None):
        invoices = ReportService._invoices(tenant_id, ("paid",), start, end)
        groups = ReportService._group_items(tenant_id, ReportService._items_for([i.id for i in invoices]))
        data = [{
            "product_id": g["product_id"],
            "product_name": g["name"],
            "quantity": to_number(g["quantity"]),
            "revenue": to_number(g["sales"]),
        } for g in groups]
        data.sort(key=lambda row: row["revenue"], reverse=True)
        return {
            "data": data,
            "from": start.isoformat() if start else None,
            "to": end.isoformat() if end else None,
        }

    @staticmethod
    def top_customers(tenant_id, start=None, end=None):
        invoices = ReportService._invoices(tenant_id, ("paid",), start, end)
        by_customer = OrderedDict()
        for invoice in invoices:
            if not invoice.customer_id:
                continue
            entry = by_customer.setdefault(invoice.customer_id, {"invoice_count": 0, "total_paid": Decimal("0")})
            entry["invoice_count"] += 1
            entry["total_paid"] += to_decimal(invoice.total)

        names = {}
        if by_customer:
            names = {
                c.id: c.name for c in Customer.query.filter(
                    Customer.tenant_id == tenant_id, Customer.id.in_(list(by_customer))
                )
            }
        data = [{
            "customer_id": cid,
            "customer_name": names.get(cid) or NO_CUSTOMER,
            "invoice_count": entry["invoice_count"],
            "total_paid": to_number(entry["total_paid"]),
        } for cid, entry in by_customer.items()]
        data.sort(key=lambda row: row["total_paid"], reverse=True)
        return {
            "data": data,
            "from": start.isoformat() if start else None,
            "to": end.isoformat() if end else None,
        }

    # ---- profitability ---------------------------------------------------

    @staticmethod
    def product_profit(tenant_id, start, end):
        invoices = ReportService._invoices(tenant_id, REVENUE_STATUSES, start, end)
        groups = ReportService._group_items(tenant_id, ReportService._items_for([i.id for i in invoices]))
        data = []
        for g in groups:
            sales = round_money(g["sales"])
            cost = round_money(g["cost"])
            data.append({
                "product_id": g["product_id"],
                "product_name": g["name"],
                "quantity_sold": to_number(g["quantity"]),
                "sales": to_number(sales),
                "cost": to_number(cost),
                "profit": to_number(sales - cost),
            })
        data.sort(key=lambda row: row["profit"], reverse=True)
        return {"data": data, "from": start.isoformat(), "to": end.isoformat()}

    @staticmethod
    def pnl(tenant_id, start, end):
        """
        Accrual view: sent and paid invoices dated in range. Sales are the
        invoice totals; purchases of recorded bills are reported next to them
        but do not enter gross profit (cost comes from the invoice line
        snapshots).
        """
        invoices = ReportService._invoices(tenant_id, REVENUE_STATUSES, start, end)
        items = ReportService._items_for([i.id for i in invoices])
        total_sales = sum_money(i.total for i in invoices)
        total_cost = sum_money(item.cost_amount for item in items)

        bills = PurchaseBill.query.filter(
            PurchaseBill.tenant_id == tenant_id,
            PurchaseBill.status == "recorded",
            PurchaseBill.bill_date >= start,
            PurchaseBill.bill_date <= end,
        ).all()
        total_purchases = sum_money(b.total for b in bills)
        gross_profit = round_money(total_sales - total_cost)
        return {
            "from": start.isoformat(),
            "to": end.isoformat(),
            "total_sales": to_number(total_sales),
            "total_purchases": to_number(total_purchases),
            "total_cost": to_number(total_cost),
            "gross_profit": to_number(gross_profit),
            "profit_percent": to_number(percent(gross_profit, total_sales)),
        }

    @staticmethod
    def pnl_cash(tenant_id, start, end):
        """
        Cash view: money that actually moved in range (by paid_at). Revenue
        and cost belong to the invoices that received a payment in range.
        """
        incoming = Payment.query.filter(
            Payment.tenant_id == tenant_id, Payment.paid_at >= start, Payment.paid_at <= end
        ).all()
        outgoing = PurchasePayment.query.filter(
            PurchasePayment.tenant_id == tenant_id,
            PurchasePayment.paid_at >= start,
            PurchasePayment.paid_at <= end,
        ).all()
        cash_in = sum_money(p.amount for p in incoming)
        cash_out = sum_money(p.amount for p in outgoing)

        invoice_ids = sorted({p.invoice_id for p in incoming})
        revenue = Decimal("0.00")
        total_cost = Decimal("0.00")
        if invoice_ids:
            revenue = sum_money(
                i.subtotal for i in Invoice.query.filter(
                    Invoice.tenant_id == tenant_id, Invoice.id.in_(invoice_ids)
                )
            )
            total_cost = sum_money(item.cost_amount for item in ReportService._items_for(invoice_ids))
        gross_profit = round_money(revenue - total_cost)
        return {
            "from": start.isoformat(),
            "to": end.isoformat(),
            "cash_in": to_number(cash_in),
            "cash_out": to_number(cash_out),
            "revenue": to_number(revenue),
            "total_cost": to_number(total_cost),
            "net_cash_flow": to_number(cash_in - cash_out),
            "gross_profit": to_number(gross_profit),
            "profit_percent": to_number(percent(gross_profit, revenue)),
        }

    # ---- suppliers -------------------------------------------------------

    @staticmethod
    def supplier_ledger(tenant_id, supplier_id):
        """Payables for one supplier; only recorded bills count toward totals."""
        supplier = Supplier.query.filter_by(id=supplier_id, tenant_id=tenant_id).first()
        if not supplier:
            raise ResourceNotFoundException("Supplier not found")
        bills = (
            PurchaseBill.query.filter_by(tenant_id=tenant_id, supplier_id=supplier.id)
            .order_by(PurchaseBill.bill_date.desc(), PurchaseBill.id.desc())
            .all()
        )
        recorded = [b for b in bills if b.status == "recorded"]
        total_purchases = sum_money(b.total for b in recorded)
        total_paid = sum_money(b.amount_paid for b in recorded)
        return {
            "supplier": {"id": supplier.id, "name": supplier.name},
            "total_purchases": to_number(total_purchases),
            "total_paid": to_number(total_paid),
            "balance_payable": to_number(total_purchases - total_paid),
            "bills": [{
                "id": b.id,
                "bill_number": b.bill_number,
                "bill_date": b.bill_date.isoformat() if b.bill_date else None,
                "status": b.status,
                "total": to_number(b.total),
                "amount_paid": to_number(b.amount_paid),
                "balance": to_number(to_decimal(b.total) - to_decimal(b.amount_paid)),
            } for b in bills],
        }
