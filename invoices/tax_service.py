from collections import namedtuple
from decimal import Decimal
from src.money import round_money, to_decimal

LineTax = namedtuple("LineTax", ["amount", "tax", "cgst", "sgst", "igst"])
DocumentTotals = namedtuple("DocumentTotals", ["subtotal", "tax_amount", "total", "tax_percent"])

GST_INTRA = "intra"
GST_INTER = "inter"


class TaxService:
    @staticmethod
    def normalize_gst_type(value):
        """'inter' (any case) is cross-state; everything else is same-state."""
        if isinstance(value, str) and value.strip().lower() == GST_INTER:
            return GST_INTER
        return GST_INTRA

    @staticmethod
    def resolve_tax_percent(product_tax_percent, tenant_tax_percent):
        if product_tax_percent is not None:
            return to_decimal(product_tax_percent)
        if tenant_tax_percent is not None:
            return to_decimal(tenant_tax_percent)
        return Decimal("0")

    @staticmethod
    def split_line(quantity, unit_price, tax_percent, gst_type):
        """
        Compute one line's amount and its tax split.

        Same-state (intra): CGST gets the rounded half, SGST the remainder, so
        cgst + sgst always equals the line tax exactly.
        Cross-state (inter): the whole tax is IGST.
        """
        amount = round_money(to_decimal(quantity) * to_decimal(unit_price))
        tax = round_money(amount * to_decimal(tax_percent) / Decimal("100"))
        zero = Decimal("0.00")
        if TaxService.normalize_gst_type(gst_type) == GST_INTER:
            return LineTax(amount, tax, zero, zero, tax)
        cgst = round_money(tax / 2)
        sgst = round_money(tax - cgst)
        return LineTax(amount, tax, cgst, sgst, zero)

    @staticmethod
    def summarize(lines, tenant_tax_percent=None):
        """Document totals from already split lines."""
        subtotal = round_money(sum((line.amount for line in lines), Decimal("0")))
        tax_amount = round_money(
            sum((line.cgst + line.sgst + line.igst for line in lines), Decimal("0"))
        )
        total = round_money(subtotal + tax_amount)
        if subtotal > 0:
            tax_percent = round_money(tax_amount / subtotal * 100)
        else:
            tax_percent = round_money(tenant_tax_percent or 0)
        return DocumentTotals(subtotal, tax_amount, total, tax_percent)
