from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value):
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary float expansion
    return Decimal(str(value))


def round_money(value):
    """Round to 2 places, halves away from zero (1.005 -> 1.01, -1.005 -> -1.01)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(values):
    total = Decimal("0")
    for v in values:
        total += to_decimal(v)
    return round_money(total)


def to_number(value):
    """JSON-friendly number for an amount; always rounded first."""
    return float(round_money(value))
