from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from src.exceptions import ValidationException
from src.money import CENT


def parse_date(value, field):
    """Parse a required YYYY-MM-DD value (a trailing time part is ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValidationException(f"{field} is required")
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationException(f"{field} must be a valid date")


def parse_optional_date(value, default=None):
    """Lenient date parsing: anything unparsable falls back to default."""
    if value in (None, ""):
        return default
    try:
        return parse_date(value, "date")
    except ValidationException:
        return default


def parse_decimal(value, field):
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationException(f"{field} is required")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationException(f"{field} must be a number")
    if not number.is_finite():
        raise ValidationException(f"{field} must be a number")
    return number


def parse_positive(value, field):
    number = parse_decimal(value, field)
    if number <= 0:
        raise ValidationException(f"{field} must be > 0")
    return number


def parse_non_negative(value, field):
    number = parse_decimal(value, field)
    if number < 0:
        raise ValidationException(f"{field} must be >= 0")
    return number


def parse_quantity(value, field):
    """A positive quantity with at most two decimal places, the stored scale."""
    number = parse_positive(value, field)
    try:
        scaled = number.quantize(CENT)
    except InvalidOperation:
        raise ValidationException(f"{field} is too large")
    if number != scaled:
        raise ValidationException(f"{field} must have at most 2 decimal places")
    return scaled


def parse_id(value, field):
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationException(f"{field} is required")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationException(f"{field} must be an integer id")


def parse_choice(value, field, choices, default=None):
    text = str(value if value not in (None, "") else (default or "")).strip().lower()
    if text not in choices:
        raise ValidationException(f"{field} must be one of: {', '.join(choices)}")
    return text


def clamp_int(value, default, minimum, maximum):
    """int() with a fallback; 0 and garbage both mean 'use the default'."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        number = 0
    if not number:
        number = default
    return max(minimum, min(maximum, number))


def pagination_args(args, default_limit=50, max_limit=100):
    try:
        limit = int(args.get("limit") or default_limit)
    except (TypeError, ValueError):
        limit = default_limit
    try:
        offset = int(args.get("offset") or 0)
    except (TypeError, ValueError):
        offset = 0
    return max(0, min(limit, max_limit)), max(0, offset)
