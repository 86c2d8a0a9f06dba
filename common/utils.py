import uuid
from decimal import ROUND_HALF_UP, Decimal

from rest_framework.exceptions import ValidationError

MONEY_QUANT = Decimal("0.01")


def to_money(value):
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def parse_uuid(value):
    if not value:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def require_uuid(value, *, field, label):
    """Parse an identifier coming from a URL or payload, rejecting malformed ones."""
    parsed = parse_uuid(value)
    if parsed is None:
        raise ValidationError({field: f"Invalid {label} ID format."})
    return parsed
