"""
Amount parsing and validation.

All monetary values in the ledger are Decimal; user input (JSON numbers or
strings) is converted here and never routed through float.
"""

from decimal import Decimal, InvalidOperation

from .errors import ValidationError


def to_decimal(value, field_name: str = "amount") -> Decimal:
    """Coerce user input to Decimal, rejecting non-numeric values"""
    if isinstance(value, Decimal):
        result = value
    else:
        if value is None or isinstance(value, bool):
            raise ValidationError(f"Invalid {field_name}: {value!r}")
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"Invalid {field_name}: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"Invalid {field_name}: {value!r}")
    return result


def positive_amount(value, field_name: str = "amount") -> Decimal:
    """Decimal that must be strictly greater than zero"""
    amount = to_decimal(value, field_name)
    if amount <= 0:
        raise ValidationError(f"{field_name.capitalize()} must be greater than zero")
    return amount
