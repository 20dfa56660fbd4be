from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

from stockledger.errors import ValidationError
from stockledger.time_utils import parse_iso_date, today


# Maximum money amount: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON/form input.

    Rejects bools, floats, decimals in strings and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    result = coerce_int(value, field)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return result


def optional_int(
    value: Any,
    field: str,
    *,
    default: int | None = None,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    if value is None:
        return default
    return require_int(value, field, minimum=minimum, maximum=maximum)


def require_amount_cents(value: Any, field: str, *, allow_zero: bool = False) -> int:
    """Money in cents; zero only when explicitly allowed."""
    return require_int(value, field, minimum=0 if allow_zero else 1, maximum=MAX_AMOUNT_CENTS)


def coerce_enum(enum_cls, value: Any, field: str, *, default=None):
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"{field} must be one of: {allowed}")


def coerce_date(value: Any, field: str, *, default_today: bool = True) -> date | None:
    if value is None or value == "":
        return today() if default_today else None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")
    raise ValidationError(f"{field} must be a date")


def optional_str(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_length is not None and len(s) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return s


def require_items(items: Any, required: Iterable[str], message: str) -> list[dict]:
    """
    Validate a non-empty list of item mappings that each carry every required key
    with a truthy value.
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("items must be a non-empty list")
    required = tuple(required)
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(message, details={"index": index})
        missing = [key for key in required if item.get(key) in (None, "", 0)]
        if missing:
            raise ValidationError(message, details={"index": index, "missing": missing})
    return list(items)


def require_object(payload: Any) -> dict:
    """JSON request bodies must be objects; a missing body reads as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
