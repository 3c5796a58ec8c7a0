"""Shared helpers for services: input validation and coercion."""

import math

from kpi_tracker.core.exceptions import ValidationError


def require_fields(data: dict, *fields: str) -> None:
    """Raise ValidationError naming every missing or blank field."""
    missing = [
        f for f in fields
        if data.get(f) is None or (isinstance(data.get(f), str) and not data.get(f).strip())
    ]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )


def parse_number(value, field: str, *, allow_none: bool = True):
    """Coerce a JSON value to float; '' and None mean unset."""
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field} is required", details={field: "required"})
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: "invalid"})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from None
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number", details={field: "invalid"})
    return number


def parse_int(value, field: str, *, allow_none: bool = False, minimum=None, maximum=None):
    """Coerce a JSON value to int within optional bounds."""
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field} is required", details={field: "required"})
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"})
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"}) from None
    if (minimum is not None and number < minimum) or (maximum is not None and number > maximum):
        raise ValidationError(f"{field} is out of range", details={field: "out_of_range"})
    return number


def normalize_email(value) -> str:
    return (value or "").strip().lower()

