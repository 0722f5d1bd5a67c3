"""Input checks shared by the report registry and the vitals engine."""

from __future__ import annotations

from datetime import date as date_type
from typing import Any

from hwallet.core.errors import ValidationError
from hwallet.core.storage.models import INTEGER_VITAL_FIELDS, VITAL_FIELDS

# SQLite INTEGER is a signed 64-bit value
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1


def require_date(value: Any, *, field_name: str = "date") -> str:
    """Return ``value`` as an ISO date string (YYYY-MM-DD).

    Raises:
        ValidationError: If the value is missing or not a calendar date.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name.capitalize()} is required")
    if not isinstance(value, str):
        raise ValidationError(f"{field_name.capitalize()} must be an ISO date string")
    text = value.strip()
    try:
        parsed = date_type.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r} (expected YYYY-MM-DD)") from None
    return parsed.isoformat()


def optional_date(value: Any, *, field_name: str) -> str | None:
    """Like :func:`require_date`, but empty input means "no bound"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_date(value, field_name=field_name)


def coerce_measurement(name: str, value: Any) -> int | float | None:
    """Validate one measurement value without rounding or converting units.

    Integer fields accept ints and integral floats; fractional values are
    rejected rather than truncated.
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    if value != value or value in (float("inf"), float("-inf")):
        raise ValidationError(f"{name} must be a finite number")
    if name in INTEGER_VITAL_FIELDS:
        if isinstance(value, float):
            if not value.is_integer():
                raise ValidationError(f"{name} must be a whole number")
            value = int(value)
        if not _INT_MIN <= value <= _INT_MAX:
            raise ValidationError(f"{name} is out of range")
        return value
    try:
        return float(value)
    except OverflowError:
        raise ValidationError(f"{name} is out of range") from None


def coerce_measurements(fields: dict[str, Any] | None) -> dict[str, int | float | None]:
    """Validate a measurement mapping, keeping only the keys supplied.

    Raises:
        ValidationError: For unknown field names or bad values.
    """
    if fields is None:
        return {}
    if not isinstance(fields, dict):
        raise ValidationError("Vitals must be an object of field -> value")
    unknown = sorted(set(fields) - set(VITAL_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown vitals fields: {unknown}. Valid: {list(VITAL_FIELDS)}")
    return {name: coerce_measurement(name, value) for name, value in fields.items()}
