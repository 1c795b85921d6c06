"""Lightweight validation and arithmetic guards shared by the scorers."""

from datetime import date, datetime, timezone
from typing import Any, Union

from crm_engine.utils.error_handling import ValidationError


def ensure_present(value: Any, field: str) -> None:
    """Raise ValidationError if value is falsy."""
    if value in (None, "", []):
        raise ValidationError(f"{field} is required")


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Bound a value to [low, high]."""
    return max(low, min(high, value))


def clamp_pct(value: float) -> int:
    """Round and bound a percentage to an int in [0, 100]."""
    return int(clamp(round(value)))


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, returning ``default`` when the denominator is zero or negative."""
    if denominator <= 0:
        return default
    return numerator / denominator


def as_utc(value: Union[datetime, date]) -> datetime:
    """Normalize dates and naive datetimes to aware UTC datetimes."""
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(earlier: Union[datetime, date], later: Union[datetime, date]) -> int:
    """Whole days from ``earlier`` to ``later``, never negative."""
    return max(0, (as_utc(later) - as_utc(earlier)).days)
