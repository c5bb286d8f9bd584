"""Validaciones locales de formularios (presencia y formato)."""

import re
from datetime import date, datetime
from typing import Any, Optional

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


def is_not_empty(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def is_in_range(value: Any, minimum: float, maximum: float) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return minimum <= number <= maximum


def parse_date(value: Any) -> Optional[date]:
    """Acepta date, datetime o string ISO (YYYY-MM-DD)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def is_valid_date(value: Any) -> bool:
    return parse_date(value) is not None


def is_future_date(value: Any, today: Optional[date] = None) -> bool:
    """Hoy cuenta como fecha válida."""
    parsed = parse_date(value)
    if parsed is None:
        return False
    return parsed >= (today or date.today())


def validate_email(email: Any) -> bool:
    return bool(EMAIL_PATTERN.match(str(email or "").lower()))


def validate_phone_number(phone: Any) -> bool:
    compact = re.sub(r"\s+", "", str(phone or ""))
    return bool(PHONE_PATTERN.match(compact))
