"""Small parsing and formatting helpers shared by models and routes."""
from __future__ import annotations

import re
from datetime import date, datetime, timezone

_NON_DIGITS = re.compile(r"\D")


def isoformat(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


def cents_to_amount(cents: int | None) -> float:
    return round((cents or 0) / 100.0, 2)


def parse_datetime(value: object) -> datetime | None:
    """Parse an ISO-8601 string into a naive UTC datetime.

    Offsets are converted to UTC; naive input is taken as UTC already.
    Returns ``None`` for anything that is not a parseable string.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_cents(value: object, *, allow_zero: bool = True) -> int | None:
    """Return ``value`` as a non-negative integer amount of cents, or ``None``."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    try:
        cents = int(value)
    except ValueError:
        return None
    if cents < 0 or (cents == 0 and not allow_zero):
        return None
    return cents


def parse_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def format_phone(phone: str | None) -> str:
    """Display a phone number as ``(XX) X XXXX-XXXX`` or ``(XX) XXXX-XXXX``.

    Numbers with any other digit count are returned unchanged.
    """
    if not phone:
        return ""
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2]} {digits[3:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return phone
