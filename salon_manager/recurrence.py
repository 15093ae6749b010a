"""Weekly recurrence tags and expansion into concrete appointment slots.

A recurrence tag looks like ``weekly-mon,wed-4``: the pattern type, the
comma-separated day codes and the number of weeks the series spans. Every
appointment row generated from one booking carries the same tag.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

# Python weekday numbers (Monday == 0)
DAY_CODES = {
    "mon": 0,
    "tue": 1,
    "wed": 2,
    "thu": 3,
    "fri": 4,
    "sat": 5,
    "sun": 6,
}

DEFAULT_WEEKS = 4
MAX_WEEKS = 52
MINUTES_PER_SERVICE = 30

Slot = tuple[datetime, datetime]


@dataclass(frozen=True)
class Recurrence:
    type: str
    days: tuple[str, ...]
    weeks: int = DEFAULT_WEEKS

    @property
    def tag(self) -> str:
        return f"{self.type}-{','.join(self.days)}-{self.weeks}"


def _coerce_weeks(weeks: object) -> int:
    try:
        value = int(weeks)
    except (TypeError, ValueError):
        return DEFAULT_WEEKS
    if value > MAX_WEEKS:
        raise ValueError(f"weeks must be at most {MAX_WEEKS}")
    return value if value > 0 else DEFAULT_WEEKS


def _normalize_days(days) -> tuple[str, ...]:
    normalized: list[str] = []
    for day in days:
        code = str(day).strip().lower()
        if not code:
            continue
        if code not in DAY_CODES:
            raise ValueError(f"unknown day code: {day!r}")
        if code not in normalized:
            normalized.append(code)
    return tuple(normalized)


def build_recurrence(recurrence_type: str | None, days, weeks: object = DEFAULT_WEEKS) -> Recurrence | None:
    """Return a :class:`Recurrence`, or ``None`` when the booking does not repeat.

    Only the ``weekly`` type with at least one day produces a recurrence.
    """
    if (recurrence_type or "none").strip().lower() != "weekly":
        return None
    normalized = _normalize_days(days or ())
    if not normalized:
        return None
    return Recurrence("weekly", normalized, _coerce_weeks(weeks))


def build_recurrence_tag(recurrence_type: str | None, days, weeks: object = DEFAULT_WEEKS) -> str | None:
    recurrence = build_recurrence(recurrence_type, days, weeks)
    return recurrence.tag if recurrence else None


def parse_recurrence_tag(tag: str | None) -> Recurrence | None:
    """Parse ``weekly-<days>-<weeks>``.

    A missing or non-positive week count falls back to 4. More than
    ``MAX_WEEKS`` raises ``ValueError``.
    """
    if not tag:
        return None
    parts = tag.strip().split("-")
    if len(parts) < 2:
        raise ValueError(f"malformed recurrence tag: {tag!r}")
    recurrence_type = parts[0].lower()
    if recurrence_type != "weekly":
        raise ValueError(f"unsupported recurrence type: {parts[0]!r}")
    weeks = parts[2] if len(parts) > 2 else None
    days = _normalize_days(parts[1].split(","))
    if not days:
        raise ValueError(f"recurrence tag has no days: {tag!r}")
    return Recurrence(recurrence_type, days, _coerce_weeks(weeks))


def appointment_duration(service_count: int) -> timedelta:
    return timedelta(minutes=MINUTES_PER_SERVICE * service_count)


def expand_occurrences(start: datetime, duration: timedelta, recurrence: Recurrence | None) -> list[Slot]:
    """Expand a booking into ``(start, end)`` slots.

    For each day code the first slot is the first date on or after ``start``
    falling on that weekday, at the same time of day; the series then repeats
    weekly for ``recurrence.weeks`` weeks.
    """
    if recurrence is None:
        return [(start, start + duration)]

    slots: list[Slot] = []
    for code in recurrence.days:
        days_ahead = (DAY_CODES[code] - start.weekday()) % 7
        first = start + timedelta(days=days_ahead)
        for week in range(recurrence.weeks):
            slot_start = first + timedelta(weeks=week)
            slots.append((slot_start, slot_start + duration))

    slots.sort()
    return slots


def overlaps(start: datetime, end: datetime, block_start: datetime, block_end: datetime) -> bool:
    """Inclusive overlap test: intervals that merely touch still conflict."""
    return block_start <= end and block_end >= start
