"""Aggregations behind the dashboard, ledger and sales summaries.

Everything here works on already-loaded model instances (or any object with
the same attributes) and never touches the session.
"""
from __future__ import annotations

from calendar import month_abbr
from collections import Counter
from datetime import datetime, time, timedelta

from .utils import cents_to_amount

PERIODS = ("day", "week", "month", "custom")
UNCATEGORIZED = "Uncategorized"


def with_amounts(values: dict[str, object]) -> dict[str, object]:
    """Add a decimal ``<name>`` entry next to every ``<name>_cents`` entry."""
    result = dict(values)
    for key, value in values.items():
        if key.endswith("_cents") and isinstance(value, int):
            result[key[: -len("_cents")]] = cents_to_amount(value)
    return result


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max)


def period_bounds(
    period: str,
    now: datetime,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Return inclusive ``(start, end)`` bounds for a named period.

    Weeks start on Sunday. ``custom`` uses the given bounds and falls back to
    the current month for whichever one is missing.
    """
    if period == "day":
        return start_of_day(now), end_of_day(now)
    if period == "week":
        # weekday(): Monday == 0, so Sunday is 6 days back from Saturday
        days_since_sunday = (now.weekday() + 1) % 7
        first = start_of_day(now - timedelta(days=days_since_sunday))
        return first, end_of_day(first + timedelta(days=6))

    month_start = start_of_day(now.replace(day=1))
    next_month = (month_start + timedelta(days=32)).replace(day=1)
    month_end = next_month - timedelta(microseconds=1)
    if period == "custom":
        return start or month_start, end or month_end
    return month_start, month_end


def in_period(value: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if value is None:
        return False
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def revenue_for_period(appointments, sales, start: datetime, end: datetime) -> dict[str, object]:
    """Services revenue comes from completed appointments, sales revenue from sale totals."""
    services_cents = sum(
        appt.final_price_cents or 0
        for appt in appointments
        if appt.status == "completed" and in_period(appt.start_time, start, end)
    )
    sales_cents = sum(
        sale.total_amount_cents or 0 for sale in sales if in_period(sale.sale_date, start, end)
    )
    return with_amounts({
        "total_cents": services_cents + sales_cents,
        "services_cents": services_cents,
        "sales_cents": sales_cents,
    })


def inventory_totals(items) -> dict[str, object]:
    units = 0
    stock_value = 0
    potential_profit = 0
    for item in items:
        units += item.quantity
        stock_value += item.cost_price_cents * item.quantity
        potential_profit += (item.selling_price_cents - item.cost_price_cents) * item.quantity
    return with_amounts({
        "total_units": units,
        "stock_value_cents": stock_value,
        "potential_profit_cents": potential_profit,
    })


def monthly_series(appointments, sales, year: int) -> list[dict[str, object]]:
    series = []
    for month in range(1, 13):
        month_appointments = [
            appt for appt in appointments
            if appt.start_time and appt.start_time.year == year and appt.start_time.month == month
        ]
        month_sales = [
            sale for sale in sales
            if sale.sale_date and sale.sale_date.year == year and sale.sale_date.month == month
        ]
        series.append(with_amounts({
            "month": month,
            "label": month_abbr[month],
            "appointments": len(month_appointments),
            "services_revenue_cents": sum(
                appt.final_price_cents or 0 for appt in month_appointments if appt.status == "completed"
            ),
            "sales_revenue_cents": sum(sale.total_amount_cents or 0 for sale in month_sales),
        }))
    return series


def popular_services(appointments, limit: int = 5) -> list[dict[str, object]]:
    counts: Counter[str] = Counter()
    for appt in appointments:
        for name in appt.service_names:
            counts[name] += 1
    return [{"name": name, "count": count} for name, count in counts.most_common(limit)]


def upcoming_appointments(appointments, now: datetime, limit: int = 5) -> list:
    upcoming = [
        appt for appt in appointments
        if appt.status == "scheduled" and appt.start_time and appt.start_time >= now
    ]
    upcoming.sort(key=lambda appt: appt.start_time)
    return upcoming[:limit]


def same_day(value: datetime | None, day: datetime) -> bool:
    return value is not None and value.date() == day.date()


def revenue_details(appointments, sales, start: datetime, end: datetime, kind: str = "all") -> list[dict[str, object]]:
    """Line items behind a revenue figure, newest first."""
    rows: list[dict[str, object]] = []

    if kind in ("services", "all"):
        for appt in appointments:
            if appt.status != "completed" or not in_period(appt.start_time, start, end):
                continue
            client_name = appt.client.name if appt.client else None
            rows.append(with_amounts({
                "id": appt.appointment_id,
                "type": "service",
                "date": appt.start_time,
                "description": f"Service: {client_name or 'Unidentified client'}",
                "client": client_name or "Unknown",
                "services": ", ".join(appt.service_names),
                "amount_cents": appt.final_price_cents or 0,
            }))

    if kind in ("sales", "all"):
        for sale in sales:
            if not in_period(sale.sale_date, start, end):
                continue
            client_name = sale.client.name if sale.client else None
            rows.append(with_amounts({
                "id": sale.sale_id,
                "type": "sale",
                "date": sale.sale_date,
                "description": f"Sale: {client_name or 'Unidentified client'}",
                "client": client_name or "Not informed",
                "payment": sale.payment_method or "Not informed",
                "amount_cents": sale.total_amount_cents or 0,
            }))

    rows.sort(key=lambda row: row["date"], reverse=True)
    for row in rows:
        row["date"] = row["date"].isoformat()
    return rows


def ledger_summary(transactions) -> dict[str, object]:
    income = sum(t.amount_cents for t in transactions if t.type == "income")
    expense = sum(t.amount_cents for t in transactions if t.type == "expense")
    return with_amounts({
        "income_cents": income,
        "expense_cents": expense,
        "balance_cents": income - expense,
    })


def totals_by_category(transactions) -> dict[str, list[dict[str, object]]]:
    grouped: dict[str, dict[str, int]] = {"income": {}, "expense": {}}
    for t in transactions:
        bucket = grouped.get(t.type)
        if bucket is None:
            continue
        name = t.category or UNCATEGORIZED
        bucket[name] = bucket.get(name, 0) + t.amount_cents
    return {
        kind: [with_amounts({"name": name, "value_cents": value}) for name, value in bucket.items()]
        for kind, bucket in grouped.items()
    }


def sales_summary(sales) -> dict[str, object]:
    count = len(sales)
    revenue = sum(sale.total_amount_cents or 0 for sale in sales)
    return with_amounts({
        "count": count,
        "revenue_cents": revenue,
        "average_ticket_cents": round(revenue / count) if count else 0,
    })
