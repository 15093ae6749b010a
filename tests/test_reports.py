"""Unit tests for the dashboard and ledger aggregations."""
from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

from salon_manager import reports


def _appointment(appointment_id, start, status="completed", final=0, services=(), client="Maria"):
    return SimpleNamespace(
        appointment_id=appointment_id,
        start_time=start,
        status=status,
        final_price_cents=final,
        service_names=list(services),
        client=SimpleNamespace(name=client) if client else None,
    )


def _sale(sale_id, date, total, client=None, payment="cash"):
    return SimpleNamespace(
        sale_id=sale_id,
        sale_date=date,
        total_amount_cents=total,
        payment_method=payment,
        client=SimpleNamespace(name=client) if client else None,
    )


def _transaction(kind, amount, category=None):
    return SimpleNamespace(type=kind, amount_cents=amount, category=category)


def test_week_bounds_start_on_sunday():
    wednesday = datetime(2030, 1, 9, 15, 0)

    start, end = reports.period_bounds("week", wednesday)

    assert start == datetime(2030, 1, 6, 0, 0)
    assert end.date() == datetime(2030, 1, 12).date()
    assert end.hour == 23


def test_week_bounds_on_a_sunday():
    sunday = datetime(2030, 1, 13, 8, 0)

    start, _ = reports.period_bounds("week", sunday)

    assert start == datetime(2030, 1, 13, 0, 0)


def test_month_bounds_handle_leap_february():
    start, end = reports.period_bounds("month", datetime(2028, 2, 10))

    assert start == datetime(2028, 2, 1)
    assert end.date() == datetime(2028, 2, 29).date()


def test_custom_bounds_fall_back_to_month():
    now = datetime(2030, 3, 15)
    custom_start = datetime(2030, 3, 2)

    start, end = reports.period_bounds("custom", now, custom_start, None)

    assert start == custom_start
    assert end.date() == datetime(2030, 3, 31).date()


def test_revenue_counts_completed_appointments_and_sales():
    start, end = reports.period_bounds("month", datetime(2030, 1, 15))
    appointments = [
        _appointment(1, datetime(2030, 1, 7, 10), final=5000),
        _appointment(2, datetime(2030, 1, 8, 10), status="scheduled", final=9999),
        _appointment(3, datetime(2030, 2, 1, 10), final=7000),
    ]
    sales = [_sale(1, datetime(2030, 1, 20), 2500), _sale(2, datetime(2029, 12, 31), 1000)]

    revenue = reports.revenue_for_period(appointments, sales, start, end)

    assert revenue["services_cents"] == 5000
    assert revenue["sales_cents"] == 2500
    assert revenue["total_cents"] == 7500
    assert revenue["total"] == 75.0


def test_inventory_totals():
    items = [
        SimpleNamespace(quantity=4, cost_price_cents=1000, selling_price_cents=2500),
        SimpleNamespace(quantity=0, cost_price_cents=500, selling_price_cents=900),
    ]

    totals = reports.inventory_totals(items)

    assert totals["total_units"] == 4
    assert totals["stock_value_cents"] == 4000
    assert totals["potential_profit_cents"] == 6000


def test_monthly_series_has_twelve_months():
    appointments = [
        _appointment(1, datetime(2030, 1, 7), final=5000),
        _appointment(2, datetime(2030, 1, 9), status="cancelled", final=0),
        _appointment(3, datetime(2029, 1, 9), final=8000),
    ]
    sales = [_sale(1, datetime(2030, 3, 1), 1200)]

    series = reports.monthly_series(appointments, sales, 2030)

    assert len(series) == 12
    assert series[0]["label"] == "Jan"
    assert series[0]["appointments"] == 2
    assert series[0]["services_revenue_cents"] == 5000
    assert series[2]["sales_revenue_cents"] == 1200
    assert series[2]["sales_revenue"] == 12.0


def test_popular_services_top_five():
    appointments = [
        _appointment(i, datetime(2030, 1, 7), services=names)
        for i, names in enumerate([
            ["Cut", "Color"], ["Cut"], ["Cut", "Brush"], ["Color"], ["Nails"], ["Brow"], ["Wax"],
        ])
    ]

    popular = reports.popular_services(appointments)

    assert len(popular) == 5
    assert popular[0] == {"name": "Cut", "count": 3}
    assert popular[1] == {"name": "Color", "count": 2}


def test_upcoming_appointments_only_future_scheduled():
    now = datetime(2030, 1, 7, 12, 0)
    appointments = [
        _appointment(1, datetime(2030, 1, 9), status="scheduled"),
        _appointment(2, datetime(2030, 1, 8), status="scheduled"),
        _appointment(3, datetime(2030, 1, 6), status="scheduled"),
        _appointment(4, datetime(2030, 1, 10), status="cancelled"),
    ]

    upcoming = reports.upcoming_appointments(appointments, now)

    assert [a.appointment_id for a in upcoming] == [2, 1]


def test_revenue_details_newest_first_and_filtered_by_kind():
    start, end = reports.period_bounds("month", datetime(2030, 1, 15))
    appointments = [_appointment(1, datetime(2030, 1, 7, 10), final=5000, services=["Cut"])]
    sales = [_sale(9, datetime(2030, 1, 20), 2500)]

    both = reports.revenue_details(appointments, sales, start, end)
    only_sales = reports.revenue_details(appointments, sales, start, end, "sales")

    assert [row["type"] for row in both] == ["sale", "service"]
    assert both[0]["client"] == "Not informed"
    assert both[0]["date"] == "2030-01-20T00:00:00"
    assert both[1]["description"] == "Service: Maria"
    assert both[1]["amount"] == 50.0
    assert [row["id"] for row in only_sales] == [9]


def test_ledger_summary_and_categories():
    transactions = [
        _transaction("income", 10000, "Services"),
        _transaction("income", 2500, None),
        _transaction("expense", 4000, "Rent"),
        _transaction("expense", 500, "Rent"),
    ]

    summary = reports.ledger_summary(transactions)
    by_category = reports.totals_by_category(transactions)

    assert summary["income_cents"] == 12500
    assert summary["expense_cents"] == 4500
    assert summary["balance_cents"] == 8000
    assert {row["name"]: row["value_cents"] for row in by_category["income"]} == {
        "Services": 10000,
        "Uncategorized": 2500,
    }
    assert by_category["expense"] == [{"name": "Rent", "value_cents": 4500, "value": 45.0}]


def test_sales_summary_average_ticket():
    sales = [_sale(1, datetime(2030, 1, 1), 1000), _sale(2, datetime(2030, 1, 2), 2001)]

    summary = reports.sales_summary(sales)

    assert summary["count"] == 2
    assert summary["revenue_cents"] == 3001
    assert summary["average_ticket_cents"] == 1500
    assert reports.sales_summary([])["average_ticket_cents"] == 0
