"""CSV/JSON serialization for catalog and ledger exports."""
from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime

from .utils import cents_to_amount

EXPORT_TYPES = ("clients", "services", "appointments", "inventory", "sales", "financial")
# Export types that can be limited to recent rows
DATED_EXPORT_TYPES = ("appointments", "sales", "financial")
RECENT_DAYS = 30

CONTENT_TYPES = {
    "csv": "text/csv; charset=utf-8",
    "json": "application/json; charset=utf-8",
}


def _cell(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


def convert_to_csv(rows: list[dict[str, object]], delimiter: str = ";") -> str:
    """Render rows as delimited text; headers come from the first row's keys.

    Cells holding the delimiter, quotes or newlines are quoted, with inner
    double quotes doubled.
    """
    if not rows:
        return ""

    headers = list(rows[0].keys())
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(header)) for header in headers])

    csv_content = output.getvalue()
    output.close()
    return csv_content


def convert_to_json(rows: list[dict[str, object]]) -> str:
    return json.dumps(rows, indent=2, default=str, ensure_ascii=False)


def render(rows: list[dict[str, object]], file_format: str) -> str:
    if file_format == "csv":
        return convert_to_csv(rows)
    if file_format == "json":
        return convert_to_json(rows)
    raise ValueError(f"unsupported export format: {file_format!r}")


def export_filename(export_type: str, file_format: str, today: date) -> str:
    return f"{export_type}_{today.strftime('%Y%m%d')}.{file_format}"


def appointment_row(appointment) -> dict[str, object]:
    return {
        "id": appointment.appointment_id,
        "client": appointment.client.name if appointment.client else None,
        "start_time": appointment.start_time.isoformat() if appointment.start_time else None,
        "end_time": appointment.end_time.isoformat() if appointment.end_time else None,
        "status": appointment.status,
        "final_price": cents_to_amount(appointment.final_price_cents),
        "services": ", ".join(appointment.service_names),
        "recurrence": appointment.recurrence,
        "notes": appointment.notes,
    }


def sale_row(sale) -> dict[str, object]:
    items = "; ".join(
        f"{item.quantity}x {item.inventory_item.name if item.inventory_item else 'Unknown'}"
        f" ({cents_to_amount(item.unit_price_cents):.2f})"
        for item in sale.items
    )
    return {
        "id": sale.sale_id,
        "sale_date": sale.sale_date.isoformat() if sale.sale_date else None,
        "client": sale.client.name if sale.client else "Not informed",
        "total_amount": cents_to_amount(sale.total_amount_cents),
        "payment_method": sale.payment_method,
        "items": items,
        "notes": sale.notes,
    }


def row_date(export_type: str, row: dict[str, object]) -> datetime | None:
    """Return the date that decides whether a row counts as recent."""
    key = {
        "appointments": "start_time",
        "sales": "sale_date",
        "financial": "transaction_date",
    }.get(export_type)
    value = row.get(key) if key else None
    if not value:
        return None
    return datetime.fromisoformat(str(value))
