"""Tests for booking, editing, completing and deleting appointments."""
from __future__ import annotations

import pytest

from salon_manager.extensions import db
from salon_manager.models import (Appointment, AppointmentService,
                                  FinancialTransaction)

# 2030-01-07 is a Monday
START = "2030-01-07T10:00:00"


@pytest.fixture
def booking(make_client, make_service):
    customer = make_client()
    cut = make_service(name="Haircut", price_cents=5000)
    color = make_service(name="Coloring", price_cents=12000)
    return {"client": customer, "cut": cut, "color": color}


def _book(client, auth_headers, booking, **overrides):
    payload = {
        "client_id": booking["client"]["id"],
        "service_ids": [booking["cut"]["id"]],
        "start_time": START,
    }
    payload.update(overrides)
    return client.post("/appointments", json=payload, headers=auth_headers)


def test_create_single_appointment_201(client, auth_headers, booking):
    response = _book(client, auth_headers, booking, service_ids=[booking["cut"]["id"], booking["color"]["id"]])
    data = response.get_json()

    assert response.status_code == 201
    assert len(data["appointments"]) == 1
    appointment = data["appointments"][0]
    assert appointment["status"] == "scheduled"
    assert appointment["start_time"] == "2030-01-07T10:00:00"
    assert appointment["end_time"] == "2030-01-07T11:00:00"
    assert appointment["recurrence"] is None
    assert appointment["series_id"] is None
    assert [s["price_cents"] for s in appointment["services"]] == [5000, 12000]
    assert all(s["final_price_cents"] == 0 for s in appointment["services"])


def test_create_deduplicates_services(client, auth_headers, booking):
    cut_id = booking["cut"]["id"]

    response = _book(client, auth_headers, booking, service_ids=[cut_id, cut_id])
    appointment = response.get_json()["appointments"][0]

    assert len(appointment["services"]) == 1
    assert appointment["end_time"] == "2030-01-07T10:30:00"


def test_service_price_is_a_snapshot(client, auth_headers, booking):
    response = _book(client, auth_headers, booking)
    appointment_id = response.get_json()["appointments"][0]["id"]

    client.put(f"/services/{booking['cut']['id']}", json={"price_cents": 9900}, headers=auth_headers)

    fetched = client.get(f"/appointments/{appointment_id}", headers=auth_headers).get_json()["appointment"]
    assert fetched["services"][0]["price_cents"] == 5000


def test_create_recurring_series(app, client, auth_headers, booking):
    response = _book(
        client, auth_headers, booking,
        recurrence={"type": "weekly", "days": ["mon", "wed"], "weeks": 2},
    )
    appointments = response.get_json()["appointments"]

    assert response.status_code == 201
    assert [a["start_time"] for a in appointments] == [
        "2030-01-07T10:00:00",
        "2030-01-09T10:00:00",
        "2030-01-14T10:00:00",
        "2030-01-16T10:00:00",
    ]
    assert {a["recurrence"] for a in appointments} == {"weekly-mon,wed-2"}
    assert len({a["series_id"] for a in appointments}) == 1
    with app.app_context():
        assert AppointmentService.query.count() == 4


def test_create_accepts_recurrence_tag(client, auth_headers, booking):
    response = _book(client, auth_headers, booking, recurrence="weekly-fri-3")

    assert response.status_code == 201
    assert len(response.get_json()["appointments"]) == 3


@pytest.mark.parametrize("overrides", [
    {"client_id": None},
    {"service_ids": []},
    {"service_ids": "1"},
    {"start_time": "not a date"},
    {"recurrence": {"type": "weekly", "days": ["someday"]}},
    {"recurrence": {"type": "weekly", "days": ["mon"], "weeks": 500}},
    {"recurrence": "weekly-mon-53"},
])
def test_create_invalid_payload_400(client, auth_headers, booking, overrides):
    response = _book(client, auth_headers, booking, **overrides)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_create_unknown_service_404(client, auth_headers, booking):
    response = _book(client, auth_headers, booking, service_ids=[999])

    assert response.status_code == 404


def test_create_conflicting_with_block_409(app, client, auth_headers, booking):
    client.post("/blocked-schedules", json={
        "start_time": "2030-01-14T09:00:00",
        "end_time": "2030-01-14T10:00:00",
        "reason": "Training",
    }, headers=auth_headers)

    response = _book(
        client, auth_headers, booking,
        recurrence={"type": "weekly", "days": ["mon"], "weeks": 3},
    )
    data = response.get_json()

    assert response.status_code == 409
    assert data["error"] == "schedule_conflict"
    assert [c["date"] for c in data["conflicts"]] == ["14/01/2030 10:00"]
    assert data["conflicts"][0]["end_date"] == "14/01/2030 10:30"
    with app.app_context():
        assert Appointment.query.count() == 0


def test_create_conflicting_with_force_201(client, auth_headers, booking):
    client.post("/blocked-schedules", json={
        "start_time": "2030-01-07T10:15:00",
        "end_time": "2030-01-07T12:00:00",
    }, headers=auth_headers)

    response = _book(client, auth_headers, booking, force=True)

    assert response.status_code == 201
    assert len(response.get_json()["conflicts"]) == 1


def test_list_appointments_search_and_order(client, auth_headers, booking, make_client):
    other = make_client(name="Pedro", phone="2100000000")
    _book(client, auth_headers, booking)
    _book(client, auth_headers, booking, client_id=other["id"], start_time="2030-01-08T10:00:00",
          service_ids=[booking["color"]["id"]])

    everything = client.get("/appointments", headers=auth_headers).get_json()["appointments"]
    by_client = client.get("/appointments?search=pedro", headers=auth_headers).get_json()["appointments"]
    by_service = client.get("/appointments?search=haircut", headers=auth_headers).get_json()["appointments"]

    assert [a["start_time"] for a in everything] == ["2030-01-08T10:00:00", "2030-01-07T10:00:00"]
    assert [a["client"]["name"] for a in by_client] == ["Pedro"]
    assert [a["client"]["name"] for a in by_service] == ["Maria Silva"]


def test_list_appointments_custom_range(client, auth_headers, booking):
    _book(client, auth_headers, booking)
    _book(client, auth_headers, booking, start_time="2030-02-10T10:00:00")

    response = client.get(
        "/appointments?range=custom&start=2030-02-01T00:00:00&end=2030-02-28T23:59:59",
        headers=auth_headers,
    )

    assert [a["start_time"] for a in response.get_json()["appointments"]] == ["2030-02-10T10:00:00"]


def test_list_appointments_invalid_range_400(client, auth_headers):
    response = client.get("/appointments?range=decade", headers=auth_headers)

    assert response.status_code == 400


def test_update_single_appointment_reconciles_services(app, client, auth_headers, booking):
    created = _book(client, auth_headers, booking).get_json()["appointments"][0]

    response = client.put(f"/appointments/{created['id']}", json={
        "client_id": booking["client"]["id"],
        "service_ids": [booking["color"]["id"]],
        "start_time": "2030-01-07T15:00:00",
        "notes": "moved to afternoon",
    }, headers=auth_headers)
    updated = response.get_json()["appointments"][0]

    assert response.status_code == 200
    assert updated["id"] == created["id"]
    assert updated["start_time"] == "2030-01-07T15:00:00"
    assert updated["notes"] == "moved to afternoon"
    assert [s["name"] for s in updated["services"]] == ["Coloring"]
    with app.app_context():
        assert AppointmentService.query.count() == 1


def test_update_series_regenerates_all_rows(app, client, auth_headers, booking):
    created = _book(
        client, auth_headers, booking,
        recurrence={"type": "weekly", "days": ["mon"], "weeks": 4},
    ).get_json()["appointments"]

    response = client.put(f"/appointments/{created[1]['id']}", json={
        "client_id": booking["client"]["id"],
        "service_ids": [booking["cut"]["id"]],
        "start_time": "2030-01-08T09:00:00",
        "recurrence": {"type": "weekly", "days": ["tue"], "weeks": 2},
    }, headers=auth_headers)
    updated = response.get_json()["appointments"]

    assert response.status_code == 200
    assert [a["start_time"] for a in updated] == ["2030-01-08T09:00:00", "2030-01-15T09:00:00"]
    with app.app_context():
        assert Appointment.query.count() == 2
        assert Appointment.query.filter_by(series_id=created[0]["series_id"]).count() == 0
        assert {a.start_time.isoformat() for a in Appointment.query.all()} == {
            "2030-01-08T09:00:00", "2030-01-15T09:00:00",
        }


def test_update_series_to_single_appointment(app, client, auth_headers, booking):
    created = _book(
        client, auth_headers, booking,
        recurrence={"type": "weekly", "days": ["mon"], "weeks": 3},
    ).get_json()["appointments"]

    response = client.put(f"/appointments/{created[0]['id']}", json={
        "client_id": booking["client"]["id"],
        "service_ids": [booking["cut"]["id"]],
        "start_time": START,
    }, headers=auth_headers)

    assert response.status_code == 200
    assert len(response.get_json()["appointments"]) == 1
    with app.app_context():
        assert Appointment.query.count() == 1


def test_update_missing_appointment_404(client, auth_headers, booking):
    response = client.put("/appointments/404", json={
        "client_id": booking["client"]["id"],
        "service_ids": [booking["cut"]["id"]],
        "start_time": START,
    }, headers=auth_headers)

    assert response.status_code == 404


def test_complete_appointment_sets_final_prices(app, client, auth_headers, booking):
    created = _book(
        client, auth_headers, booking, service_ids=[booking["cut"]["id"], booking["color"]["id"]]
    ).get_json()["appointments"][0]
    cut_line, color_line = created["services"]

    response = client.post(
        f"/appointments/{created['id']}/complete",
        json={"final_prices": {str(cut_line["id"]): 4500}},
        headers=auth_headers,
    )
    completed = response.get_json()["appointment"]

    assert response.status_code == 200
    assert completed["status"] == "completed"
    assert [s["final_price_cents"] for s in completed["services"]] == [4500, 12000]
    assert completed["final_price_cents"] == 16500

    with app.app_context():
        entry = FinancialTransaction.query.filter_by(related_appointment_id=created["id"]).one()
        assert entry.type == "income"
        assert entry.amount_cents == 16500


def test_completing_twice_updates_the_ledger_entry(app, client, auth_headers, booking):
    created = _book(client, auth_headers, booking).get_json()["appointments"][0]
    line_id = str(created["services"][0]["id"])

    client.post(f"/appointments/{created['id']}/complete", json={}, headers=auth_headers)
    client.post(
        f"/appointments/{created['id']}/complete",
        json={"final_prices": {line_id: 3000}},
        headers=auth_headers,
    )

    with app.app_context():
        entries = FinancialTransaction.query.filter_by(related_appointment_id=created["id"]).all()
        assert [e.amount_cents for e in entries] == [3000]


def test_update_completed_appointment_recomputes_total_and_ledger(app, client, auth_headers, booking):
    created = _book(
        client, auth_headers, booking, service_ids=[booking["cut"]["id"], booking["color"]["id"]]
    ).get_json()["appointments"][0]
    client.post(f"/appointments/{created['id']}/complete", json={}, headers=auth_headers)

    response = client.put(f"/appointments/{created['id']}", json={
        "client_id": booking["client"]["id"],
        "service_ids": [booking["cut"]["id"]],
        "start_time": START,
    }, headers=auth_headers)
    updated = response.get_json()["appointments"][0]

    assert response.status_code == 200
    assert updated["status"] == "completed"
    assert updated["final_price_cents"] == 5000
    assert [s["final_price_cents"] for s in updated["services"]] == [5000]
    with app.app_context():
        entry = FinancialTransaction.query.filter_by(related_appointment_id=created["id"]).one()
        assert entry.amount_cents == 5000


def test_adding_service_to_completed_appointment_charges_booked_price(app, client, auth_headers, booking):
    created = _book(client, auth_headers, booking).get_json()["appointments"][0]
    client.post(f"/appointments/{created['id']}/complete", json={}, headers=auth_headers)

    response = client.put(f"/appointments/{created['id']}", json={
        "client_id": booking["client"]["id"],
        "service_ids": [booking["cut"]["id"], booking["color"]["id"]],
        "start_time": START,
    }, headers=auth_headers)
    updated = response.get_json()["appointments"][0]

    assert updated["final_price_cents"] == 17000
    with app.app_context():
        entry = FinancialTransaction.query.filter_by(related_appointment_id=created["id"]).one()
        assert entry.amount_cents == 17000


@pytest.mark.parametrize("final_prices", [{"999": 100}, {"LINE": -5}, "not-a-map"])
def test_complete_invalid_prices_400(client, auth_headers, booking, final_prices):
    created = _book(client, auth_headers, booking).get_json()["appointments"][0]
    if isinstance(final_prices, dict) and "LINE" in final_prices:
        final_prices = {str(created["services"][0]["id"]): final_prices["LINE"]}

    response = client.post(
        f"/appointments/{created['id']}/complete",
        json={"final_prices": final_prices},
        headers=auth_headers,
    )

    assert response.status_code == 400


def test_cancel_appointment(app, client, auth_headers, booking):
    created = _book(client, auth_headers, booking).get_json()["appointments"][0]
    client.post(f"/appointments/{created['id']}/complete", json={}, headers=auth_headers)

    response = client.post(f"/appointments/{created['id']}/cancel", headers=auth_headers)

    assert response.status_code == 200
    assert response.get_json()["appointment"]["status"] == "cancelled"
    with app.app_context():
        assert FinancialTransaction.query.count() == 0


def test_delete_single_occurrence_keeps_rest_of_series(app, client, auth_headers, booking):
    created = _book(
        client, auth_headers, booking,
        recurrence={"type": "weekly", "days": ["mon"], "weeks": 3},
    ).get_json()["appointments"]

    response = client.delete(f"/appointments/{created[0]['id']}?scope=single", headers=auth_headers)

    assert response.status_code == 200
    assert response.get_json()["deleted"] == 1
    with app.app_context():
        assert Appointment.query.count() == 2


def test_delete_whole_series_removes_ledger_entries(app, client, auth_headers, booking):
    created = _book(
        client, auth_headers, booking,
        recurrence={"type": "weekly", "days": ["mon"], "weeks": 3},
    ).get_json()["appointments"]
    client.post(f"/appointments/{created[0]['id']}/complete", json={}, headers=auth_headers)

    response = client.delete(f"/appointments/{created[1]['id']}?scope=all", headers=auth_headers)

    assert response.status_code == 200
    assert response.get_json()["deleted"] == 3
    with app.app_context():
        assert Appointment.query.count() == 0
        assert AppointmentService.query.count() == 0
        assert FinancialTransaction.query.count() == 0


def test_delete_invalid_scope_400(client, auth_headers, booking):
    created = _book(client, auth_headers, booking).get_json()["appointments"][0]

    response = client.delete(f"/appointments/{created['id']}?scope=some", headers=auth_headers)

    assert response.status_code == 400


def test_delete_missing_appointment_404(client, auth_headers):
    response = client.delete("/appointments/12345", headers=auth_headers)

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"
