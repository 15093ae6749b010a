"""HTTP routes for the salon manager backend."""
from __future__ import annotations

import uuid
from datetime import datetime

from flask import Blueprint, Flask, current_app, g, jsonify, request
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import build_token, login_required
from .extensions import db
from .models import (Appointment, AppointmentService, AuthAccount,
                     BlockedSchedule, Client, FinancialTransaction, Profile,
                     Sale, Service, utc_now)
from .recurrence import (appointment_duration, build_recurrence,
                         expand_occurrences, overlaps, parse_recurrence_tag)
from .reports import in_period, period_bounds
from .utils import parse_bool, parse_cents, parse_datetime, parse_int

bp = Blueprint("api", __name__)

MIN_PASSWORD_LENGTH = 6
CONFLICT_DATE_FORMAT = "%d/%m/%Y %H:%M"


def _invalid(message: str):
    return jsonify({"error": "invalid_payload", "message": message}), 400


def _not_found(message: str):
    return jsonify({"error": "not_found", "message": message}), 404


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- BEGIN: Authentication ---

@bp.post("/auth/register")
def register() -> tuple[dict[str, object], int]:
    """Create a staff profile and log it in.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
            confirm_password:
              type: string
          required:
            - email
            - password
            - confirm_password
    responses:
      201:
        description: Profile created, returns access token
      400:
        description: Missing fields, short password or mismatched confirmation
      409:
        description: Email already in use
    """
    payload = request.get_json(silent=True) or {}

    name = (payload.get("name") or "").strip() or None
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    confirm_password = payload.get("confirm_password") or ""

    if not email or not password or not confirm_password:
        return _invalid("email, password and confirm_password are required")

    if password != confirm_password:
        return _invalid("passwords do not match")

    if len(password) < MIN_PASSWORD_LENGTH:
        return _invalid(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

    if Profile.query.filter_by(email=email).first():
        return jsonify({"error": "conflict", "message": "email address is already in use"}), 409

    try:
        profile = Profile(email=email, name=name)
        db.session.add(profile)
        db.session.flush()

        db.session.add(AuthAccount(
            profile_id=profile.profile_id,
            password_hash=generate_password_hash(password),
        ))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to register profile", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info("Registered profile %s", profile.profile_id)
    token = build_token({"profile_id": profile.profile_id})
    return jsonify({"token": token, "profile": profile.to_dict()}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate by email/password and return an access token.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful
      400:
        description: Missing email or password
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return _invalid("email and password are required")

    record = (
        db.session.query(Profile, AuthAccount)
        .join(AuthAccount, AuthAccount.profile_id == Profile.profile_id)
        .filter(Profile.email == email)
        .first()
    )

    if not record:
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    profile, auth_account = record

    if not check_password_hash(auth_account.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    auth_account.last_login_at = utc_now()

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update last login timestamp", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    token = build_token({"profile_id": profile.profile_id})
    return jsonify({"token": token, "profile": profile.to_dict()}), 200


@bp.get("/auth/me")
@login_required
def current_profile() -> tuple[dict[str, object], int]:
    """Return the profile behind the bearer token."""
    profile = db.session.get(Profile, g.profile_id)
    if profile is None:
        return jsonify({"error": "unauthorized", "message": "profile no longer exists"}), 401
    return jsonify({"profile": profile.to_dict()}), 200

# --- END: Authentication ---


# --- BEGIN: Clients ---

@bp.get("/clients")
@login_required
def list_clients() -> tuple[dict[str, object], int]:
    """List clients sorted by name.
    ---
    tags:
      - Clients
    parameters:
      - name: search
        in: query
        type: string
        description: Matches name (case-insensitive) or phone
    responses:
      200:
        description: List of clients
      500:
        description: Database error
    """
    search = (request.args.get("search") or "").strip()

    try:
        clients = Client.query.order_by(func.lower(Client.name)).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch clients", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if search:
        needle = search.lower()
        clients = [
            c for c in clients
            if needle in c.name.lower() or (c.phone and needle in c.phone.lower())
        ]

    return jsonify({"clients": [c.to_dict() for c in clients]}), 200


@bp.get("/clients/<int:client_id>")
@login_required
def get_client(client_id: int) -> tuple[dict[str, object], int]:
    client = db.session.get(Client, client_id)
    if client is None:
        return _not_found("Client not found")
    return jsonify({"client": client.to_dict()}), 200


@bp.post("/clients")
@login_required
def create_client() -> tuple[dict[str, object], int]:
    """Create a client.
    ---
    tags:
      - Clients
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            phone:
              type: string
          required:
            - name
    responses:
      201:
        description: Client created
      400:
        description: Name missing
    """
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    phone = (payload.get("phone") or "").strip() or None

    if not name:
        return _invalid("name is required")

    try:
        client = Client(name=name, phone=phone, created_by=g.profile_id)
        db.session.add(client)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create client", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Client created successfully", "client": client.to_dict()}), 201


@bp.put("/clients/<int:client_id>")
@login_required
def update_client(client_id: int) -> tuple[dict[str, object], int]:
    client = db.session.get(Client, client_id)
    if client is None:
        return _not_found("Client not found")

    payload = request.get_json(silent=True) or {}

    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            return _invalid("name cannot be empty")
        client.name = name
    if "phone" in payload:
        client.phone = (payload.get("phone") or "").strip() or None

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update client", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Client updated successfully", "client": client.to_dict()}), 200


@bp.delete("/clients/<int:client_id>")
@login_required
def delete_client(client_id: int) -> tuple[dict[str, object], int]:
    """Delete a client that has no appointments or sales.
    ---
    tags:
      - Clients
    responses:
      200:
        description: Client deleted
      404:
        description: Client not found
      409:
        description: Client still has appointments or sales
    """
    client = db.session.get(Client, client_id)
    if client is None:
        return _not_found("Client not found")

    in_use = (
        Appointment.query.filter_by(client_id=client_id).first() is not None
        or Sale.query.filter_by(client_id=client_id).first() is not None
    )
    if in_use:
        return (
            jsonify({"error": "client_in_use", "message": "Client has appointments or sales"}),
            409,
        )

    try:
        db.session.delete(client)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete client", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Client deleted successfully"}), 200

# --- END: Clients ---


# --- BEGIN: Services ---

@bp.get("/services")
@login_required
def list_services() -> tuple[dict[str, object], int]:
    """List services sorted by name; ``search`` matches the name or the price."""
    search = (request.args.get("search") or "").strip().lower()

    try:
        services = Service.query.order_by(func.lower(Service.name)).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch services", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if search:
        services = [
            s for s in services
            if search in s.name.lower() or search in f"{s.price_cents / 100:.2f}"
        ]

    return jsonify({"services": [s.to_dict() for s in services]}), 200


@bp.post("/services")
@login_required
def create_service() -> tuple[dict[str, object], int]:
    """Create a service.
    ---
    tags:
      - Services
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            price_cents:
              type: integer
          required:
            - name
            - price_cents
    responses:
      201:
        description: Service created
      400:
        description: Missing name or invalid price
    """
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()

    if not name or "price_cents" not in payload:
        return _invalid("name and price_cents are required")

    price_cents = parse_cents(payload.get("price_cents"))
    if price_cents is None:
        return _invalid("price_cents must be a non-negative integer")

    try:
        service = Service(name=name, price_cents=price_cents, created_by=g.profile_id)
        db.session.add(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Service created successfully", "service": service.to_dict()}), 201


@bp.put("/services/<int:service_id>")
@login_required
def update_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None:
        return _not_found("Service not found")

    payload = request.get_json(silent=True) or {}

    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            return _invalid("name cannot be empty")
        service.name = name
    if "price_cents" in payload:
        price_cents = parse_cents(payload.get("price_cents"))
        if price_cents is None:
            return _invalid("price_cents must be a non-negative integer")
        service.price_cents = price_cents

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Service updated successfully", "service": service.to_dict()}), 200


@bp.delete("/services/<int:service_id>")
@login_required
def delete_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None:
        return _not_found("Service not found")

    if AppointmentService.query.filter_by(service_id=service_id).first() is not None:
        return (
            jsonify({"error": "service_in_use", "message": "Service is used by appointments"}),
            409,
        )

    try:
        db.session.delete(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Service deleted successfully"}), 200

# --- END: Services ---


# --- BEGIN: Appointments ---

def _parse_booking(payload: dict) -> tuple[dict | None, str | None]:
    """Validate an appointment payload; returns ``(booking, error_message)``."""
    client_id = parse_int(payload.get("client_id"))
    start_time = parse_datetime(payload.get("start_time"))
    raw_services = payload.get("service_ids")

    if client_id is None or not raw_services or start_time is None:
        return None, "client_id, service_ids and a valid ISO start_time are required"

    if not isinstance(raw_services, list):
        return None, "service_ids must be a list"

    service_ids: list[int] = []
    for raw in raw_services:
        service_id = parse_int(raw)
        if service_id is None:
            return None, "service_ids must contain integers"
        if service_id not in service_ids:
            service_ids.append(service_id)

    raw_recurrence = payload.get("recurrence")
    try:
        if isinstance(raw_recurrence, dict):
            recurrence = build_recurrence(
                raw_recurrence.get("type"),
                raw_recurrence.get("days") or [],
                raw_recurrence.get("weeks"),
            )
        elif isinstance(raw_recurrence, str) and raw_recurrence.strip():
            recurrence = parse_recurrence_tag(raw_recurrence)
        else:
            recurrence = None
    except ValueError as exc:
        return None, str(exc)

    booking = {
        "client_id": client_id,
        "service_ids": service_ids,
        "start_time": start_time,
        "notes": (payload.get("notes") or "").strip() or None,
        "recurrence": recurrence,
        "force": parse_bool(payload.get("force", False)),
    }
    return booking, None


def _load_booking_refs(booking: dict):
    """Fetch the client and services a booking points at, or return a 404 response."""
    client = db.session.get(Client, booking["client_id"])
    if client is None:
        return None, _not_found("Client not found")

    services = Service.query.filter(Service.service_id.in_(booking["service_ids"])).all()
    by_id = {s.service_id: s for s in services}
    missing = [sid for sid in booking["service_ids"] if sid not in by_id]
    if missing:
        return None, _not_found(f"Service not found: {missing[0]}")

    return [by_id[sid] for sid in booking["service_ids"]], None


def find_conflicts(slots: list[tuple[datetime, datetime]]) -> list[dict[str, object]]:
    """Report every slot that overlaps a blocked schedule."""
    if not slots:
        return []

    window_start = min(start for start, _ in slots)
    window_end = max(end for _, end in slots)
    blocks = BlockedSchedule.query.filter(
        BlockedSchedule.start_time <= window_end,
        BlockedSchedule.end_time >= window_start,
    ).all()

    conflicts = []
    for start, end in slots:
        hits = [b for b in blocks if overlaps(start, end, b.start_time, b.end_time)]
        if hits:
            conflicts.append({
                "date": start.strftime(CONFLICT_DATE_FORMAT),
                "end_date": end.strftime(CONFLICT_DATE_FORMAT),
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
                "blocked_by": [b.block_id for b in hits],
            })
    return conflicts


def _create_appointments(booking: dict, services: list[Service], slots) -> list[Appointment]:
    recurrence = booking["recurrence"]
    series_id = str(uuid.uuid4()) if recurrence else None
    created = []

    for start, end in slots:
        appointment = Appointment(
            client_id=booking["client_id"],
            start_time=start,
            end_time=end,
            status="scheduled",
            notes=booking["notes"],
            recurrence=recurrence.tag if recurrence else None,
            series_id=series_id,
            created_by=g.profile_id,
        )
        appointment.services = [
            AppointmentService(service_id=s.service_id, price_cents=s.price_cents, final_price_cents=0)
            for s in services
        ]
        db.session.add(appointment)
        created.append(appointment)

    db.session.flush()
    return created


def _delete_appointments(appointments: list[Appointment]) -> None:
    """Delete appointments with their service lines and linked ledger entries."""
    ids = [a.appointment_id for a in appointments]
    if not ids:
        return
    FinancialTransaction.query.filter(
        FinancialTransaction.related_appointment_id.in_(ids)
    ).delete(synchronize_session=False)
    for appointment in appointments:
        db.session.delete(appointment)
    db.session.flush()


def _series_of(appointment: Appointment) -> list[Appointment]:
    if not appointment.series_id:
        return [appointment]
    return Appointment.query.filter_by(series_id=appointment.series_id).all()


def _conflict_response(conflicts):
    return (
        jsonify({
            "error": "schedule_conflict",
            "message": "One or more occurrences fall inside a blocked schedule",
            "conflicts": conflicts,
        }),
        409,
    )


@bp.get("/appointments")
@login_required
def list_appointments() -> tuple[dict[str, object], int]:
    """List appointments, newest first.
    ---
    tags:
      - Appointments
    parameters:
      - name: range
        in: query
        type: string
        enum: [all, day, week, month, custom]
        default: all
      - name: start
        in: query
        type: string
        format: date-time
        description: Start of a custom range
      - name: end
        in: query
        type: string
        format: date-time
        description: End of a custom range
      - name: search
        in: query
        type: string
        description: Client name or phone, service name, status or recurrence tag
    responses:
      200:
        description: List of appointments
      400:
        description: Invalid range
      500:
        description: Database error
    """
    date_range = (request.args.get("range") or "all").strip().lower()
    search = (request.args.get("search") or "").strip().lower()

    if date_range not in ("all", "day", "week", "month", "custom"):
        return _invalid("range must be one of all, day, week, month, custom")

    start = end = None
    if date_range != "all":
        start, end = period_bounds(
            date_range,
            utc_now(),
            parse_datetime(request.args.get("start")),
            parse_datetime(request.args.get("end")),
        )

    try:
        appointments = Appointment.query.order_by(Appointment.start_time.desc()).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch appointments", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    if date_range != "all":
        appointments = [a for a in appointments if in_period(a.start_time, start, end)]

    if search:
        def matches(appointment: Appointment) -> bool:
            client = appointment.client
            haystacks = [
                client.name if client else "",
                client.phone if client and client.phone else "",
                ", ".join(appointment.service_names),
                appointment.status,
                appointment.recurrence or "",
            ]
            return any(search in value.lower() for value in haystacks)

        appointments = [a for a in appointments if matches(a)]

    return jsonify({"appointments": [a.to_dict() for a in appointments]}), 200


@bp.get("/appointments/<int:appointment_id>")
@login_required
def get_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return _not_found("Appointment not found")
    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.post("/appointments")
@login_required
def create_appointment() -> tuple[dict[str, object], int]:
    """Book an appointment, optionally repeating weekly.
    ---
    tags:
      - Appointments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            client_id:
              type: integer
            service_ids:
              type: array
              items:
                type: integer
            start_time:
              type: string
              format: date-time
            notes:
              type: string
            recurrence:
              type: object
              properties:
                type:
                  type: string
                  example: weekly
                days:
                  type: array
                  items:
                    type: string
                    enum: [mon, tue, wed, thu, fri, sat, sun]
                weeks:
                  type: integer
                  default: 4
            force:
              type: boolean
              description: Book even when occurrences hit a blocked schedule
          required:
            - client_id
            - service_ids
            - start_time
    responses:
      201:
        description: Appointment(s) created
      400:
        description: Invalid payload
      404:
        description: Client or service not found
      409:
        description: Occurrences conflict with blocked schedules
      500:
        description: Database error
    """
    payload = request.get_json(silent=True) or {}
    booking, error = _parse_booking(payload)
    if error:
        return _invalid(error)

    services, error_response = _load_booking_refs(booking)
    if error_response:
        return error_response

    duration = appointment_duration(len(services))
    slots = expand_occurrences(booking["start_time"], duration, booking["recurrence"])

    try:
        conflicts = find_conflicts(slots)
        if conflicts and not booking["force"]:
            return _conflict_response(conflicts)

        created = _create_appointments(booking, services, slots)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info(
        "Booked %d appointment(s) for client %s", len(created), booking["client_id"]
    )
    return (
        jsonify({
            "message": "Appointment created successfully",
            "appointments": [a.to_dict() for a in created],
            "conflicts": conflicts,
        }),
        201,
    )


@bp.put("/appointments/<int:appointment_id>")
@login_required
def update_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Edit an appointment.

    A recurring appointment (or one being turned into a recurring one) is
    rebuilt: the whole series is deleted and generated again from the new
    data. A one-off appointment is updated in place and its service lines
    are reconciled.
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Appointment(s) updated
      400:
        description: Invalid payload
      404:
        description: Appointment, client or service not found
      409:
        description: Occurrences conflict with blocked schedules
      500:
        description: Database error
    """
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return _not_found("Appointment not found")

    payload = request.get_json(silent=True) or {}
    booking, error = _parse_booking(payload)
    if error:
        return _invalid(error)

    services, error_response = _load_booking_refs(booking)
    if error_response:
        return error_response

    duration = appointment_duration(len(services))
    slots = expand_occurrences(booking["start_time"], duration, booking["recurrence"])

    try:
        conflicts = find_conflicts(slots)
        if conflicts and not booking["force"]:
            return _conflict_response(conflicts)

        if appointment.series_id or booking["recurrence"]:
            series = _series_of(appointment)
            _delete_appointments(series)
            updated = _create_appointments(booking, services, slots)
            current_app.logger.info(
                "Rebuilt series of appointment %s: %d removed, %d created",
                appointment_id, len(series), len(updated),
            )
        else:
            start, end = slots[0]
            appointment.client = db.session.get(Client, booking["client_id"])
            appointment.start_time = start
            appointment.end_time = end
            appointment.notes = booking["notes"]
            completed = appointment.status == "completed"

            wanted = {s.service_id: s for s in services}
            for line in list(appointment.services):
                if line.service_id not in wanted:
                    appointment.services.remove(line)
            existing = {line.service_id for line in appointment.services}
            for service_id, service in wanted.items():
                if service_id not in existing:
                    appointment.services.append(AppointmentService(
                        service_id=service_id,
                        price_cents=service.price_cents,
                        # Lines added after completion are charged at the booked price
                        final_price_cents=service.price_cents if completed else 0,
                    ))

            if completed:
                appointment.final_price_cents = sum(line.final_price_cents for line in appointment.services)
                _sync_appointment_ledger_entry(appointment)
            updated = [appointment]

        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return (
        jsonify({
            "message": "Appointment updated successfully",
            "appointments": [a.to_dict() for a in updated],
            "conflicts": conflicts,
        }),
        200,
    )


def _sync_appointment_ledger_entry(appointment: Appointment) -> None:
    """Keep one income entry per completed appointment, matching its final price."""
    entry = FinancialTransaction.query.filter_by(
        related_appointment_id=appointment.appointment_id
    ).first()

    if appointment.status != "completed" or appointment.final_price_cents <= 0:
        if entry is not None:
            db.session.delete(entry)
        return

    client_name = appointment.client.name if appointment.client else "Unidentified client"
    if entry is None:
        entry = FinancialTransaction(
            type="income",
            category="Services",
            related_appointment_id=appointment.appointment_id,
            created_by=g.profile_id,
        )
        db.session.add(entry)
    entry.description = f"Appointment: {client_name}"
    entry.amount_cents = appointment.final_price_cents
    entry.transaction_date = appointment.start_time


@bp.post("/appointments/<int:appointment_id>/complete")
@login_required
def complete_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Mark an appointment completed and record what was charged.
    ---
    tags:
      - Appointments
    parameters:
      - name: body
        in: body
        schema:
          type: object
          properties:
            final_prices:
              type: object
              description: Map of appointment service line id to charged cents.
                Lines left out are charged at their booked price.
    responses:
      200:
        description: Appointment completed
      400:
        description: Invalid final price
      404:
        description: Appointment not found
    """
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return _not_found("Appointment not found")

    payload = request.get_json(silent=True) or {}
    final_prices = payload.get("final_prices") or {}
    if not isinstance(final_prices, dict):
        return _invalid("final_prices must be an object")

    lines = {str(line.appointment_service_id): line for line in appointment.services}
    unknown = [key for key in final_prices if str(key) not in lines]
    if unknown:
        return _invalid(f"unknown appointment service line: {unknown[0]}")

    charged: dict[str, int] = {}
    for key, line in lines.items():
        raw = final_prices.get(key, final_prices.get(line.appointment_service_id))
        if raw is None:
            charged[key] = line.price_cents
            continue
        cents = parse_cents(raw)
        if cents is None:
            return _invalid("final prices must be non-negative integers (cents)")
        charged[key] = cents

    try:
        for key, line in lines.items():
            line.final_price_cents = charged[key]
        appointment.final_price_cents = sum(charged.values())
        appointment.status = "completed"
        _sync_appointment_ledger_entry(appointment)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to complete appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Appointment completed successfully", "appointment": appointment.to_dict()}), 200


@bp.post("/appointments/<int:appointment_id>/cancel")
@login_required
def cancel_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return _not_found("Appointment not found")

    try:
        appointment.status = "cancelled"
        _sync_appointment_ledger_entry(appointment)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Appointment cancelled successfully", "appointment": appointment.to_dict()}), 200


@bp.delete("/appointments/<int:appointment_id>")
@login_required
def delete_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Delete an appointment, or its whole recurring series.
    ---
    tags:
      - Appointments
    parameters:
      - name: scope
        in: query
        type: string
        enum: [single, all]
        default: single
    responses:
      200:
        description: Appointment(s) deleted
      400:
        description: Invalid scope
      404:
        description: Appointment not found
    """
    scope = (request.args.get("scope") or "single").strip().lower()
    if scope not in ("single", "all"):
        return _invalid("scope must be 'single' or 'all'")

    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return _not_found("Appointment not found")

    targets = _series_of(appointment) if scope == "all" else [appointment]

    try:
        _delete_appointments(targets)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete appointment", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    message = "Recurring appointments deleted successfully" if len(targets) > 1 else "Appointment deleted successfully"
    return jsonify({"message": message, "deleted": len(targets)}), 200

# --- END: Appointments ---


# --- BEGIN: Blocked schedules ---

def _parse_block(payload: dict):
    start_time = parse_datetime(payload.get("start_time"))
    end_time = parse_datetime(payload.get("end_time"))
    if start_time is None or end_time is None:
        return None, "start_time and end_time are required ISO datetimes"
    if start_time >= end_time:
        return None, "start_time must be before end_time"
    return {
        "start_time": start_time,
        "end_time": end_time,
        "reason": (payload.get("reason") or "").strip() or None,
    }, None


@bp.get("/blocked-schedules")
@login_required
def list_blocked_schedules() -> tuple[dict[str, object], int]:
    try:
        blocks = BlockedSchedule.query.order_by(BlockedSchedule.start_time.asc()).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch blocked schedules", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"blocked_schedules": [b.to_dict() for b in blocks]}), 200


@bp.get("/blocked-schedules/check")
@login_required
def check_blocked_schedule() -> tuple[dict[str, object], int]:
    """Tell whether an interval touches any blocked schedule.
    ---
    tags:
      - Blocked schedules
    parameters:
      - name: start
        in: query
        type: string
        format: date-time
        required: true
      - name: end
        in: query
        type: string
        format: date-time
        required: true
    responses:
      200:
        description: Whether the interval is blocked
      400:
        description: Missing or invalid bounds
    """
    start = parse_datetime(request.args.get("start"))
    end = parse_datetime(request.args.get("end"))
    if start is None or end is None:
        return _invalid("start and end query parameters are required ISO datetimes")
    if start > end:
        return _invalid("start must not be after end")

    conflicts = find_conflicts([(start, end)])
    return jsonify({
        "blocked": bool(conflicts),
        "blocked_by": conflicts[0]["blocked_by"] if conflicts else [],
    }), 200


@bp.post("/blocked-schedules")
@login_required
def create_blocked_schedule() -> tuple[dict[str, object], int]:
    """Block a time interval.
    ---
    tags:
      - Blocked schedules
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            start_time:
              type: string
              format: date-time
            end_time:
              type: string
              format: date-time
            reason:
              type: string
          required:
            - start_time
            - end_time
    responses:
      201:
        description: Interval blocked
      400:
        description: Missing bounds or start not before end
    """
    block_data, error = _parse_block(request.get_json(silent=True) or {})
    if error:
        return _invalid(error)

    try:
        block = BlockedSchedule(created_by=g.profile_id, **block_data)
        db.session.add(block)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create blocked schedule", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Schedule blocked successfully", "blocked_schedule": block.to_dict()}), 201


@bp.put("/blocked-schedules/<int:block_id>")
@login_required
def update_blocked_schedule(block_id: int) -> tuple[dict[str, object], int]:
    block = db.session.get(BlockedSchedule, block_id)
    if block is None:
        return _not_found("Blocked schedule not found")

    block_data, error = _parse_block(request.get_json(silent=True) or {})
    if error:
        return _invalid(error)

    try:
        block.start_time = block_data["start_time"]
        block.end_time = block_data["end_time"]
        block.reason = block_data["reason"]
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update blocked schedule", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Blocked schedule updated successfully", "blocked_schedule": block.to_dict()}), 200


@bp.delete("/blocked-schedules/<int:block_id>")
@login_required
def delete_blocked_schedule(block_id: int) -> tuple[dict[str, object], int]:
    block = db.session.get(BlockedSchedule, block_id)
    if block is None:
        return _not_found("Blocked schedule not found")

    try:
        db.session.delete(block)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete blocked schedule", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Blocked schedule deleted successfully"}), 200

# --- END: Blocked schedules ---


def register_routes(app: Flask) -> None:
    from .routes_extended import bp_ext

    app.register_blueprint(bp)
    app.register_blueprint(bp_ext)
