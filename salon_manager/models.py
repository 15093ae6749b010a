"""Database models for the salon manager backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db
from .utils import cents_to_amount, format_phone, isoformat


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(db.Model):
    __tablename__ = "profiles"

    profile_id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(150))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    auth_account = db.relationship("AuthAccount", back_populates="profile", uselist=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.profile_id,
            "email": self.email,
            "name": self.name,
            "created_at": isoformat(self.created_at),
        }


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    profile = db.relationship("Profile", back_populates="auth_account")


class Client(db.Model):
    __tablename__ = "clients"

    client_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30))
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.client_id,
            "name": self.name,
            "phone": self.phone,
            "phone_display": format_phone(self.phone),
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
        }


class Service(db.Model):
    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "price": cents_to_amount(self.price_cents),
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
        }


class Appointment(db.Model):
    """A single booked visit; recurring bookings share ``series_id``."""

    __tablename__ = "appointments"

    appointment_id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)
    status = db.Column(
        db.Enum(
            "scheduled",
            "completed",
            "cancelled",
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="scheduled",
        server_default="scheduled",
    )
    notes = db.Column(db.Text)
    final_price_cents = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    # weekly-<days>-<weeks>, e.g. "weekly-mon,wed-4"
    recurrence = db.Column(db.String(100))
    series_id = db.Column(db.String(36), index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    client = db.relationship("Client")
    services = db.relationship(
        "AppointmentService",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentService.appointment_service_id",
    )

    @property
    def service_names(self) -> list[str]:
        return [line.service.name if line.service else "Unknown" for line in self.services]

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "client_id": self.client_id,
            "client": {
                "id": self.client.client_id,
                "name": self.client.name,
                "phone": self.client.phone,
            } if self.client else None,
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "status": self.status,
            "notes": self.notes,
            "final_price_cents": self.final_price_cents,
            "final_price": cents_to_amount(self.final_price_cents),
            "recurrence": self.recurrence,
            "series_id": self.series_id,
            "services": [line.to_dict() for line in self.services],
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class AppointmentService(db.Model):
    __tablename__ = "appointment_services"

    appointment_service_id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(
        db.Integer, db.ForeignKey("appointments.appointment_id"), nullable=False, index=True
    )
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    # Price of the service at booking time
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    final_price_cents = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    appointment = db.relationship("Appointment", back_populates="services")
    service = db.relationship("Service")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_service_id,
            "service_id": self.service_id,
            "name": self.service.name if self.service else None,
            "price_cents": self.price_cents,
            "price": cents_to_amount(self.price_cents),
            "final_price_cents": self.final_price_cents,
            "final_price": cents_to_amount(self.final_price_cents),
        }


class InventoryItem(db.Model):
    __tablename__ = "inventory"

    item_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(100), nullable=False, default="General", server_default="General")
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    # At or below this quantity the item is flagged as low stock
    LOW_STOCK_THRESHOLD = 5

    @property
    def margin_percent(self) -> float:
        if not self.cost_price_cents:
            return 0.0
        return round((self.selling_price_cents - self.cost_price_cents) / self.cost_price_cents * 100, 2)

    @property
    def stock_status(self) -> str:
        if self.quantity <= 0:
            return "out_of_stock"
        if self.quantity <= self.LOW_STOCK_THRESHOLD:
            return "low_stock"
        return "in_stock"

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "cost_price_cents": self.cost_price_cents,
            "cost_price": cents_to_amount(self.cost_price_cents),
            "selling_price_cents": self.selling_price_cents,
            "selling_price": cents_to_amount(self.selling_price_cents),
            "category": self.category,
            "margin_percent": self.margin_percent,
            "stock_status": self.stock_status,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
        }


class Sale(db.Model):
    __tablename__ = "sales"

    sale_id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.client_id"), nullable=True)
    sale_date = db.Column(db.DateTime, nullable=False, default=utc_now, index=True)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(50))
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    client = db.relationship("Client")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.sale_item_id",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.sale_id,
            "client_id": self.client_id,
            "client": {"id": self.client.client_id, "name": self.client.name} if self.client else None,
            "sale_date": isoformat(self.sale_date),
            "total_amount_cents": self.total_amount_cents,
            "total_amount": cents_to_amount(self.total_amount_cents),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
        }


class SaleItem(db.Model):
    __tablename__ = "sale_items"

    sale_item_id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.sale_id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory.item_id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)

    sale = db.relationship("Sale", back_populates="items")
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.sale_item_id,
            "inventory_id": self.inventory_id,
            "name": self.inventory_item.name if self.inventory_item else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_price": cents_to_amount(self.unit_price_cents),
            "total_price_cents": self.total_price_cents,
            "total_price": cents_to_amount(self.total_price_cents),
        }


class FinancialTransaction(db.Model):
    """Ledger entry; entries created by sales or completed appointments are linked to them."""

    __tablename__ = "financial_transactions"

    transaction_id = db.Column(db.Integer, primary_key=True)
    transaction_date = db.Column(db.DateTime, nullable=False, default=utc_now, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(
        db.Enum(
            "income",
            "expense",
            name="transaction_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    category = db.Column(db.String(100))
    related_sale_id = db.Column(db.Integer, db.ForeignKey("sales.sale_id"), nullable=True)
    related_appointment_id = db.Column(
        db.Integer, db.ForeignKey("appointments.appointment_id"), nullable=True
    )
    payment_method = db.Column(db.String(50))
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    @property
    def is_linked(self) -> bool:
        return self.related_sale_id is not None or self.related_appointment_id is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.transaction_id,
            "transaction_date": isoformat(self.transaction_date),
            "description": self.description,
            "amount_cents": self.amount_cents,
            "amount": cents_to_amount(self.amount_cents),
            "type": self.type,
            "category": self.category,
            "related_sale_id": self.related_sale_id,
            "related_appointment_id": self.related_appointment_id,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "is_linked": self.is_linked,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
        }


class BlockedSchedule(db.Model):
    """Operator-defined interval in which new appointments are flagged as conflicting."""

    __tablename__ = "blocked_schedules"

    block_id = db.Column(db.Integer, primary_key=True)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)
    reason = db.Column(db.String(255))
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.profile_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.block_id,
            "start_time": isoformat(self.start_time),
            "end_time": isoformat(self.end_time),
            "reason": self.reason,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
