#!/usr/bin/env python3
"""Seed a demo login with a few clients, services and inventory items."""
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from salon_manager import create_app
from salon_manager.extensions import db
from salon_manager.models import AuthAccount, Client, InventoryItem, Profile, Service

DEMO_EMAIL = "demo@salon.local"
DEMO_PASSWORD = "demo123"

SAMPLE_CLIENTS = [
    {"name": "Maria Silva", "phone": "11987654321"},
    {"name": "Ana Souza", "phone": "1133334444"},
    {"name": "Beatriz Lima", "phone": None},
]

SAMPLE_SERVICES = [
    {"name": "Haircut", "price_cents": 5000},
    {"name": "Coloring", "price_cents": 12000},
    {"name": "Manicure", "price_cents": 3500},
    {"name": "Eyebrow design", "price_cents": 2500},
]

SAMPLE_ITEMS = [
    {"name": "Moisturizing shampoo", "quantity": 20, "cost_price_cents": 1800,
     "selling_price_cents": 3500, "category": "Hair care"},
    {"name": "Repair mask", "quantity": 4, "cost_price_cents": 3200,
     "selling_price_cents": 5900, "category": "Hair care"},
    {"name": "Nail polish", "quantity": 0, "cost_price_cents": 600,
     "selling_price_cents": 1500, "category": "Nails"},
]


def seed_demo():
    """Create the demo profile and catalogs; rows that already exist are skipped."""
    app = create_app()

    with app.app_context():
        db.create_all()

        profile = Profile.query.filter_by(email=DEMO_EMAIL).first()
        if profile is None:
            profile = Profile(email=DEMO_EMAIL, name="Demo Owner")
            db.session.add(profile)
            db.session.flush()
            db.session.add(AuthAccount(
                profile_id=profile.profile_id,
                password_hash=generate_password_hash(DEMO_PASSWORD),
            ))
            print(f"👤 Created demo login {DEMO_EMAIL} / {DEMO_PASSWORD}")

        added = 0
        for data in SAMPLE_CLIENTS:
            if not Client.query.filter_by(name=data["name"]).first():
                db.session.add(Client(created_by=profile.profile_id, **data))
                added += 1
        for data in SAMPLE_SERVICES:
            if not Service.query.filter_by(name=data["name"]).first():
                db.session.add(Service(created_by=profile.profile_id, **data))
                added += 1
        for data in SAMPLE_ITEMS:
            if not InventoryItem.query.filter_by(name=data["name"]).first():
                db.session.add(InventoryItem(created_by=profile.profile_id, **data))
                added += 1

        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Seeding failed", exc_info=exc)
            print("❌ Seeding failed, see the log for details")
            sys.exit(1)

        print(f"✅ Added {added} demo rows")


if __name__ == "__main__":
    seed_demo()
