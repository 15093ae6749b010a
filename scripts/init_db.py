#!/usr/bin/env python3
"""Create every salon manager table that does not exist yet."""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from salon_manager import create_app
from salon_manager.extensions import db


def init_database(config_name=None):
    app = create_app(config_name)
    with app.app_context():
        db.create_all()
        app.logger.info("Tables created on %s", app.config["SQLALCHEMY_DATABASE_URI"])
        print("✅ Database tables initialized successfully")


if __name__ == "__main__":
    init_database(sys.argv[1] if len(sys.argv) > 1 else None)
