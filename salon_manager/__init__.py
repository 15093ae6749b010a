from __future__ import annotations

from collections.abc import Mapping

from flask import Flask
from flask_cors import CORS

from .config import config_by_name
from .extensions import db
from .logging_config import setup_logging
from .routes import register_routes


def create_app(config_object=None):
    """Build the Flask application.

    ``config_object`` may be a config name ("development", "testing", ...),
    a mapping of overrides applied on top of the base config, or a config
    class/object. Without it the ``APP_SETTINGS`` file is honoured.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_by_name["default"])

    if isinstance(config_object, str):
        app.config.from_object(config_by_name[config_object])
    elif isinstance(config_object, Mapping):
        app.config.from_mapping(config_object)
    elif config_object is not None:
        app.config.from_object(config_object)
    else:
        app.config.from_envvar("APP_SETTINGS", silent=True)

    setup_logging(app)
    db.init_app(app)

    # Allow the frontend to talk to the backend
    CORS(app,
         origins=app.config["CORS_ORIGINS"],
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    register_routes(app)

    return app
