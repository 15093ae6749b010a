"""Logging setup shared by the app factory and scripts."""
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from flask import Flask
from flask.logging import default_handler


def setup_logging(app: Flask) -> logging.Logger:
    """Attach console (and optional rotating file) handlers to the app logger.

    Module loggers under the package name propagate into ``app.logger``, so
    ``logging.getLogger(__name__)`` and ``current_app.logger`` end up in the
    same place.
    """
    log_level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(app.config.get("LOG_FORMAT") or logging.BASIC_FORMAT)

    logger = app.logger
    logger.setLevel(log_level)
    logger.removeHandler(default_handler)

    for handler in list(logger.handlers):
        if getattr(handler, "_salon_manager", False):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler._salon_manager = True
    logger.addHandler(console_handler)

    log_file = app.config.get("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler._salon_manager = True
        logger.addHandler(file_handler)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    logger.debug("Logging initialized at %s level", logging.getLevelName(log_level))
    return logger
