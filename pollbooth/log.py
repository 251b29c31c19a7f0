import logging
import sys

from flask import g, has_request_context


class RequestIdFilter(logging.Filter):
    """Stamp every record with the id of the request being served, if any."""

    def filter(self, record):
        record.request_id = getattr(g, "request_id", "-") if has_request_context() else "-"
        return True


def configure_logging(app):
    """Configure application logging"""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    # app.logger is the "pollbooth" logger; service module loggers are its children
    app.logger.setLevel(level)
    app.logger.handlers.clear()
    app.logger.addHandler(handler)
    app.logger.propagate = False

    # Silence noisy libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
