# Overview: Application logging configuration (stream + optional rotating file) with request ids.

import logging
from logging.handlers import RotatingFileHandler
import os

from flask import g, has_request_context
from flask.logging import default_handler


LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(request_id)s] in %(module)s: %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamp every record with the current request id ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = "-"
        if has_request_context():
            request_id = getattr(g, "request_id", None) or "-"
        record.request_id = request_id
        return True


def configure_logging(app) -> None:
    """
    Attach handlers to app.logger.

    The app is created as "bms", so app.logger is also the parent of every
    service module logger (logging.getLogger(__name__)); one set of handlers
    covers both. Handlers from a previous create_app() are replaced.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)
    request_filter = RequestIdFilter()

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)
    handlers.append(stream_handler)

    log_file = app.config.get("LOG_FILE")
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=app.config.get("LOG_MAX_BYTES", 5 * 1024 * 1024),
            backupCount=app.config.get("LOG_BACKUP_COUNT", 3),
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        handlers.append(file_handler)

    logger = app.logger
    logger.removeHandler(default_handler)
    for old in [h for h in logger.handlers if getattr(h, "bms_managed", False)]:
        logger.removeHandler(old)
        old.close()

    for handler in handlers:
        handler.addFilter(request_filter)
        handler.bms_managed = True
        logger.addHandler(handler)
    logger.setLevel(level)
