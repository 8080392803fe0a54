"""Logging setup for the tracker: stdout plus a rotating file, tagged per request."""

from __future__ import annotations

import logging
import sys
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, g, has_request_context

LOG_FORMAT = "%(asctime)s [%(levelname)s] [req=%(request_id)s] %(name)s: %(message)s"
REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        request_id = getattr(g, "request_id", None) if has_request_context() else None
        record.request_id = request_id or "-"
        return True


def assign_request_id() -> None:
    g.request_id = uuid.uuid4().hex[:12]


def echo_request_id(response):
    request_id = getattr(g, "request_id", None)
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    logger.addHandler(handler)


def configure_logging(app: Flask) -> Path:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    logs_dir = Path(app.config.get("LOG_DIR") or Path(app.root_path).parent / "logs")
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = (logs_dir / app.config.get("LOG_FILENAME", "stock_tracker.log")).resolve()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # one stdout handler, and one file handler per log path
    if not any(type(handler) is logging.StreamHandler for handler in root_logger.handlers):
        _attach(root_logger, logging.StreamHandler(sys.stdout), level)
    if not any(
        isinstance(handler, RotatingFileHandler) and handler.baseFilename == str(log_path)
        for handler in root_logger.handlers
    ):
        _attach(
            root_logger,
            RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5),
            level,
        )

    for handler in app.logger.handlers:
        handler.addFilter(RequestIdFilter())
    app.logger.setLevel(level)
    for name in ("werkzeug", "gunicorn.error", "gunicorn.access"):
        logging.getLogger(name).setLevel(level)

    app.before_request(assign_request_id)
    app.after_request(echo_request_id)
    return log_path
