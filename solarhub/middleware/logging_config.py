"""
Structured logging configuration.

- Development: human-readable colored format
- Production: JSON format (log aggregator compatible)
- Log level: controlled via LOG_LEVEL env variable

Records about a governed row carry ``table_name`` / ``record_id`` /
``action`` as ``extra``; the acting user is attached from the request by
``ActorContextFilter``. Both formatters render that context:

    JSON      {"...": ..., "record": {"table": "partners", "id": "3", "action": "DELETE"}, "actor": "u-1"}
    readable  10:02:11 WARNING  solarhub.services.audit_service: Audit write failed ... [partners#3 DELETE by u-1]
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

_REQUEST_KEYS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")


def _record_context(record: logging.LogRecord) -> dict:
    """The governed-row fields present on ``record`` (table, id, action)."""
    ctx = {
        "table": getattr(record, "table_name", None),
        "id": getattr(record, "record_id", None),
        "action": getattr(record, "action", None),
    }
    return {k: v for k, v in ctx.items() if v is not None}


class ActorContextFilter(logging.Filter):
    """Copy the acting user and request id from ``g`` onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "actor_user_id", None) is None:
                record.actor_user_id = getattr(g, "actor_user_id", None)
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        for key in _REQUEST_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        actor = getattr(record, "actor_user_id", None)
        if actor is not None:
            log_entry["actor"] = actor
        ctx = _record_context(record)
        if ctx:
            log_entry["record"] = ctx
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Human-readable colored formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def _suffix(record: logging.LogRecord) -> str:
        ctx = _record_context(record)
        actor = getattr(record, "actor_user_id", None)
        parts = []
        if "table" in ctx:
            target = ctx["table"] + (f"#{ctx['id']}" if "id" in ctx else "")
            parts.append(" ".join(p for p in (target, ctx.get("action")) if p))
        if actor:
            parts.append(f"by {actor}")
        suffix = f" [{' '.join(parts)}]" if parts else ""
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            suffix += f" [{duration:.0f}ms]"
        return suffix

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        base = (
            f"{color}{ts} {record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}{self._suffix(record)}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging(app):
    """
    Set up structured logging for the Flask app.

    Reads LOG_LEVEL from env (default: DEBUG in dev, INFO in prod).
    Development  → ReadableFormatter on stderr
    Production   → JSONFormatter on stderr
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(ActorContextFilter())
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("urllib3", "werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
