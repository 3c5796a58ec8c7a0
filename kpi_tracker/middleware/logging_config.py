"""
Logging setup for the KPI tracker.

Every record emitted while a request is being served carries the request id
and the caller's scope (user, tenant or legacy, project, super-admin), so a
single tenant's traffic can be followed through service logs as well as the
access lines written by the timing middleware.

Output is JSON lines when LOG_FORMAT=json (the production default) and a
compact one-line format otherwise. LOG_LEVEL picks the threshold.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Attributes copied into JSON output when present on the record
_CONTEXT_FIELDS = ("request_id", "user_id", "tenant_id", "project_id", "super_admin_id")
_ACCESS_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr")

_QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "urllib3", "flask_limiter")


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and caller scope."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        principal = g.get("principal")
        context = {
            "request_id": g.get("request_id"),
            "user_id": principal.user_id if principal else None,
            "tenant_id": principal.tenant_id if principal else None,
            "project_id": (request.view_args or {}).get("project_id"),
            "super_admin_id": g.get("super_admin_id"),
        }
        for key, value in context.items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS + _ACCESS_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger [req tenant/user]: message``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tags = []
        request_id = getattr(record, "request_id", None)
        if request_id:
            tags.append(request_id)
        user_id = getattr(record, "user_id", None)
        if user_id is not None:
            tenant_id = getattr(record, "tenant_id", None)
            tags.append(f"{tenant_id if tenant_id is not None else 'legacy'}/{user_id}")
        elif getattr(record, "super_admin_id", None) is not None:
            tags.append(f"super/{record.super_admin_id}")
        tag = f" [{' '.join(tags)}]" if tags else ""

        line = f"{ts} {record.levelname:<7} {record.name}{tag}: {record.getMessage()}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger, driven by app config."""
    level_name = str(app.config.get("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    use_json = app.config.get("LOG_FORMAT") == "json"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if use_json else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    app.logger.setLevel(level)

    app.logger.debug("Logging ready: level=%s format=%s", level_name, "json" if use_json else "text")
