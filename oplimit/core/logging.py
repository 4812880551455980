"""Structured JSON logging for the limiter service.

Bucket keys and operation names embed caller identities (hashed API keys or
client IPs), so they never reach log sinks verbatim: identity fields are
swapped for a ``key_hash`` and secrets such as Redis URLs are redacted.
Every record also carries the request id from context and the limiter's
static context (bucket mode, store backend).
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping

from oplimit.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

SECRET_FIELDS = frozenset(
    {
        "api_key",
        "x-api-key",
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "secret",
        "token",
        "app_api_keys",
        "redis_url",
        "store_redis_url",
    }
)

# Fields carrying raw caller identities; replaced by key_hash.
IDENTITY_FIELDS = frozenset({"key", "bucket_key", "op_name", "identity"})

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_key(key: str) -> str:
    """Hash a limiter or bucket key for logging without exposing identities."""

    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _scrub(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: REDACTED if str(k).lower() in SECRET_FIELDS else _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) for v in value)
    return value


def scrub_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Return log fields safe to emit.

    Secret fields become ``[REDACTED]``; identity fields are dropped and their
    value is hashed into ``key_hash`` (an explicit ``key_hash`` wins).

    Args:
        fields: Structured fields from a record's ``extra``.

    Returns:
        New dict with secrets redacted and identities hashed.
    """

    safe: dict[str, Any] = {}
    for name, value in fields.items():
        lowered = name.lower()
        if lowered in SECRET_FIELDS:
            safe[name] = REDACTED
        elif lowered in IDENTITY_FIELDS:
            safe.setdefault("key_hash", hash_key(str(value)))
        else:
            safe[name] = _scrub(value)
    if "key_hash" in fields:
        safe["key_hash"] = fields["key_hash"]
    return safe


def _extra_fields(record: LogRecord) -> dict[str, Any]:
    return {
        name: value
        for name, value in vars(record).items()
        if name not in _RECORD_ATTRS and not name.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class RedactionFilter(logging.Filter):
    """Scrub extra fields in place so every formatter sees safe values."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        extras = _extra_fields(record)
        for name in extras:
            delattr(record, name)
        for name, value in scrub_fields(extras).items():
            setattr(record, name, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: event, level, context, then scrubbed extras.

    Args:
        context: Static fields added to every record (e.g., bucket_mode).
    """

    def __init__(self, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self.context = dict(context or {})

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            **self.context,
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(scrub_fields(_extra_fields(record)))
        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
        return json.dumps(payload, default=str)


def limiter_log_context() -> dict[str, Any]:
    """Static limiter fields stamped on every JSON record."""

    return {
        "service": "oplimit",
        "bucket_mode": settings.app.rate_limit_bucket_mode,
        "store_backend": settings.store.backend,
    }


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/oplimit.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(
    log_settings: LogSettings | None = None,
    *,
    context: Mapping[str, Any] | None = None,
) -> None:
    """Install a single scrubbing handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings.
        context: Static JSON fields; defaults to :func:`limiter_log_context`.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(RedactionFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter(context=limiter_log_context() if context is None else context))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
