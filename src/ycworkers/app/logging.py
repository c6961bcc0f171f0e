"""Structured JSON logging for yc-workers.

Every record carries the context of the unit of work it belongs to. A
reconciliation binds its trace id and template, a launch task binds the
node and instance it is bringing up. The context lives in a ContextVar,
so each asyncio task (one per launch) has its own copy.
"""

import logging
import sys
import time
from collections import defaultdict, deque
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pythonjsonlogger import jsonlogger

from ycworkers.app.config import get_settings

_log_context: ContextVar[dict[str, str] | None] = ContextVar("log_context", default=None)

# Sliding window for EventRateLimitFilter
_WINDOW_S = 60.0


def get_log_context() -> dict[str, str]:
    return dict(_log_context.get() or {})


def bind_log_context(**fields: str | None) -> Token:
    """Add fields to the current task's log context; None drops a field.

    Returns a token for reset_log_context().
    """
    context = get_log_context()
    for key, value in fields.items():
        if value is None:
            context.pop(key, None)
        else:
            context[key] = value
    return _log_context.set(context)


def reset_log_context(token: Token) -> None:
    _log_context.reset(token)


def set_trace_id(trace_id: str | None = None) -> str:
    """Bind trace_id (a short random id if not given) and return it."""
    tid = trace_id or uuid4().hex[:8]
    bind_log_context(trace_id=tid)
    return tid


def set_template_context(template_name: str | None) -> None:
    bind_log_context(template=template_name)


def clear_trace_context() -> None:
    _log_context.set(None)


class EventRateLimitFilter(logging.Filter):
    """Caps each log event at ``per_minute`` records.

    Records are grouped by their ``event`` field; records without one
    (library loggers) are grouped by logger and line. ERROR and above
    always pass. The first record over the limit passes once with
    ``rate_limited`` set, the rest of the burst is dropped.
    """

    def __init__(self, per_minute: int = 100) -> None:
        super().__init__()
        self.per_minute = per_minute
        self._seen: dict[str, deque[float]] = defaultdict(deque)
        self._suppressing: set[str] = set()

    @staticmethod
    def _key(record: logging.LogRecord) -> str:
        event = getattr(record, "event", None)
        if event:
            return str(event)
        return f"{record.name}:{record.lineno}"

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = self._key(record)
        now = time.monotonic()
        seen = self._seen[key]
        while seen and now - seen[0] >= _WINDOW_S:
            seen.popleft()

        if len(seen) < self.per_minute:
            self._suppressing.discard(key)
            seen.append(now)
            return True
        if key in self._suppressing:
            return False
        self._suppressing.add(key)
        record.rate_limited = True
        return True


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record.

    Adds timestamp, level, logger, service and schema_version, then the
    bound log context (trace_id, template, node, instance_id). Fields
    passed explicitly through ``extra`` win over the context.
    """

    def __init__(self, service: str, schema_version: str, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = service
        self._schema_version = schema_version

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        log_record["schema_version"] = self._schema_version

        for key, value in get_log_context().items():
            log_record.setdefault(key, value)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def setup_logging(level: int | None = None) -> None:
    """Send JSON records to stdout.

    Args:
        level: Log level. If None, uses LOGGING_LEVEL from settings.
    """
    config = get_settings().logging
    if level is None:
        level = getattr(logging, config.level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ServiceJsonFormatter(config.service_name, config.schema_version))
    handler.addFilter(EventRateLimitFilter(config.rate_limit_per_minute))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # LoggingMiddleware writes the request lines
    logging.getLogger("uvicorn.access").disabled = True

    # Polling noise from the Compute API client and SSH transport
    for name in ("httpx", "httpcore", "paramiko"):
        logging.getLogger(name).setLevel(logging.WARNING)
