"""
Structured JSON logging for the WMS kernel.

Every amend or void request binds its correlation id, acting user,
transaction and line into LogContext; each log line written while the
binding is active carries those fields, so one request can be followed
across the command boundary, the engines and the unit of work.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "wms_kernel"

# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

_REQUEST_FIELDS = ("correlation_id", "actor_id", "transaction_id", "line_id")

_request_context: ContextVar[Mapping[str, str]] = ContextVar(
    "wms_request_context", default={}
)


class LogContext:
    """Request-scoped fields merged into every log line (thread and task safe)."""

    @staticmethod
    def _known(fields: Mapping[str, Any]) -> dict[str, str]:
        return {
            name: str(value)
            for name, value in fields.items()
            if name in _REQUEST_FIELDS and value is not None
        }

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Merge fields into the current context. None values are ignored."""
        _request_context.set({**_request_context.get(), **cls._known(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        current = _request_context.get()
        return {name: current[name] for name in _REQUEST_FIELDS if name in current}

    @classmethod
    def clear(cls) -> None:
        _request_context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a block, then restore the previous context."""
        token = _request_context.set({**_request_context.get(), **cls._known(fields)})
        try:
            yield cls
        finally:
            _request_context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    # WmsKernelError subclasses keep their context as public attributes
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name not in ("args", "code", "message"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: envelope, request context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the wms_kernel namespace, e.g. ``wms_kernel.services.void``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_installed_handler: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the wms_kernel logger.

    Only the first call takes effect until reset_logging(); the engine
    calls this on initialization, so an application that wants a
    different handler or level configures logging before that.
    """
    global _installed_handler
    with _lock:
        if _installed_handler is not None:
            return
        _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)
        _installed_handler.setFormatter(StructuredFormatter())

        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        kernel_logger.setLevel(level)
        kernel_logger.propagate = False
        kernel_logger.addHandler(_installed_handler)


def reset_logging() -> None:
    """Detach the handler installed by configure_logging(). Tests only."""
    global _installed_handler
    with _lock:
        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        kernel_logger.handlers.clear()
        kernel_logger.setLevel(logging.WARNING)
        _installed_handler = None
