"""
Structured JSON logging for the stock ledger.

Every record under the ``stock_ledger`` logger becomes one JSON object per
line::

    {"ts": "...", "level": "INFO", "logger": "stock_ledger.services.ledger",
     "message": "stock_change_applied", "document_id": "...",
     "quantity_delta": 5, "new_quantity": 12}

Key order: the envelope (ts, level, logger, message), then the request
context from ``LogContext``, then the record's ``extra`` fields.  Exceptions
add ``exc_type``, ``exc_message``, ``exc_code`` and one ``exc_<attr>`` per
public attribute of a ledger error, plus the traceback.
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
from enum import Enum
from typing import Any

LOGGER_NAMESPACE = "stock_ledger"

# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

_context: ContextVar[Mapping[str, str]] = ContextVar("stock_ledger_log_context", default={})


class LogContext:
    """
    Request-scoped fields copied onto every log line.

    Backed by one ContextVar, so threads and asyncio tasks each see their
    own values.  Values are stored as strings.
    """

    FIELDS = ("correlation_id", "actor_id", "document_id", "reference", "trace_id")

    @classmethod
    def set(
        cls,
        *,
        correlation_id: Any = None,
        actor_id: Any = None,
        document_id: Any = None,
        reference: Any = None,
        trace_id: Any = None,
    ) -> None:
        """Set the given fields; None leaves a field as it was."""
        _context.set(
            cls._merged(
                correlation_id=correlation_id,
                actor_id=actor_id,
                document_id=document_id,
                reference=reference,
                trace_id=trace_id,
            )
        )

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Current fields in FIELDS order, unset ones omitted."""
        current = _context.get()
        return {name: current[name] for name in cls.FIELDS if name in current}

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """
        Set fields for the duration of a ``with`` block, then restore the
        previous context exactly (including fields that were unset).
        """
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {', '.join(sorted(unknown))}")
        token = _context.set(cls._merged(**fields))
        try:
            yield cls
        finally:
            _context.reset(token)

    @staticmethod
    def _merged(**fields: Any) -> dict[str, str]:
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        return merged


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._envelope(record)
        payload.update(LogContext.get_all())
        payload.update(self._extras(record, payload))
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _envelope(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _extras(record: logging.LogRecord, taken: Mapping[str, Any]) -> dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in taken
        }

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
            # Ledger errors keep their context as public attributes.
            fields.update(
                (f"exc_{name}", value)
                for name, value in vars(exc).items()
                if not name.startswith("_")
            )
        return fields


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``stock_ledger.<name>``, e.g. ``get_logger("services.ledger")``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``stock_ledger`` logger.

    Only the first call has an effect until ``reset_logging()``.  ``level``
    may be a name such as ``"debug"``.  Records do not propagate to the root
    logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if isinstance(level, str):
        level = level.upper()

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(target)


def reset_logging() -> None:
    """Remove handlers and allow ``configure_logging`` again.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(LOGGER_NAMESPACE)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
