"""
Module: offer_kernel.logging_config
Responsibility: JSON log lines for everything under the ``offer_kernel``
    logger, stamped with the key of the offer session being handled.
Architecture position: Kernel root. Every layer logs through get_logger();
    only the exception hierarchy is imported from the project.

Invariants enforced:
    - One record is one JSON object: ts, level, logger and message first,
      then the ``extra`` fields, then the bound session key.
    - Decimal amounts are written as strings, never as floats.
    - configure_logging() owns a single handler. Calling it again swaps that
      handler; handlers attached by other code are left in place.

Failure modes:
    - Values json cannot encode are written with str(); formatting a record
      never raises for its payload.
"""

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Iterator

from offer_kernel.exceptions import OfferKernelError

LOGGER_NAMESPACE = "offer_kernel"

_session_key: ContextVar[str | None] = ContextVar("offer_session_key", default=None)


class LogContext:
    """Session key added to every record logged inside ``bind()``."""

    @staticmethod
    def session_key() -> str | None:
        return _session_key.get()

    @staticmethod
    @contextmanager
    def bind(session_key: str) -> Iterator[None]:
        """Stamp ``session_key`` on records until the block exits."""
        token = _session_key.set(session_key)
        try:
            yield
        finally:
            _session_key.reset(token)

    @staticmethod
    def clear() -> None:
        _session_key.set(None)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, OfferKernelError):
        fields["exc_code"] = exc.code
        for key, value in vars(exc).items():
            if not key.startswith("_"):
                fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        session_key = _session_key.get()
        if session_key is not None:
            payload.setdefault("session_key", session_key)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the offer_kernel namespace, e.g. ``services.autosave``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_handler: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """Send offer_kernel records at ``level`` and above to one JSON handler.

    ``handler`` defaults to a stream handler on ``stream`` (stderr when
    omitted). Returns the installed handler.
    """
    global _handler
    installed = handler or logging.StreamHandler(stream or sys.stderr)
    installed.setFormatter(StructuredFormatter())

    root = logging.getLogger(LOGGER_NAMESPACE)
    with _lock:
        if _handler is not None:
            root.removeHandler(_handler)
        _handler = installed
        root.addHandler(installed)
        root.setLevel(level)
        root.propagate = False
    return installed
