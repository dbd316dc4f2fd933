"""Structured JSON logging configuration.

Provides:
  - JSON-formatted log output for production observability
  - Human-readable colored output for development
  - Settlement ID correlation across every module a settlement touches

The current settlement id lives in a context variable rather than on any one
logger, so records emitted by the hasher, verifier, registry or tokens while a
settlement is running carry the same id as the engine's own records.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

# Extra record attributes copied into the JSON payload when present
_EXTRA_FIELDS = (
    "duration_ms",
    "trade_digest",
    "seller",
    "bidder",
    "token",
    "block_number",
    "chain_id",
    "proof_hash",
    "error_code",
)

# ── Context variable for the running settlement ─────────────────────────────

_current_settlement_id: ContextVar[str | None] = ContextVar("current_settlement_id", default=None)


def get_current_settlement_id() -> str | None:
    """Read the id of the settlement running in this context, if any."""
    return _current_settlement_id.get()


@contextmanager
def settlement_context(settlement_id: str | None = None) -> Iterator[str]:
    """Bind a settlement id to the current context for the duration of the block.

    Nested blocks see their own id and restore the outer one on exit. Threads
    and asyncio tasks each get an independent copy.
    """
    settlement_id = settlement_id or str(uuid.uuid4())
    token = _current_settlement_id.set(settlement_id)
    try:
        yield settlement_id
    finally:
        _current_settlement_id.reset(token)


class SettlementLogFilter(logging.Filter):
    """Stamps the id of the running settlement on every record it sees.

    Attach it to handlers, not loggers: a logger's filters only apply to
    records created on that exact logger, while a handler sees records
    propagated from every module.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        settlement_id = _current_settlement_id.get()
        if settlement_id is not None and not hasattr(record, "settlement_id"):
            record.settlement_id = settlement_id  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        if hasattr(record, "settlement_id"):
            log_entry["settlement_id"] = record.settlement_id

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Colored human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        prefix = f"{color}{ts} [{record.levelname:>8s}]{self.RESET}"
        msg = record.getMessage()

        settlement_id = getattr(record, "settlement_id", None)
        if settlement_id:
            msg = f"[{settlement_id[:8]}] {msg}"

        base = f"{prefix} {record.name}: {msg}"
        if record.exc_info and record.exc_info[1]:
            base += "\n" + self.formatException(record.exc_info)
        return base


def setup_logging(env: str = "development", log_level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        env: Application environment (development/staging/production)
        log_level: Minimum log level
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if env in ("staging", "production"):
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevFormatter())
    handler.addFilter(SettlementLogFilter())

    root.addHandler(handler)
