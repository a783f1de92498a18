"""Structured logging setup with ledger-context support.

Two output formats are supported, controlled by the ``LOG_FORMAT`` environment
variable (mapped to ``settings.log_format``):

- ``text`` (default): human-readable console output for local development.
  Format: ``2024-01-01 12:00:00 | INFO     | vaultcore.vault | [tx=N/A]
           [vault=0xVAULT] [op=deposit] | message``

- ``json``: structured JSON for log aggregators. Each line is a valid JSON
  object with fields ``timestamp``, ``level``, ``logger``, ``message``,
  ``tx_id``, ``vault``, ``strategy_id``, ``operation``, ``service`` and (on
  exceptions) ``exc_type``/``exc_value``/``exc_trace``.

Context propagation:
  Ledger operations bind the vault identity, the operation name and a
  transaction id for their duration, so every log line emitted by nested
  strategy calls carries them.

  Use the helpers ``set_ledger_context()`` / ``clear_ledger_context()`` or the
  ``ledger_context()`` context manager rather than manipulating the
  ContextVars directly.
"""

import json
import logging
import sys
import traceback
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Context variables
# ---------------------------------------------------------------------------

tx_id_var: ContextVar[str | None] = ContextVar("tx_id", default=None)
vault_var: ContextVar[str | None] = ContextVar("vault", default=None)
strategy_var: ContextVar[str | None] = ContextVar("strategy_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)

# Service name embedded in JSON logs
_SERVICE_NAME = "vaultcore"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class ContextFilter(logging.Filter):
    """Inject transaction id and ledger context into every log record.

    Fields injected onto every ``LogRecord``:
    - ``tx_id``      : transaction id or "N/A"
    - ``vault``      : active vault identity (empty string when not set)
    - ``strategy_id``: active strategy identity (empty string when not set)
    - ``operation``  : public operation being executed (empty string when not set)
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.tx_id = tx_id_var.get() or "N/A"
        record.vault = vault_var.get() or ""
        record.strategy_id = strategy_var.get() or ""
        record.operation = operation_var.get() or ""
        return True


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

class JSONFormatter(logging.Formatter):
    """Emit one JSON object per log line.

    Ledger-context fields are empty strings (not "N/A") when absent so that
    log aggregators can filter them cleanly with ``vault != ""``.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=UTC).isoformat()

        payload: dict[str, Any] = {
            "timestamp": ts,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "tx_id": getattr(record, "tx_id", "N/A"),
            "vault": getattr(record, "vault", ""),
            "strategy_id": getattr(record, "strategy_id", ""),
            "operation": getattr(record, "operation", ""),
            "service": _SERVICE_NAME,
        }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["exc_type"] = exc_type.__name__ if exc_type else None
            payload["exc_value"] = str(exc_value)
            payload["exc_trace"] = traceback.format_exception(exc_type, exc_value, exc_tb)

        return json.dumps(payload, default=str)


class _LedgerTextFormatter(logging.Formatter):
    """Human-readable text formatter that conditionally appends ledger context.

    Base format::

        2024-01-01 12:00:00 | INFO     | vaultcore.vault | [tx=N/A] | message

    Empty context fields are omitted entirely.
    """

    _BASE_FMT = "%(asctime)s | %(levelname)-8s | %(name)s | [tx=%(tx_id)s]"
    _DATE_FMT = "%Y-%m-%d %H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self._BASE_FMT, datefmt=self._DATE_FMT)

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.datefmt)
        base = self.formatMessage(record)

        tokens: list[str] = []
        vault = getattr(record, "vault", "")
        strat = getattr(record, "strategy_id", "")
        op = getattr(record, "operation", "")
        if vault:
            tokens.append(f"[vault={vault}]")
        if strat:
            tokens.append(f"[strat={strat}]")
        if op:
            tokens.append(f"[op={op}]")

        context_part = (" " + " ".join(tokens)) if tokens else ""
        line = f"{base}{context_part} | {record.getMessage()}"

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line = f"{line}\n{record.exc_text}"
        if record.stack_info:
            line = f"{line}\n{self.formatStack(record.stack_info)}"
        return line


# ---------------------------------------------------------------------------
# Public setup function
# ---------------------------------------------------------------------------

def setup_logging() -> None:
    """Configure application logging based on ``settings.log_format``.

    Calling multiple times is safe: a handler is only added when the root
    logger has none yet.
    """
    from vaultcore.config import settings as _settings

    log_level_str = _settings.log_level.upper()
    log_format = _settings.log_format.lower()
    log_level = getattr(logging, log_level_str, logging.INFO)

    root_logger = logging.getLogger()

    if root_logger.handlers:
        root_logger.setLevel(log_level)
        return

    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.addFilter(ContextFilter())

    if log_format == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(_LedgerTextFormatter())

    root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info(
        "Logging initialised (level=%s, format=%s)", log_level_str, log_format
    )


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------

def generate_tx_id() -> str:
    """Generate a new transaction id."""
    return uuid.uuid4().hex[:16]


def get_tx_id() -> str | None:
    """Get the transaction id bound to the current context."""
    return tx_id_var.get()


def set_ledger_context(
    vault: str | None = None,
    strategy_id: str | None = None,
    operation: str | None = None,
    tx_id: str | None = None,
) -> None:
    """Bind ledger context into the current context.

    Only the explicitly passed arguments are updated; omitted keyword arguments
    leave the corresponding ContextVar unchanged.
    """
    if vault is not None:
        vault_var.set(vault)
    if strategy_id is not None:
        strategy_var.set(strategy_id)
    if operation is not None:
        operation_var.set(operation)
    if tx_id is not None:
        tx_id_var.set(tx_id)


def clear_ledger_context() -> None:
    """Clear all ledger ContextVars in the current context."""
    vault_var.set(None)
    strategy_var.set(None)
    operation_var.set(None)
    tx_id_var.set(None)


@contextmanager
def ledger_context(
    vault: str | None = None,
    strategy_id: str | None = None,
    operation: str | None = None,
) -> Iterator[str]:
    """Bind ledger context for the duration of a block and yield the tx id.

    A nested block reuses the outer transaction id, so every line logged by
    a vault operation and the strategy calls it makes shares one id.
    """
    tokens = []
    tx_id = tx_id_var.get()
    if tx_id is None:
        tx_id = generate_tx_id()
        tokens.append((tx_id_var, tx_id_var.set(tx_id)))
    if vault is not None:
        tokens.append((vault_var, vault_var.set(vault)))
    if strategy_id is not None:
        tokens.append((strategy_var, strategy_var.set(strategy_id)))
    if operation is not None:
        tokens.append((operation_var, operation_var.set(operation)))
    try:
        yield tx_id
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """Return a standard ``logging.Logger`` for the given module name.

    Usage::

        from vaultcore.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Component started")
    """
    return logging.getLogger(name)


# ---------------------------------------------------------------------------
# Exception helper
# ---------------------------------------------------------------------------

def log_exception(
    logger: logging.Logger,
    exc: Exception,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log an exception with optional structured context.

    Args:
        logger:  Logger instance obtained from ``get_logger()``.
        exc:     The exception to log.
        context: Optional dict of key/value pairs added to the message.
        level:   Log level; recovered strategy failures use WARNING.
    """
    context_str = f" | context={context}" if context else ""
    logger.log(level, "Exception: %s%s", exc, context_str, exc_info=exc)
