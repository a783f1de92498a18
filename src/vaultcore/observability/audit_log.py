"""Vault audit log - append-only trail of every committed ledger event.

Subscribes to the shared event bus, so only events of committed
transactions are recorded (rolled-back events never reach subscribers).

The log is:
- Append-only: entries are never modified or deleted
- Hash-chained: each entry carries the hash of its predecessor
- Persistent (optional): one JSON-lines file per day under ``log_dir``
- Transaction-aware: entries carry the tx id bound by the ledger operation
"""

from __future__ import annotations

import hashlib
import json
import os
import time
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from vaultcore.config import settings
from vaultcore.core.bus import EventBus
from vaultcore.core.types import Event, EventType
from vaultcore.logging import get_logger, get_tx_id

logger = get_logger(__name__)


@dataclass
class AuditEntry:
    """A single entry in the vault audit log."""

    sequence_number: int
    timestamp_ns: int
    event_type: str
    source: str
    data: dict[str, Any]

    tx_id: str | None = None
    strategy_id: str | None = None

    prev_hash: str | None = None
    entry_hash: str | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.entry_hash = self._compute_hash()

    def _compute_hash(self) -> str:
        """SHA-256 of the entry content, truncated to 16 hex chars."""
        content = json.dumps(
            {
                "sequence_number": self.sequence_number,
                "timestamp_ns": self.timestamp_ns,
                "event_type": self.event_type,
                "source": self.source,
                "data": self.data,
                "tx_id": self.tx_id,
                "prev_hash": self.prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.sequence_number,
            "ts": self.timestamp_ns,
            "event": self.event_type,
            "source": self.source,
            "data": self.data,
            "tx_id": self.tx_id,
            "strategy": self.strategy_id,
            "prev_hash": self.prev_hash,
            "hash": self.entry_hash,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AuditEntry:
        """Rebuild an entry from its JSON form, warning on hash mismatch."""
        entry = cls(
            sequence_number=d["seq"],
            timestamp_ns=d["ts"],
            event_type=d["event"],
            source=d["source"],
            data=d["data"],
            tx_id=d.get("tx_id"),
            strategy_id=d.get("strategy"),
            prev_hash=d.get("prev_hash"),
        )
        if entry.entry_hash != d.get("hash"):
            logger.warning(
                f"Hash mismatch for entry {entry.sequence_number}: "
                f"computed={entry.entry_hash}, stored={d.get('hash')}"
            )
        return entry

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


class VaultAuditLog:
    """Append-only, hash-chained log of vault events."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        max_in_memory: int | None = None,
        event_types: Iterable[EventType] | None = None,
    ) -> None:
        """Initialize the audit log.

        Args:
            log_dir: Directory for JSON-lines files (None for in-memory only;
                defaults to ``settings.audit_log_dir``)
            max_in_memory: Maximum entries kept in memory (defaults to
                ``settings.audit_log_max_in_memory``)
            event_types: Restrict recording to these event types (None records all)
        """
        if log_dir is None:
            log_dir = settings.audit_log_dir
        self.log_dir = Path(log_dir) if log_dir else None
        self.max_in_memory = max_in_memory or settings.audit_log_max_in_memory
        self.event_types = frozenset(event_types) if event_types is not None else None

        self._entries: deque[AuditEntry] = deque(maxlen=self.max_in_memory)
        self._sequence_number = 0
        self._last_hash: str | None = None
        self._buses: list[EventBus] = []

        self._file: Any = None
        self._current_file_path: Path | None = None

        self._stats: dict[str, Any] = {
            "total_entries": 0,
            "events_by_type": {},
            "integrity_violations": 0,
        }

        if self.log_dir:
            self._init_log_file()

    def _init_log_file(self) -> None:
        if not self.log_dir:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)

        date_str = datetime.now(UTC).strftime("%Y-%m-%d")
        self._current_file_path = self.log_dir / f"vault_audit_{date_str}.jsonl"

        if self._current_file_path.exists():
            self._load_existing_entries()

        self._file = open(self._current_file_path, "a", encoding="utf-8")
        logger.info(f"Vault audit log initialized: {self._current_file_path}")

    def _load_existing_entries(self) -> None:
        """Resume the sequence and hash chain from today's file."""
        if not self._current_file_path or not self._current_file_path.exists():
            return

        with open(self._current_file_path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = AuditEntry.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError) as e:
                    logger.warning(f"Failed to parse audit entry: {e}")
                    continue
                self._entries.append(entry)
                self._sequence_number = max(self._sequence_number, entry.sequence_number)
                self._last_hash = entry.entry_hash
                self._count(entry.event_type)

        logger.info(f"Loaded {len(self._entries)} existing audit entries, last sequence: {self._sequence_number}")

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def attach(self, bus: EventBus) -> None:
        """Record every event dispatched on ``bus``."""
        bus.subscribe(None, self.record)
        self._buses.append(bus)

    def detach(self) -> None:
        for bus in self._buses:
            bus.unsubscribe(None, self.record)
        self._buses.clear()

    def record(self, event: Event) -> AuditEntry | None:
        """Append an event; returns None when its type is filtered out."""
        if self.event_types is not None and event.event_type not in self.event_types:
            return None

        data = dict(event.data or {})
        self._sequence_number += 1
        entry = AuditEntry(
            sequence_number=self._sequence_number,
            timestamp_ns=time.time_ns(),
            event_type=event.event_type.value if isinstance(event.event_type, EventType) else str(event.event_type),
            source=event.source,
            data=data,
            tx_id=get_tx_id(),
            strategy_id=data.get("strategy_id"),
            prev_hash=self._last_hash,
        )

        self._last_hash = entry.entry_hash
        self._entries.append(entry)
        self._count(entry.event_type)
        self._write_entry(entry)
        return entry

    def _count(self, event_type: str) -> None:
        self._stats["total_entries"] += 1
        by_type = self._stats["events_by_type"]
        by_type[event_type] = by_type.get(event_type, 0) + 1

    def _write_entry(self, entry: AuditEntry) -> None:
        if self._file:
            self._file.write(entry.to_json() + "\n")
            self._file.flush()
            os.fsync(self._file.fileno())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def recent(self, limit: int = 100) -> list[AuditEntry]:
        return list(self._entries)[-limit:]

    def by_type(self, event_type: EventType | str, limit: int = 100) -> list[AuditEntry]:
        value = event_type.value if isinstance(event_type, EventType) else event_type
        return [e for e in self._entries if e.event_type == value][:limit]

    def by_strategy(self, strategy_id: str, limit: int = 100) -> list[AuditEntry]:
        return [e for e in self._entries if e.strategy_id == strategy_id][:limit]

    def by_tx(self, tx_id: str) -> list[AuditEntry]:
        """Entries recorded for one ledger transaction, in order."""
        return [e for e in self._entries if e.tx_id == tx_id]

    def verify_chain(self) -> tuple[bool, list[str]]:
        """Verify the hash chain of the entries held in memory.

        Returns:
            (is_valid, list of violations)
        """
        violations = []
        entries = list(self._entries)
        prev_hash = entries[0].prev_hash if entries else None

        for entry in entries:
            if entry.prev_hash != prev_hash:
                violations.append(
                    f"Hash chain broken at seq {entry.sequence_number}: "
                    f"expected prev_hash={prev_hash}, got {entry.prev_hash}"
                )

            computed_hash = entry._compute_hash()
            if entry.entry_hash != computed_hash:
                violations.append(
                    f"Entry hash mismatch at seq {entry.sequence_number}: "
                    f"stored={entry.entry_hash}, computed={computed_hash}"
                )

            prev_hash = entry.entry_hash

        if violations:
            self._stats["integrity_violations"] = len(violations)
            logger.error(f"Audit log integrity verification failed: {len(violations)} violations")

        return len(violations) == 0, violations

    def stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "in_memory_entries": len(self._entries),
            "current_sequence": self._sequence_number,
            "log_file": str(self._current_file_path) if self._current_file_path else None,
        }

    def close(self) -> None:
        """Detach from buses and close the log file."""
        self.detach()
        if self._file:
            self._file.flush()
            self._file.close()
            self._file = None
            logger.info("Vault audit log closed")
