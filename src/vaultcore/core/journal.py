"""Snapshot-based transactions shared by every ledger in a deployment.

Each public operation runs to completion or leaves no trace: participants
are snapshotted when a transaction opens and restored if an exception
escapes it. Transactions nest; a nested failure restores only what changed
since the nested scope opened.
"""

import copy
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from vaultcore.core.bus import EventBus


class Participant(Protocol):
    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, state: dict[str, Any]) -> None: ...


class Stateful:
    """Mixin for objects whose mutable state lives in named attributes.

    ``_state_fields`` are deep-copied into a snapshot; ``_ref_fields`` hold
    references to other participants and are copied shallowly.
    """

    _state_fields: tuple[str, ...] = ()
    _ref_fields: tuple[str, ...] = ()

    def snapshot(self) -> dict[str, Any]:
        state = {name: copy.deepcopy(getattr(self, name)) for name in self._state_fields}
        state.update({name: copy.copy(getattr(self, name)) for name in self._ref_fields})
        return state

    def restore(self, state: dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)


class Journal:
    """Transaction coordinator for one asset token and the ledgers built on it."""

    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus or EventBus()
        self._participants: list[Participant] = [self.bus]
        self._depth = 0

    def register(self, participant: Participant) -> None:
        """Add a participant; registering twice is a no-op."""
        if not any(p is participant for p in self._participants):
            self._participants.append(participant)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def depth(self) -> int:
        return self._depth

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run a block atomically across every registered participant."""
        snapshots = [(p, p.snapshot()) for p in self._participants]
        self._depth += 1
        self.bus.hold()
        try:
            yield
        except BaseException:
            for participant, state in reversed(snapshots):
                participant.restore(state)
            raise
        finally:
            self._depth -= 1
            self.bus.release()
