"""Identities and owner-only access control."""

import uuid

from vaultcore.core.errors import InvalidAddress, NotOwner
from vaultcore.core.types import ZERO_ADDRESS, Event, EventType


def new_address() -> str:
    """Return a fresh 20-byte hex identity."""
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex[:8]


def require_address(value: str, field: str = "address") -> str:
    """Reject empty and zero identities."""
    if not isinstance(value, str) or not value or value == ZERO_ADDRESS:
        raise InvalidAddress(field, value)
    return value


class Ownable:
    """Single-owner access control.

    Expects the host to provide ``address`` and ``_journal`` and to list
    ``_owner`` in its snapshot fields.
    """

    _owner: str

    @property
    def owner(self) -> str:
        return self._owner

    def _check_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise NotOwner(caller)

    def transfer_ownership(self, new_owner: str, *, caller: str) -> None:
        """Hand owner privileges to another identity."""
        self._check_owner(caller)
        require_address(new_owner, "new_owner")
        with self._journal.atomic():
            previous, self._owner = self._owner, new_owner
            self._journal.bus.publish(
                Event(
                    event_type=EventType.OWNERSHIP_TRANSFERRED,
                    source=self.address,
                    data={"previous_owner": previous, "new_owner": new_owner},
                )
            )
