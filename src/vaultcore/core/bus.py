"""Synchronous event bus with transactional buffering."""

from collections import defaultdict, deque
from collections.abc import Callable
from typing import Any

from vaultcore.core.types import Event, EventType
from vaultcore.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Event], Any]


class EventBus:
    """Pub/sub for ledger events.

    While a transaction is open, published events are held back and only
    dispatched once the outermost transaction commits. A rolled-back
    transaction restores the pending buffer, so its events never reach
    subscribers.
    """

    def __init__(self, max_history: int = 10000) -> None:
        """Initialize the event bus.

        Args:
            max_history: Number of dispatched events kept for inspection
        """
        self._subscribers: dict[EventType | None, list[Handler]] = defaultdict(list)
        self._pending: list[Event] = []
        self._history: deque[Event] = deque(maxlen=max_history)
        self._depth = 0

    def subscribe(self, event_type: EventType | None, handler: Handler) -> None:
        """Subscribe a handler to an event type (``None`` receives every event)."""
        self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler {getattr(handler, '__name__', handler)} to {event_type}")

    def unsubscribe(self, event_type: EventType | None, handler: Handler) -> None:
        """Unsubscribe a handler from an event type."""
        if handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed handler from {event_type}")

    def publish(self, event: Event) -> None:
        """Publish an event, deferring dispatch while a transaction is open."""
        if self._depth:
            self._pending.append(event)
        else:
            self._dispatch(event)

    def hold(self) -> None:
        """Enter a transaction scope."""
        self._depth += 1

    def release(self) -> None:
        """Leave a transaction scope, flushing once the outermost one closes."""
        self._depth -= 1
        if self._depth == 0:
            pending, self._pending = self._pending, []
            for event in pending:
                self._dispatch(event)

    def _dispatch(self, event: Event) -> None:
        """Dispatch event to all subscribers."""
        self._history.append(event)
        handlers = self._subscribers.get(event.event_type, []) + self._subscribers.get(None, [])
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in handler {getattr(handler, '__name__', handler)} "
                    f"for {event.event_type}: {e}",
                    exc_info=True,
                )

    def history(self, event_type: EventType | None = None, source: str | None = None) -> list[Event]:
        """Dispatched events, optionally filtered by type and source."""
        return [
            e
            for e in self._history
            if (event_type is None or e.event_type == event_type)
            and (source is None or e.source == source)
        ]

    def snapshot(self) -> dict[str, Any]:
        return {"_pending": list(self._pending)}

    def restore(self, state: dict[str, Any]) -> None:
        self._pending = state["_pending"]
