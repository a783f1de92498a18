"""Tests for the event bus and snapshot transactions."""

import pytest

from vaultcore.core.bus import EventBus
from vaultcore.core.journal import Journal, Stateful
from vaultcore.core.types import Event, EventType


class Counter(Stateful):
    _state_fields = ("value", "items")

    def __init__(self, journal: Journal) -> None:
        self.value = 0
        self.items: list[int] = []
        journal.register(self)


def _event(event_type: EventType = EventType.DEPOSIT, **data) -> Event:
    return Event(event_type=event_type, source="0xsource", data=data)


class TestEventBus:
    def test_publish_dispatches_immediately_outside_transaction(self) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(EventType.DEPOSIT, received.append)

        bus.publish(_event(assets=1))
        bus.publish(_event(EventType.WITHDRAW))

        assert len(received) == 1
        assert received[0].data == {"assets": 1}

    def test_wildcard_subscriber_receives_everything(self) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(None, received.append)

        bus.publish(_event())
        bus.publish(_event(EventType.HARVEST))

        assert [e.event_type for e in received] == [EventType.DEPOSIT, EventType.HARVEST]

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        received: list[Event] = []
        bus.subscribe(EventType.DEPOSIT, received.append)
        bus.unsubscribe(EventType.DEPOSIT, received.append)

        bus.publish(_event())

        assert received == []

    def test_handler_error_does_not_propagate(self) -> None:
        bus = EventBus()
        received: list[Event] = []

        def broken(event: Event) -> None:
            raise RuntimeError("handler failure")

        bus.subscribe(EventType.DEPOSIT, broken)
        bus.subscribe(EventType.DEPOSIT, received.append)

        bus.publish(_event())

        assert len(received) == 1

    def test_history_filters(self) -> None:
        bus = EventBus()
        bus.publish(_event())
        bus.publish(Event(event_type=EventType.DEPOSIT, source="0xother"))
        bus.publish(_event(EventType.WITHDRAW))

        assert len(bus.history()) == 3
        assert len(bus.history(EventType.DEPOSIT)) == 2
        assert len(bus.history(EventType.DEPOSIT, source="0xother")) == 1


class TestJournal:
    def test_commit_keeps_changes_and_flushes_events(self) -> None:
        journal = Journal()
        counter = Counter(journal)
        received: list[Event] = []
        journal.bus.subscribe(None, received.append)

        with journal.atomic():
            counter.value = 5
            journal.bus.publish(_event())
            assert received == []
            assert journal.in_transaction

        assert counter.value == 5
        assert len(received) == 1
        assert not journal.in_transaction

    def test_rollback_restores_state_and_drops_events(self) -> None:
        journal = Journal()
        counter = Counter(journal)
        received: list[Event] = []
        journal.bus.subscribe(None, received.append)

        with pytest.raises(ValueError):
            with journal.atomic():
                counter.value = 5
                counter.items.append(1)
                journal.bus.publish(_event())
                raise ValueError("abort")

        assert counter.value == 0
        assert counter.items == []
        assert received == []
        assert journal.depth == 0

    def test_nested_failure_rolls_back_only_inner_scope(self) -> None:
        journal = Journal()
        counter = Counter(journal)
        received: list[Event] = []
        journal.bus.subscribe(None, received.append)

        with journal.atomic():
            counter.value = 1
            journal.bus.publish(_event(step="outer"))
            try:
                with journal.atomic():
                    counter.value = 2
                    journal.bus.publish(_event(step="inner"))
                    raise ValueError("inner failure")
            except ValueError:
                pass
            assert counter.value == 1

        assert counter.value == 1
        assert [e.data["step"] for e in received] == ["outer"]

    def test_register_is_idempotent(self) -> None:
        journal = Journal()
        counter = Counter(journal)
        journal.register(counter)

        with pytest.raises(ValueError):
            with journal.atomic():
                counter.value = 3
                raise ValueError

        assert counter.value == 0
