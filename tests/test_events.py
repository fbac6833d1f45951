"""Tests for the event log."""

from unittest.mock import MagicMock

from conftest import ALICE, BOB

from spigot.host.events import DripEvent, EventLog


class TestDripEvent:
    """Tests for DripEvent."""

    def test_to_dict(self):
        """DripEvent serializes with its name."""
        event = DripEvent(value=100, to=ALICE)
        assert event.to_dict() == {"event": "Drip", "value": 100, "to": ALICE}


class TestEventLog:
    """Tests for EventLog."""

    def test_emit(self):
        """Events are kept in order."""
        log = EventLog()
        log.emit(DripEvent(value=1, to=ALICE))
        log.emit(DripEvent(value=2, to=BOB))

        assert [e.value for e in log.events] == [1, 2]
        assert len(log) == 2

    def test_truncate(self):
        """truncate drops events past a length."""
        log = EventLog([DripEvent(value=1, to=ALICE)])
        log.emit(DripEvent(value=2, to=BOB))
        log.truncate(1)

        assert log.events == [DripEvent(value=1, to=ALICE)]

    def test_publish_from_start(self):
        """publish notifies subscribers of events since the given index only."""
        log = EventLog([DripEvent(value=1, to=ALICE)])
        callback = MagicMock()
        log.subscribe(callback)
        log.emit(DripEvent(value=2, to=BOB))

        log.publish(1)

        callback.assert_called_once_with(DripEvent(value=2, to=BOB))

    def test_failing_subscriber_does_not_block_others(self):
        """A subscriber that raises does not stop the rest."""
        log = EventLog()
        failing = MagicMock(side_effect=RuntimeError("boom"))
        working = MagicMock()
        log.subscribe(failing)
        log.subscribe(working)
        log.emit(DripEvent(value=1, to=ALICE))

        log.publish(0)

        working.assert_called_once()
