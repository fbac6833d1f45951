"""Event log for notifications emitted by the faucet."""

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass

from spigot.types import AccountId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DripEvent:
    """Some tokens have been dripped."""

    value: int
    to: AccountId

    name = "Drip"

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {"event": self.name, **asdict(self)}


class EventLog:
    """Ordered record of emitted events.

    Subscribers are notified on ``publish``, which the host calls once a
    call has committed. Reverted calls never reach subscribers.
    """

    def __init__(self, events: list[DripEvent] | None = None):
        self._events: list[DripEvent] = list(events or [])
        self._subscribers: list[Callable[[DripEvent], None]] = []

    def emit(self, event: DripEvent) -> None:
        self._events.append(event)

    def subscribe(self, callback: Callable[[DripEvent], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, start: int) -> None:
        """Notify subscribers of every event recorded since ``start``."""
        for event in self._events[start:]:
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception:
                    logger.exception("Event subscriber failed", extra={"event": event.name})

    def truncate(self, length: int) -> None:
        del self._events[length:]

    @property
    def events(self) -> list[DripEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
