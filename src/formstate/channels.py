"""
Node-scoped multicast notification channels.

Every control owns its own channels (value_changes, status_changes,
view_refresh). A channel is created with the control and closed when the
control is detached from its parent; there is no global bus.

Delivery is synchronous and best-effort: a subscriber that raises is logged
and the remaining subscribers still receive the event.
"""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class EventChannel:
    """Multicast stream of events for a single control.

    Subscribers are called in subscription order with the emitted payload
    (no arguments for payload-less channels such as view_refresh).
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._subscribers: List[Callable[..., None]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable[..., None]) -> Callable[[], None]:
        """Register a subscriber.

        Args:
            callback: Called with the payload of every emission

        Returns:
            A zero-argument function that removes the subscription
        """
        if self._closed:
            logger.debug(f"subscribe on closed channel {self.name!r} ignored")
            return lambda: None
        if callback not in self._subscribers:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callable[..., None]) -> None:
        """Remove a subscriber (no-op if it is not subscribed)."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit(self, *payload: Any) -> None:
        """Deliver ``payload`` to every subscriber."""
        if self._closed:
            return
        # Copy so subscribers may unsubscribe while being notified
        for callback in list(self._subscribers):
            try:
                callback(*payload)
            except Exception as e:
                logger.warning(f"Subscriber of {self.name!r} channel failed: {e!r}")

    def close(self) -> None:
        """Drop all subscribers and stop delivering."""
        self._subscribers.clear()
        self._closed = True

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self._subscribers)} subscribers"
        return f"EventChannel({self.name!r}, {state})"
