# Radar - Event Bus
"""
Live notifications for subscribers (UI, CLI progress output).

Publishing never fails the caller: a subscriber that raises is logged and
the remaining subscribers still receive the event.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger("radar.events")

SERVICE_DISCOVERED = "service-discovered"
SCAN_STARTED = "scan-started"
SCAN_COMPLETE = "scan-complete"

Subscriber = Callable[[str, dict[str, Any]], None | Awaitable[None]]


class EventBus:
    """Fan-out of named events to registered callbacks."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []
        self._lock = asyncio.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: str, payload: dict[str, Any] | None = None) -> int:
        """
        Deliver an event to every subscriber.

        Returns:
            Number of subscribers that received it without error
        """
        payload = payload or {}
        if not self._subscribers:
            logger.debug(f"No listener for {event}")
            return 0

        delivered = 0
        async with self._lock:
            for callback in list(self._subscribers):
                try:
                    result = callback(event, payload)
                    if inspect.isawaitable(result):
                        await result
                    delivered += 1
                except Exception as e:
                    logger.warning(f"Failed to publish {event}: {e}")
        return delivered
