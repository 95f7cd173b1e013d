"""Event bus used to push orchestrator state changes to the presentation layer."""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from lenslore.common.logging import get_logger


@dataclass
class Event:
    """Event message."""

    topic: str
    data: dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)


EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """In-process pub/sub bus.

    Topics are dot-separated (``analysis.status``). Subscriptions may use
    ``*`` to match exactly one segment (``analysis.*``).

    Example:
        bus = EventBus()

        @bus.subscribe("analysis.status")
        async def on_status(event):
            print(event.data["status"])
    """

    def __init__(self, history_limit: int = 100) -> None:
        """Initialize the event bus.

        Args:
            history_limit: Number of recent events kept for inspection.
        """
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._wildcard_subscribers: list[tuple[str, EventHandler]] = []
        self._history: list[Event] = []
        self._history_limit = history_limit
        self.logger = get_logger("event_bus")

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        Handler failures are logged and never reach the publisher.

        Args:
            event: Event to publish.
        """
        self.logger.debug(
            "publishing_event",
            topic=event.topic,
            event_id=event.event_id,
            source=event.source,
        )

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        handlers = self._subscribers.get(event.topic, []).copy()
        for pattern, handler in self._wildcard_subscribers:
            if self._matches_pattern(event.topic, pattern):
                handlers.append(handler)

        if handlers:
            await asyncio.gather(
                *[self._safe_dispatch(handler, event) for handler in handlers],
            )

    async def _safe_dispatch(self, handler: EventHandler, event: Event) -> None:
        """Dispatch event to handler, logging exceptions."""
        try:
            await handler(event)
        except Exception as e:
            self.logger.exception(
                "event_handler_error",
                topic=event.topic,
                event_id=event.event_id,
                error=str(e),
            )

    def _matches_pattern(self, topic: str, pattern: str) -> bool:
        """Check if topic matches a single-segment wildcard pattern."""
        topic_parts = topic.split(".")
        pattern_parts = pattern.split(".")

        if len(topic_parts) != len(pattern_parts):
            return False

        return all(p == "*" or p == t for t, p in zip(topic_parts, pattern_parts))

    def subscribe(
        self,
        topic: str,
        handler: EventHandler | None = None,
    ) -> Callable[[EventHandler], EventHandler] | Callable[[], None]:
        """Subscribe to events on a topic.

        Can be used as a decorator or called directly.

        Args:
            topic: Topic to subscribe to.
            handler: Async function to handle events (optional for decorator use).

        Returns:
            Decorator (when handler is None) or unsubscribe function.
        """
        if handler is not None:
            return self._register_handler(topic, handler)

        def decorator(fn: EventHandler) -> EventHandler:
            self._register_handler(topic, fn)
            return fn

        return decorator

    def _register_handler(self, topic: str, handler: EventHandler) -> Callable[[], None]:
        """Register a handler and return unsubscribe function."""
        if "*" in topic:
            self._wildcard_subscribers.append((topic, handler))

            def unsubscribe() -> None:
                if (topic, handler) in self._wildcard_subscribers:
                    self._wildcard_subscribers.remove((topic, handler))

        else:
            self._subscribers.setdefault(topic, []).append(handler)

            def unsubscribe() -> None:
                if handler in self._subscribers.get(topic, []):
                    self._subscribers[topic].remove(handler)

        self.logger.debug("subscribed", topic=topic)
        return unsubscribe

    def get_history(self, topic: str | None = None, limit: int = 100) -> list[Event]:
        """Get event history, oldest first.

        Args:
            topic: Filter by topic (optional).
            limit: Maximum events to return.
        """
        events = self._history.copy()
        if topic:
            events = [e for e in events if e.topic == topic]
        return events[-limit:]
