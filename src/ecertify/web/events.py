"""Change feed bridge for Server-Sent Events.

Each connected dashboard gets a FeedListener: its subscriptions push
change events onto an asyncio queue that the SSE generator drains.
Services publish from whichever thread ran the request, so delivery
goes through ``loop.call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from ecertify.core.notifications import (
    ChangeEvent,
    ChangeFeed,
    RefreshTracker,
    Role,
    Subscription,
    subscribe_institute_feed,
    subscribe_student_feed,
    unsubscribe_all,
)

logger = structlog.get_logger(__name__)


@dataclass
class FeedListener:
    """Queue of change events for one dashboard connection."""

    feed: ChangeFeed
    role: Role
    entity_id: int
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue[ChangeEvent | None] = field(
        default_factory=lambda: asyncio.Queue()
    )
    tracker: RefreshTracker = field(init=False)
    subscriptions: list[Subscription] = field(default_factory=list)

    def __post_init__(self):
        self.tracker = RefreshTracker(role=self.role)

    def start(self) -> None:
        """Subscribe to the entity's feed."""
        if self.role == "institute":
            self.subscriptions = subscribe_institute_feed(
                self.feed, self.entity_id, self._on_event
            )
        else:
            self.subscriptions = subscribe_student_feed(
                self.feed, self.entity_id, self._on_event
            )
        logger.info("listener_started", role=self.role, entity_id=self.entity_id)

    def close(self) -> None:
        """Drop subscriptions and wake the consumer with a sentinel."""
        unsubscribe_all(self.feed, self.subscriptions)
        self.subscriptions = []
        self.loop.call_soon_threadsafe(self.queue.put_nowait, None)
        logger.info("listener_closed", role=self.role, entity_id=self.entity_id)

    def message_for(self, event: ChangeEvent) -> dict[str, Any]:
        """Build the SSE payload for an event, including any notice."""
        notice = self.tracker.handle(event)
        return {
            "change": event.to_dict(),
            "needs_refresh": self.tracker.needs_refresh,
            "notice": (
                {"title": notice.title, "description": notice.description}
                if notice
                else None
            ),
        }

    def _on_event(self, event: ChangeEvent) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, event)


def open_listener(feed: ChangeFeed, role: Role, entity_id: int) -> FeedListener:
    """Create and start a listener bound to the running event loop."""
    listener = FeedListener(
        feed=feed,
        role=role,
        entity_id=entity_id,
        loop=asyncio.get_running_loop(),
    )
    listener.start()
    return listener
