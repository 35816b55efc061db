"""Change-notification fan-out.

Stores publish a ChangeEvent after every committed mutation of a
certificate, transfer request or access grant. Subscribers register a
table plus equality filters over the new row and receive matching events
while they are subscribed.

Delivery contract:
- at most once per event per live subscription
- no history: a subscriber registered after an event never sees it
- a failing subscriber is logged and skipped; the writer never sees it
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal

import structlog

from ecertify.core.models import to_timestamp, utc_now

logger = structlog.get_logger(__name__)

# =============================================================================
# EVENTS
# =============================================================================

CERTIFICATES = "certificates"
TRANSFER_REQUESTS = "transfer_requests"
ACCESS_GRANTS = "access_grants"

TABLES = (CERTIFICATES, TRANSFER_REQUESTS, ACCESS_GRANTS)


class ChangeOperation(str, Enum):
    """Kind of row mutation."""

    INSERT = "insert"
    UPDATE = "update"


@dataclass
class ChangeEvent:
    """A committed mutation of one row."""

    table: str
    operation: ChangeOperation
    new_row: dict[str, Any]
    sequence: int = 0
    occurred_at: str = ""

    def __post_init__(self):
        if not self.occurred_at:
            self.occurred_at = to_timestamp(utc_now())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "table": self.table,
            "operation": self.operation.value,
            "new_row": self.new_row,
            "sequence": self.sequence,
            "occurred_at": self.occurred_at,
        }


ChangeCallback = Callable[[ChangeEvent], None]


@dataclass
class Subscription:
    """Handle returned by ChangeFeed.subscribe."""

    subscription_id: int
    table: str
    filters: dict[str, Any]
    callback: ChangeCallback
    active: bool = True

    def matches(self, event: ChangeEvent) -> bool:
        """True if the event targets this table and every filter holds."""
        if event.table != self.table:
            return False
        return all(event.new_row.get(k) == v for k, v in self.filters.items())


# =============================================================================
# FEED
# =============================================================================


class ChangeFeed:
    """Publish/subscribe channel keyed by table and row filter."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._sequence = 0

    def subscribe(
        self,
        table: str,
        filters: dict[str, Any] | None,
        callback: ChangeCallback,
    ) -> Subscription:
        """Register a callback for events on ``table`` matching ``filters``.

        Args:
            table: One of TABLES
            filters: Column -> value equality predicates on the new row
            callback: Called synchronously with each matching event

        Returns:
            Subscription handle for unsubscribe()
        """
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

        with self._lock:
            subscription = Subscription(
                subscription_id=next(self._ids),
                table=table,
                filters=dict(filters or {}),
                callback=callback,
            )
            self._subscriptions[subscription.subscription_id] = subscription

        logger.debug(
            "feed.subscribed",
            subscription_id=subscription.subscription_id,
            table=table,
            filters=subscription.filters,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription.

        Returns:
            True if it was active, False if already removed
        """
        with self._lock:
            removed = self._subscriptions.pop(subscription.subscription_id, None)

        subscription.active = False
        if removed is None:
            return False

        logger.debug("feed.unsubscribed", subscription_id=subscription.subscription_id)
        return True

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every matching live subscription.

        Returns:
            Number of subscribers the event was delivered to
        """
        with self._lock:
            self._sequence += 1
            event.sequence = self._sequence
            targets = [s for s in self._subscriptions.values() if s.matches(event)]

        delivered = 0
        for subscription in targets:
            if not subscription.active:
                continue
            try:
                subscription.callback(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "feed.subscriber_failed",
                    subscription_id=subscription.subscription_id,
                    table=event.table,
                    error=str(e),
                )

        logger.debug(
            "feed.published",
            table=event.table,
            operation=event.operation.value,
            sequence=event.sequence,
            delivered=delivered,
        )
        return delivered

    def emit(
        self, table: str, operation: ChangeOperation, new_row: dict[str, Any]
    ) -> ChangeEvent:
        """Build and publish an event in one call."""
        event = ChangeEvent(table=table, operation=operation, new_row=new_row)
        self.publish(event)
        return event

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


# =============================================================================
# ENTITY FEEDS
# =============================================================================


def subscribe_institute_feed(
    feed: ChangeFeed, institute_id: int, callback: ChangeCallback
) -> list[Subscription]:
    """Subscribe to certificates issued by, and transfers towards, an institute."""
    return [
        feed.subscribe(CERTIFICATES, {"institute_id": institute_id}, callback),
        feed.subscribe(TRANSFER_REQUESTS, {"to_institute_id": institute_id}, callback),
    ]


def subscribe_student_feed(
    feed: ChangeFeed, student_id: int, callback: ChangeCallback
) -> list[Subscription]:
    """Subscribe to a student's certificates, transfers and handed-out grants."""
    return [
        feed.subscribe(CERTIFICATES, {"student_id": student_id}, callback),
        feed.subscribe(TRANSFER_REQUESTS, {"student_id": student_id}, callback),
        feed.subscribe(ACCESS_GRANTS, {"granted_by_student_id": student_id}, callback),
    ]


def unsubscribe_all(feed: ChangeFeed, subscriptions: list[Subscription]) -> None:
    """Remove every subscription in the list."""
    for subscription in subscriptions:
        feed.unsubscribe(subscription)


# =============================================================================
# REFRESH TRACKER
# =============================================================================

Role = Literal["institute", "student"]


@dataclass
class Notice:
    """User-facing notice derived from a change event."""

    title: str
    description: str


@dataclass
class RefreshTracker:
    """Reduces change events into a needs-refresh flag and notices.

    One tracker per active session; feed it from a subscription callback.
    """

    role: Role
    needs_refresh: bool = False
    notices: list[Notice] = field(default_factory=list)

    def handle(self, event: ChangeEvent) -> Notice | None:
        """Record an event.

        Returns:
            The notice produced for the event, if any
        """
        self.needs_refresh = True
        notice = self._notice_for(event)
        if notice is not None:
            self.notices.append(notice)
        return notice

    # Usable directly as a ChangeFeed callback
    __call__ = handle

    def trigger_refresh(self) -> None:
        self.needs_refresh = True

    def reset(self) -> None:
        """Clear the refresh flag after the caller reloaded its view."""
        self.needs_refresh = False

    def drain_notices(self) -> list[Notice]:
        """Return and forget pending notices."""
        notices, self.notices = self.notices, []
        return notices

    def _notice_for(self, event: ChangeEvent) -> Notice | None:
        insert = event.operation is ChangeOperation.INSERT
        row = event.new_row

        if self.role == "institute":
            if event.table == CERTIFICATES:
                if insert:
                    return Notice(
                        "New Certificate",
                        "A new certificate has been uploaded for approval",
                    )
                return Notice(
                    "Certificate Updated",
                    "A certificate's status has been updated",
                )
            if event.table == TRANSFER_REQUESTS:
                if insert:
                    return Notice(
                        "New Institute Change Request",
                        "A student has requested to change to your institute",
                    )
                return Notice(
                    "Change Request Updated",
                    "A change request's status has been updated",
                )
            return None

        if event.table == CERTIFICATES:
            if insert:
                return Notice(
                    "Certificate Added",
                    "A new certificate has been added to your profile",
                )
            if row.get("approved"):
                return Notice(
                    "Certificate Approved",
                    "Your certificate has been approved by the institute",
                )
            return None
        if event.table == ACCESS_GRANTS and insert:
            return Notice(
                "Access Granted",
                "You've granted access to one of your certificates",
            )
        if event.table == TRANSFER_REQUESTS and not insert:
            status = row.get("status")
            if status == "approved":
                return Notice(
                    "Institute Change Approved",
                    "Your institute change request has been approved",
                )
            if status == "declined":
                return Notice(
                    "Institute Change Declined",
                    "Your institute change request has been declined",
                )
        return None
