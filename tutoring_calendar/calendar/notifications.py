"""Notification outbox gate.

Outbound participant emails are driven by an outbox collection keyed by
event id; an external delivery process drains it. Writes are single-document
upserts and deletes, so enqueue and dequeue are atomic per event.

Firestore Structure:
    notification_outbox/{event_id} -> event payload + action + queued_at
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..store.base import DocumentStore
from .types import CalendarEvent

logger = logging.getLogger(__name__)


class NotificationOutcome(str, Enum):
    ENQUEUED = "enqueued"
    UNCHANGED = "unchanged"  # Update succeeded, times identical, nothing queued
    REMOVED = "removed"


def _millis(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def times_changed(event: CalendarEvent, previous: CalendarEvent) -> bool:
    """Compare start/end at millisecond precision."""
    return _millis(event.start) != _millis(previous.start) or _millis(event.end) != _millis(previous.end)


class NotificationQueueGate:
    """Decides whether a mutation puts an entry in the outbox."""

    def __init__(self, store: DocumentStore, collection: str = "notification_outbox") -> None:
        self.store = store
        self.collection = collection

    def _entry(self, event: CalendarEvent, action: str) -> Dict[str, Any]:
        return {
            **event.to_dict(),
            "action": action,
            "queued_at": datetime.now(timezone.utc).isoformat(),
        }

    async def enqueue_on_create(self, event: CalendarEvent) -> NotificationOutcome:
        await self.store.set(self.collection, event.id, self._entry(event, "create"))
        logger.info("[Outbox] Queued create notification for %s", event.id)
        return NotificationOutcome.ENQUEUED

    async def enqueue_on_update(
        self,
        event: CalendarEvent,
        previous: Optional[CalendarEvent],
    ) -> NotificationOutcome:
        """Queue an update only when the event's times actually moved."""
        if previous is not None and not times_changed(event, previous):
            logger.debug("[Outbox] %s updated without time change, nothing queued", event.id)
            return NotificationOutcome.UNCHANGED

        await self.store.set(self.collection, event.id, self._entry(event, "update"))
        logger.info("[Outbox] Queued update notification for %s", event.id)
        return NotificationOutcome.ENQUEUED

    async def dequeue_on_delete(self, event_id: str) -> NotificationOutcome:
        """Drop any queued entry for ``event_id``, whether or not it was sent."""
        await self.store.delete(self.collection, event_id)
        return NotificationOutcome.REMOVED
