"""Live calendar session for one actor.

A session subscribes to the shift, availability and student request
collections, re-expands recurring templates on every snapshot and runs the
periodic materialization pass. Snapshots overwrite local state wholesale, so
optimistic edits only last until the store reports back.

    async with CalendarSession(store, actor, settings) as session:
        await session.wait_ready()
        view = session.view()
        await session.coordinator.move(event, new_start)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..config import Settings, load_settings
from ..meetings import MeetingProvider
from ..store.base import DocumentStore, StoreSnapshot, Subscription
from .availability import split_availabilities
from .filters import CalendarFilters, filter_availabilities, filter_shifts
from .materialize import MaterializationResult, materialize_due_occurrences
from .mutations import MutationCoordinator
from .notifications import NotificationQueueGate
from .policy import get_calendar_policy
from .recurrence import ExpansionWindow, expand_recurring_events
from .state import CalendarState
from .types import Actor, CalendarEvent, CalendarFlow, EntityType

logger = logging.getLogger(__name__)


def session_window(settings: Settings, now: Optional[datetime] = None) -> ExpansionWindow:
    """Expansion window reaching ``horizon_weeks`` back and forward from now.

    Looking back lets a pass pick up occurrences that started while no
    session was running.
    """
    now = now or datetime.now(timezone.utc)
    horizon = timedelta(weeks=settings.horizon_weeks)
    return ExpansionWindow(
        range_start=now - horizon,
        range_end=now + horizon,
        max_occurrences=settings.max_occurrences,
    )


def parse_documents(docs: Iterable[Dict[str, Any]], entity_type: EntityType) -> List[CalendarEvent]:
    events: List[CalendarEvent] = []
    for doc in docs:
        try:
            events.append(CalendarEvent.from_dict(doc, entity_type))
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("Skipping malformed %s document %s: %s", entity_type.value, doc.get("id"), exc)
    return events


async def load_calendar_state(
    store: DocumentStore,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Tuple[CalendarState, Set[str]]:
    """Read all three collections once and expand them.

    Returns:
        Tuple of (expanded CalendarState, ids of every stored document).
    """
    window = session_window(settings, now)
    state = CalendarState()
    persisted: Set[str] = set()
    for kind in EntityType:
        docs = await store.list(settings.collection_for(kind))
        persisted.update(doc["id"] for doc in docs)
        state.replace_slice(kind, expand_recurring_events(parse_documents(docs, kind), window))
    return state, persisted


@dataclass(slots=True)
class CalendarView:
    """What one actor's calendar shows."""

    events: List[CalendarEvent] = field(default_factory=list)
    availability_slots: List[CalendarEvent] = field(default_factory=list)
    create_flow: Optional[CalendarFlow] = None

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "events": [event.to_api_dict() for event in self.events],
            "availabilitySlots": [slot.to_api_dict() for slot in self.availability_slots],
            "createFlow": self.create_flow.value if self.create_flow else None,
        }


def build_calendar_view(
    state: CalendarState,
    actor: Actor,
    filters: Optional[CalendarFilters] = None,
) -> CalendarView:
    """Apply the actor's visibility policy and filter selections to ``state``."""
    filters = filters or CalendarFilters()
    policy = get_calendar_policy(actor.role)

    shifts = filter_shifts(state.shifts, actor.role, actor.email, filters)
    candidates = [*shifts, *state.availabilities, *state.student_requests]
    events = [event for event in candidates if policy.include_in_calendar(event, actor.email)]

    slots: List[CalendarEvent] = []
    if policy.show_availability_slots:
        split = split_availabilities(state.availabilities, state.shifts)
        slots = filter_availabilities(split, actor.role, actor.email, filters)

    return CalendarView(events=events, availability_slots=slots, create_flow=policy.get_create_flow())


class CalendarSession:
    """Keeps one actor's calendar in sync with the store."""

    def __init__(
        self,
        store: DocumentStore,
        actor: Actor,
        settings: Optional[Settings] = None,
        *,
        meetings: Optional[MeetingProvider] = None,
    ) -> None:
        self.store = store
        self.actor = actor
        self.settings = settings or load_settings()
        self.meetings = meetings
        self.state = CalendarState()
        self.gate = NotificationQueueGate(store, self.settings.outbox_collection)
        self.last_materialization: Optional[MaterializationResult] = None

        self._persisted_ids: Set[str] = set()
        self._ids_by_kind: Dict[EntityType, Set[str]] = {kind: set() for kind in EntityType}
        self._loaded: Set[EntityType] = set()
        self._ready = asyncio.Event()
        self._subscriptions: List[Subscription] = []
        self._tasks: List[asyncio.Task] = []
        self._timer: Optional[asyncio.Task] = None

    @property
    def coordinator(self) -> MutationCoordinator:
        """Coordinator bound to this session's state."""
        return MutationCoordinator(
            self.store,
            self.actor,
            self.state,
            collection_for=self.settings.collection_for,
            gate=self.gate,
            meetings=self.meetings,
            window=session_window(self.settings),
            batch_size=self.settings.batch_size,
        )

    @property
    def running(self) -> bool:
        return self._timer is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        for kind in EntityType:
            subscription = self.store.subscribe(self.settings.collection_for(kind))
            self._subscriptions.append(subscription)
            self._tasks.append(asyncio.create_task(self._consume(kind, subscription)))
        self._timer = asyncio.create_task(self._materialize_loop())
        logger.info("[Session] Started for %s (%s)", self.actor.email, self.actor.role.value)

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        """Wait until every collection has delivered its first snapshot."""
        await asyncio.wait_for(self._ready.wait(), timeout)

    async def close(self) -> None:
        """Stop the change feed and the materialization timer together."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        tasks = [*self._tasks, *([self._timer] if self._timer else [])]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._subscriptions.clear()
        self._tasks.clear()
        self._timer = None
        logger.info("[Session] Closed for %s", self.actor.email)

    async def __aenter__(self) -> "CalendarSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def _consume(self, kind: EntityType, subscription: Subscription) -> None:
        async for snapshot in subscription:
            self.apply_snapshot(kind, snapshot)

    def apply_snapshot(self, kind: EntityType, snapshot: StoreSnapshot) -> None:
        """Replace one state slice with a freshly expanded snapshot."""
        ids = snapshot.ids
        self._persisted_ids -= self._ids_by_kind[kind]
        self._ids_by_kind[kind] = ids
        self._persisted_ids |= ids

        events = parse_documents(snapshot.docs, kind)
        self.state.replace_slice(kind, expand_recurring_events(events, session_window(self.settings)))

        self._loaded.add(kind)
        if len(self._loaded) == len(EntityType):
            self._ready.set()

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    async def materialize(self, now: Optional[datetime] = None) -> MaterializationResult:
        result = await materialize_due_occurrences(
            self.store,
            self.state.all_events(),
            self._persisted_ids,
            collection_for=self.settings.collection_for,
            now=now,
            batch_size=self.settings.batch_size,
        )
        self.last_materialization = result
        return result

    async def _materialize_loop(self) -> None:
        await self._ready.wait()
        interval = self.settings.materialize_interval_seconds
        while True:
            try:
                await self.materialize()
            except Exception:
                # A failed pass must not stop the timer; the next one retries.
                logger.exception("[Session] Materialization pass failed; retrying in %ss", interval)
            await asyncio.sleep(interval)

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def view(self, filters: Optional[CalendarFilters] = None) -> CalendarView:
        return build_calendar_view(self.state, self.actor, filters)
