"""Mutation coordinator for calendar edits.

Every operation follows the same path:

    policy check -> validate -> optimistic state change -> store write(s)
    -> finalize state -> notification outbox -> meeting provider

Unauthorized calls are no-ops. A store failure restores the snapshot taken
before the optimistic change across all three state slices. Meeting provider
and outbox failures after a committed write are reported as warnings only.

Recurring occurrences take an update/delete option:
- this: the index joins the template's exceptions and the edited occurrence
  becomes a standalone single event
- thisAndFuture: the template's ``until`` is cut to the occurrence start minus
  one day and a new series starts from the edited occurrence
- all: the operation applies to the template (delete cascades to every
  materialized occurrence)
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..meetings import MeetingError, MeetingProvider
from ..store.base import MAX_BATCH_SIZE, BatchOp, DocumentStore, StoreError, chunked
from .notifications import NotificationOutcome, NotificationQueueGate
from .policy import CalendarPolicy, get_calendar_policy
from .recurrence import ExpansionWindow, iter_occurrences, occurrence_start
from .state import CalendarSnapshot, CalendarState
from .types import (
    RECURRENCE_PERIODS,
    Actor,
    ApprovalStatus,
    CalendarEvent,
    EntityType,
    Role,
    UpdateOption,
)

logger = logging.getLogger(__name__)

THIS_AND_FUTURE_CUTOFF = timedelta(days=1)
DUPLICATE_OFFSET = timedelta(days=1)


class EventValidationError(ValueError):
    """Raised when an event or requested time range is invalid."""


class MutationStatus(str, Enum):
    APPLIED = "applied"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


@dataclass(slots=True)
class MutationResult:
    """Outcome of one coordinator operation."""

    status: MutationStatus
    event: Optional[CalendarEvent] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    notification: Optional[NotificationOutcome] = None

    @property
    def success(self) -> bool:
        return self.status == MutationStatus.APPLIED

    def to_api_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "event": self.event.to_api_dict() if self.event else None,
            "error": self.error,
            "warnings": list(self.warnings),
            "notification": self.notification.value if self.notification else None,
        }


def validate_range(start: datetime, end: datetime) -> None:
    if end <= start:
        raise EventValidationError("End time must be after start time.")


def validate_event(event: CalendarEvent) -> None:
    """Reject events that cannot be stored.

    Raises:
        EventValidationError: on an empty/inverted time range, an unknown
            recurrence pattern, or a missing ownership field.
    """
    validate_range(event.start, event.end)

    if event.recurring and event.recurring not in RECURRENCE_PERIODS:
        raise EventValidationError(f"Unsupported recurrence pattern '{event.recurring}'.")
    if event.until is not None and event.until < event.start:
        raise EventValidationError("Recurrence end date must not be before the start time.")

    if event.entity_type == EntityType.AVAILABILITY and not event.tutor:
        raise EventValidationError("Availability must name its tutor.")
    if event.entity_type == EntityType.STUDENT_REQUEST and not event.students:
        raise EventValidationError("Student request must list at least one student.")


def standalone_copy(event: CalendarEvent, **changes: Any) -> CalendarEvent:
    """Copy ``event`` as a single, non-recurring event detached from any series."""
    values: Dict[str, Any] = dict(
        recurring=None,
        until=None,
        exceptions=[],
        is_instance=False,
        occurrence_index=None,
        recurring_event_id=None,
        materialized=False,
        parent_id=None,
        meeting_id=None,
    )
    values.update(changes)
    return replace(event, **values)


def _pending_id() -> str:
    return f"pending_{uuid.uuid4().hex}"


def _new_document_id() -> str:
    """Client-side id for a document written inside a batch."""
    return uuid.uuid4().hex


def _document(event: CalendarEvent) -> Dict[str, Any]:
    data = event.to_dict()
    data.pop("id", None)
    return data


class MutationCoordinator:
    """Applies drag, resize, delete, confirm, duplicate and create for one actor."""

    def __init__(
        self,
        store: DocumentStore,
        actor: Actor,
        state: CalendarState,
        *,
        collection_for: Callable[[EntityType], str],
        gate: Optional[NotificationQueueGate] = None,
        meetings: Optional[MeetingProvider] = None,
        window: Optional[ExpansionWindow] = None,
        batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        self.store = store
        self.actor = actor
        self.state = state
        self.collection_for = collection_for
        self.gate = gate
        self.meetings = meetings
        self.window = window
        self.batch_size = batch_size
        self.policy: CalendarPolicy = get_calendar_policy(actor.role)

    # ==================================================================
    # Public operations
    # ==================================================================

    async def create(self, event: CalendarEvent) -> MutationResult:
        """Create a new event through the role's create flow."""
        if not self.policy.can_create(event.entity_type):
            return self._unauthorized("create", event)

        event = self._with_owner(event)
        if not self.policy.can_edit(event, self.actor.email):
            return self._unauthorized("create", event)
        validate_event(event)

        pending = replace(event, id=_pending_id())
        snapshot = self.state.snapshot()
        self.state.upsert(pending)
        try:
            new_id = await self.store.add(self._collection(event), _document(pending))
        except StoreError as exc:
            return self._rollback(snapshot, "create", event, exc)

        created = replace(pending, id=new_id)
        self.state.upsert(created, replace_id=pending.id)
        if created.is_recurring:
            self._expand_locally(created)

        result = MutationResult(MutationStatus.APPLIED, event=created)
        if self._notifies(created):
            result.notification = await self._enqueue_create(created, result)
        await self._create_meeting(created, result)
        logger.info("[Coordinator] %s created %s %s", self.actor.email, created.entity_type.value, created.id)
        return result

    async def move(
        self,
        event: CalendarEvent,
        new_start: datetime,
        new_end: Optional[datetime] = None,
        update_option: Optional[UpdateOption] = None,
    ) -> MutationResult:
        """Drag an event to ``new_start``; the duration is kept unless ``new_end`` is given."""
        if not self.policy.can_drag(event, self.actor.email):
            return self._unauthorized("move", event)
        if new_end is None:
            new_end = new_start + event.duration
        validate_range(new_start, new_end)
        return await self._reschedule("move", event, new_start, new_end, update_option)

    async def resize(
        self,
        event: CalendarEvent,
        new_start: datetime,
        new_end: datetime,
        update_option: Optional[UpdateOption] = None,
    ) -> MutationResult:
        if not self.policy.can_resize(event, self.actor.email):
            return self._unauthorized("resize", event)
        validate_range(new_start, new_end)
        return await self._reschedule("resize", event, new_start, new_end, update_option)

    async def delete(
        self,
        event: CalendarEvent,
        delete_option: Optional[UpdateOption] = None,
    ) -> MutationResult:
        if not self.policy.can_delete(event, self.actor.email):
            return self._unauthorized("delete", event)

        option = UpdateOption(delete_option) if delete_option else UpdateOption.THIS

        if event.is_recurring:
            # Deleting the template row always takes the whole series.
            return await self._delete_series("delete", event)
        if not event.is_instance:
            return await self._delete_single(event)

        template = await self._find_template(event)
        if template is None:
            if event.materialized:
                return await self._delete_single(event)
            return self._failed("delete", event, f"Series {event.recurring_event_id} not found.")

        if option == UpdateOption.ALL:
            return await self._delete_series("delete", template)
        if option == UpdateOption.THIS_AND_FUTURE:
            return await self._truncate_series("delete", event, template)
        return await self._delete_occurrence(event, template)

    async def confirm_participation(
        self,
        event: CalendarEvent,
        accepted: bool,
        *,
        actor_email: Optional[str] = None,
    ) -> MutationResult:
        """Record the actor's accept/decline on a shift.

        Students answer in ``student_responses``, tutors in
        ``tutor_responses``; a later answer replaces the earlier one.
        """
        email = actor_email or self.actor.email
        if email != self.actor.email or not self.policy.can_confirm(event, email):
            return self._unauthorized("confirm", event)

        response = {
            "email": email,
            "accepted": bool(accepted),
            "responded_at": datetime.now(timezone.utc).isoformat(),
        }
        field_name = "student_responses" if self.actor.role == Role.STUDENT else "tutor_responses"
        responses = [r for r in getattr(event, field_name) if r.get("email") != email]
        responses.append(response)
        updated = replace(event, **{field_name: responses})

        snapshot = self.state.snapshot()
        self.state.upsert(updated)
        try:
            if event.is_instance and not event.materialized:
                # Freeze the occurrence so the answer has a document to live on.
                updated = replace(updated, materialized=True)
                await self.store.set(self._collection(event), event.id, _document(updated))
                self.state.upsert(updated)
            else:
                await self.store.update(self._collection(event), event.id, {field_name: responses})
        except StoreError as exc:
            return self._rollback(snapshot, "confirm", event, exc)

        logger.info(
            "[Coordinator] %s %s %s",
            email,
            "accepted" if accepted else "declined",
            event.id,
        )
        return MutationResult(MutationStatus.APPLIED, event=updated)

    async def duplicate(self, event: CalendarEvent) -> MutationResult:
        """Copy ``event`` one day later as a new single event."""
        if not self.policy.can_duplicate(event, self.actor.email):
            return self._unauthorized("duplicate", event)

        copy = standalone_copy(
            event,
            id=_pending_id(),
            start=event.start + DUPLICATE_OFFSET,
            end=event.end + DUPLICATE_OFFSET,
            meeting_join_url=None,
            student_responses=[],
            tutor_responses=[],
        )
        validate_event(copy)

        snapshot = self.state.snapshot()
        self.state.upsert(copy)
        try:
            new_id = await self.store.add(self._collection(copy), _document(copy))
        except StoreError as exc:
            return self._rollback(snapshot, "duplicate", event, exc)

        created = replace(copy, id=new_id)
        self.state.upsert(created, replace_id=copy.id)

        result = MutationResult(MutationStatus.APPLIED, event=created)
        if self._notifies(created):
            result.notification = await self._enqueue_create(created, result)
        await self._create_meeting(created, result)
        logger.info("[Coordinator] Duplicated %s as %s", event.id, created.id)
        return result

    # ==================================================================
    # Reschedule (move / resize)
    # ==================================================================

    async def _reschedule(
        self,
        action: str,
        event: CalendarEvent,
        start: datetime,
        end: datetime,
        update_option: Optional[UpdateOption],
    ) -> MutationResult:
        option = UpdateOption(update_option) if update_option else UpdateOption.THIS

        # Single events, materialized occurrences edited alone and template
        # rows (which carry the whole series) are updated in place.
        if not event.is_instance or (event.materialized and option == UpdateOption.THIS):
            return await self._update_times(action, event, start, end)

        template = await self._find_template(event)
        if template is None:
            return self._failed(action, event, f"Series {event.recurring_event_id} not found.")

        if option == UpdateOption.ALL:
            shift = start - event.start
            series_start = template.start + shift
            return await self._update_times(action, template, series_start, series_start + (end - start))
        if option == UpdateOption.THIS_AND_FUTURE:
            return await self._truncate_series(action, event, template, start, end)
        return await self._detach_occurrence(action, event, template, start, end)

    async def _update_times(
        self,
        action: str,
        event: CalendarEvent,
        start: datetime,
        end: datetime,
    ) -> MutationResult:
        updated = replace(event, start=start, end=end)
        validate_event(updated)

        snapshot = self.state.snapshot()
        self.state.upsert(updated)
        try:
            await self.store.update(
                self._collection(event),
                event.id,
                {"start": start.isoformat(), "end": end.isoformat()},
            )
        except StoreError as exc:
            return self._rollback(snapshot, action, event, exc)

        if updated.is_recurring:
            self._expand_locally(updated)

        result = MutationResult(MutationStatus.APPLIED, event=updated)
        if self._notifies(updated):
            result.notification = await self._enqueue_update(updated, event, result)
        if updated.entity_type == EntityType.SHIFT and updated.meeting_id:
            await self._update_meeting(updated, result)
        return result

    async def _detach_occurrence(
        self,
        action: str,
        occurrence: CalendarEvent,
        template: CalendarEvent,
        start: datetime,
        end: datetime,
    ) -> MutationResult:
        """Move one transient occurrence out of its series.

        The template's new exception and the standalone copy are committed
        in one batch, so a failure leaves the series untouched.
        """
        index = occurrence.occurrence_index
        with_exception = replace(template, exceptions=sorted({*template.exceptions, index}))
        # The series meeting stays with the series; keep the link only.
        created = standalone_copy(occurrence, id=_new_document_id(), start=start, end=end)
        validate_event(created)

        snapshot = self.state.snapshot()
        self.state.upsert(with_exception)
        self.state.upsert(created, replace_id=occurrence.id)
        try:
            await self.store.batch_write([
                BatchOp(
                    kind="update",
                    collection=self._collection(template),
                    doc_id=template.id,
                    data={"exceptions": with_exception.exceptions},
                ),
                BatchOp(
                    kind="set",
                    collection=self._collection(created),
                    doc_id=created.id,
                    data=_document(created),
                ),
            ])
        except StoreError as exc:
            return self._rollback(snapshot, action, occurrence, exc)

        result = MutationResult(MutationStatus.APPLIED, event=created)
        if self._notifies(created):
            result.notification = await self._enqueue_update(created, occurrence, result)
        logger.info("[Coordinator] Detached occurrence %s of %s as %s", index, template.id, created.id)
        return result

    async def _truncate_series(
        self,
        action: str,
        occurrence: CalendarEvent,
        template: CalendarEvent,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> MutationResult:
        """End the series before ``occurrence``; on move/resize start a new series there.

        The new ``until`` and the new series are one batch. Cleaning up
        occurrences already persisted past the cutoff is best effort and
        only reported as warnings.
        """
        index = occurrence.occurrence_index
        cutoff = occurrence_start(template, index) - THIS_AND_FUTURE_CUTOFF
        truncated = replace(template, until=cutoff)

        ops = [
            BatchOp(
                kind="update",
                collection=self._collection(template),
                doc_id=template.id,
                data={"until": cutoff.isoformat()},
            )
        ]
        created: Optional[CalendarEvent] = None
        if start is not None and end is not None:
            created = standalone_copy(
                occurrence,
                id=_new_document_id(),
                start=start,
                end=end,
                recurring=template.recurring,
                until=template.until,
            )
            validate_event(created)
            ops.append(
                BatchOp(
                    kind="set",
                    collection=self._collection(created),
                    doc_id=created.id,
                    data=_document(created),
                )
            )

        snapshot = self.state.snapshot()
        self.state.upsert(truncated)
        self.state.remove_where(
            template.entity_type,
            lambda row: row.recurring_event_id == template.id and (row.occurrence_index or 0) >= index,
        )
        if created is not None:
            self.state.upsert(created)

        try:
            await self.store.batch_write(ops)
        except StoreError as exc:
            return self._rollback(snapshot, action, occurrence, exc)

        if created is not None:
            self._expand_locally(created)

        warnings: List[str] = []
        try:
            persisted = await self.store.query(
                self._collection(template),
                [("recurring_event_id", "==", template.id)],
            )
        except StoreError as exc:
            logger.warning("[Coordinator] Could not list occurrences of %s: %s", template.id, exc)
            warnings.append(f"Occurrences after the cutoff may remain: {exc}")
        else:
            stale = [doc["id"] for doc in persisted if (doc.get("occurrence_index") or 0) >= index]
            warnings.extend(await self._delete_documents(template, stale))

        result = MutationResult(
            MutationStatus.APPLIED,
            event=created or truncated,
            warnings=warnings,
        )
        if created is not None and self._notifies(created):
            result.notification = await self._enqueue_update(created, occurrence, result)
        logger.info(
            "[Coordinator] Series %s now ends %s (%s from occurrence %s)",
            template.id,
            cutoff.isoformat(),
            action,
            index,
        )
        return result

    # ==================================================================
    # Delete
    # ==================================================================

    async def _delete_single(self, event: CalendarEvent) -> MutationResult:
        snapshot = self.state.snapshot()
        self.state.remove(event)
        try:
            await self.store.delete(self._collection(event), event.id)
        except StoreError as exc:
            return self._rollback(snapshot, "delete", event, exc)

        result = MutationResult(MutationStatus.APPLIED, event=event)
        if self._notifies(event):
            result.notification = await self._dequeue(event.id, result)
        # A materialized occurrence shares the series meeting; leave it alone.
        if event.entity_type == EntityType.SHIFT and event.meeting_id and not event.is_instance:
            await self._delete_meeting(event, result)
        return result

    async def _delete_occurrence(self, occurrence: CalendarEvent, template: CalendarEvent) -> MutationResult:
        with_exception = replace(
            template,
            exceptions=sorted({*template.exceptions, occurrence.occurrence_index}),
        )

        snapshot = self.state.snapshot()
        self.state.upsert(with_exception)
        self.state.remove(occurrence)
        try:
            await self.store.update(
                self._collection(template),
                template.id,
                {"exceptions": with_exception.exceptions},
            )
            if occurrence.materialized:
                await self.store.delete(self._collection(occurrence), occurrence.id)
        except StoreError as exc:
            return self._rollback(snapshot, "delete", occurrence, exc)

        result = MutationResult(MutationStatus.APPLIED, event=occurrence)
        if self._notifies(occurrence):
            result.notification = await self._dequeue(occurrence.id, result)
        return result

    async def _delete_series(self, action: str, template: CalendarEvent) -> MutationResult:
        """Delete a template and cascade to its materialized occurrences."""
        snapshot = self.state.snapshot()
        self.state.remove(template)
        self.state.remove_where(template.entity_type, lambda row: row.recurring_event_id == template.id)
        try:
            await self.store.delete(self._collection(template), template.id)
            persisted = await self.store.query(
                self._collection(template),
                [("recurring_event_id", "==", template.id)],
            )
        except StoreError as exc:
            return self._rollback(snapshot, action, template, exc)

        result = MutationResult(MutationStatus.APPLIED, event=template)
        result.warnings.extend(await self._delete_documents(template, [doc["id"] for doc in persisted]))
        if self._notifies(template):
            result.notification = await self._dequeue(template.id, result)
        if template.entity_type == EntityType.SHIFT and template.meeting_id:
            await self._delete_meeting(template, result)
        logger.info("[Coordinator] Deleted series %s and %d occurrences", template.id, len(persisted))
        return result

    async def _delete_documents(self, template: CalendarEvent, doc_ids: List[str]) -> List[str]:
        """Batch-delete occurrence documents; a failed batch is left for a later pass."""
        collection = self._collection(template)
        ops = [BatchOp(kind="delete", collection=collection, doc_id=doc_id) for doc_id in doc_ids]
        warnings: List[str] = []
        for batch in chunked(ops, self.batch_size):
            try:
                await self.store.batch_write(batch)
            except StoreError as exc:
                logger.error(
                    "[Coordinator] Cascade delete of %d occurrences of %s failed: %s",
                    len(batch),
                    template.id,
                    exc,
                )
                warnings.append(f"Could not delete {len(batch)} occurrences of {template.id}: {exc}")
        return warnings

    # ==================================================================
    # Helpers
    # ==================================================================

    def _collection(self, event: CalendarEvent) -> str:
        return self.collection_for(event.entity_type)

    def _with_owner(self, event: CalendarEvent) -> CalendarEvent:
        """Fill in the ownership fields a tutor or student leaves implicit."""
        if event.entity_type == EntityType.AVAILABILITY and not event.tutor and self.actor.role == Role.TUTOR:
            return replace(event, tutor=self.actor.email)
        if event.entity_type == EntityType.STUDENT_REQUEST and self.actor.role == Role.STUDENT:
            students = event.students or [self.actor.email]
            return replace(
                event,
                students=students,
                created_by_student=True,
                approval_status=event.approval_status or ApprovalStatus.PENDING.value,
            )
        return event

    async def _find_template(self, occurrence: CalendarEvent) -> Optional[CalendarEvent]:
        template_id = occurrence.recurring_event_id
        if not template_id:
            return None
        template = self.state.find(template_id, occurrence.entity_type)
        if template is not None:
            return template
        try:
            data = await self.store.get(self._collection(occurrence), template_id)
        except StoreError as exc:
            logger.warning("[Coordinator] Could not load series %s: %s", template_id, exc)
            return None
        if data is None:
            return None
        return CalendarEvent.from_dict(data, occurrence.entity_type)

    def _expand_locally(self, template: CalendarEvent) -> None:
        """Regenerate the transient occurrences of ``template`` in state."""
        window = self.window or ExpansionWindow.from_now(datetime.now(timezone.utc))
        kind = template.entity_type
        self.state.remove_where(
            kind,
            lambda row: row.recurring_event_id == template.id and not row.materialized,
        )
        persisted = {row.id for row in self.state.events(kind) if row.materialized}
        self.state.extend(iter_occurrences(template, window, persisted))

    def _notifies(self, event: CalendarEvent) -> bool:
        return self.gate is not None and event.entity_type == EntityType.SHIFT

    def _unauthorized(self, action: str, event: CalendarEvent) -> MutationResult:
        logger.info(
            "[Coordinator] %s (%s) may not %s %s",
            self.actor.email,
            self.actor.role.value,
            action,
            event.id,
        )
        return MutationResult(MutationStatus.UNAUTHORIZED, event=event)

    def _failed(self, action: str, event: CalendarEvent, message: str) -> MutationResult:
        logger.error("[Coordinator] %s of %s failed: %s", action, event.id, message)
        return MutationResult(MutationStatus.FAILED, event=event, error=message)

    def _rollback(
        self,
        snapshot: CalendarSnapshot,
        action: str,
        event: CalendarEvent,
        exc: Exception,
    ) -> MutationResult:
        self.state.restore(snapshot)
        logger.error("[Coordinator] %s of %s failed, local state rolled back: %s", action, event.id, exc)
        return MutationResult(MutationStatus.FAILED, event=event, error=str(exc))

    # ------------------------------------------------------------------
    # Outbox and meeting side effects (never roll back a committed write)
    # ------------------------------------------------------------------

    async def _enqueue_create(self, event: CalendarEvent, result: MutationResult) -> Optional[NotificationOutcome]:
        try:
            return await self.gate.enqueue_on_create(event)
        except StoreError as exc:
            logger.warning("[Coordinator] Could not queue notification for %s: %s", event.id, exc)
            result.warnings.append(f"Notification not queued: {exc}")
            return None

    async def _enqueue_update(
        self,
        event: CalendarEvent,
        previous: CalendarEvent,
        result: MutationResult,
    ) -> Optional[NotificationOutcome]:
        try:
            return await self.gate.enqueue_on_update(event, previous)
        except StoreError as exc:
            logger.warning("[Coordinator] Could not queue notification for %s: %s", event.id, exc)
            result.warnings.append(f"Notification not queued: {exc}")
            return None

    async def _dequeue(self, event_id: str, result: MutationResult) -> Optional[NotificationOutcome]:
        try:
            return await self.gate.dequeue_on_delete(event_id)
        except StoreError as exc:
            logger.warning("[Coordinator] Could not clear queued notification for %s: %s", event_id, exc)
            result.warnings.append(f"Queued notification not removed: {exc}")
            return None

    async def _create_meeting(self, event: CalendarEvent, result: MutationResult) -> None:
        if (
            self.meetings is None
            or event.entity_type != EntityType.SHIFT
            or event.approval_status != ApprovalStatus.APPROVED.value
        ):
            return
        try:
            info = await self.meetings.create(
                event.title, event.description, event.start, event.end, event.attendees
            )
            patch = {"meeting_id": info.meeting_id, "meeting_join_url": info.join_url}
            await self.store.update(self._collection(event), event.id, patch)
        except (MeetingError, StoreError) as exc:
            logger.warning("[Coordinator] Meeting for %s not created: %s", event.id, exc)
            result.warnings.append(f"Meeting not created: {exc}")
            return

        linked = replace(event, meeting_id=info.meeting_id, meeting_join_url=info.join_url)
        self.state.upsert(linked)
        result.event = linked

    async def _update_meeting(self, event: CalendarEvent, result: MutationResult) -> None:
        if self.meetings is None:
            return
        try:
            await self.meetings.update(
                event.meeting_id,
                event.title,
                event.description,
                event.start,
                event.end,
                event.attendees,
            )
        except MeetingError as exc:
            logger.warning("[Coordinator] Meeting %s for %s not updated: %s", event.meeting_id, event.id, exc)
            result.warnings.append(f"Meeting not updated: {exc}")

    async def _delete_meeting(self, event: CalendarEvent, result: MutationResult) -> None:
        if self.meetings is None:
            return
        try:
            await self.meetings.delete(event.meeting_id)
        except MeetingError as exc:
            logger.warning("[Coordinator] Meeting %s for %s not deleted: %s", event.meeting_id, event.id, exc)
            result.warnings.append(f"Meeting not deleted: {exc}")
