"""Calendar Router - role-scoped calendar view and event mutations.

Handles:
- Calendar view for the requesting actor (events + split availability slots)
- Create, move, resize, duplicate, confirm and delete of calendar events
- On-demand materialization pass for started occurrences

Every request loads the actor's calendar from the store, runs one
MutationCoordinator operation against it and returns the MutationResult.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import get_current_actor, get_meeting_provider, get_settings, get_store
from tutoring_calendar.calendar import (
    Actor,
    CalendarEvent,
    CalendarFilters,
    CalendarState,
    EntityType,
    EventValidationError,
    MutationCoordinator,
    MutationResult,
    MutationStatus,
    NotificationQueueGate,
    Role,
    UpdateOption,
    build_calendar_view,
    get_calendar_policy,
    load_calendar_state,
    materialize_due_occurrences,
    parse_instant,
    session_window,
)
from tutoring_calendar.config import Settings
from tutoring_calendar.meetings import MeetingProvider
from tutoring_calendar.store import DocumentStore, StoreError

logger = logging.getLogger(__name__)

router = APIRouter()

EntityPath = Literal["shifts", "availability", "studentRequest"]


# =============================================================================
# Pydantic Models
# =============================================================================

class EventPayload(BaseModel):
    """Request body for creating a calendar event."""
    entity_type: EntityType = Field(..., alias="entityType")
    title: str = ""
    start: datetime
    end: datetime
    recurring: Optional[Literal["weekly", "fortnightly"]] = None
    until: Optional[datetime] = None
    staff: List[str] = Field(default_factory=list)
    students: List[str] = Field(default_factory=list)
    tutor: Optional[str] = None
    classes: List[str] = Field(default_factory=list)
    description: str = ""
    work_type: Optional[str] = Field(None, alias="workType")
    location_type: str = Field("", alias="locationType")
    approval_status: Optional[Literal["pending", "approved", "denied"]] = Field(None, alias="approvalStatus")
    confirmation_required: bool = Field(False, alias="confirmationRequired")
    min_students: int = Field(0, alias="minStudents", ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def to_event(self) -> CalendarEvent:
        return CalendarEvent(
            id="",
            entity_type=self.entity_type,
            title=self.title,
            start=parse_instant(self.start),
            end=parse_instant(self.end),
            recurring=self.recurring,
            until=parse_instant(self.until),
            staff=list(self.staff),
            students=list(self.students),
            tutor=self.tutor,
            classes=list(self.classes),
            description=self.description,
            work_type=self.work_type,
            location_type=self.location_type,
            approval_status=self.approval_status,
            confirmation_required=self.confirmation_required,
            min_students=self.min_students,
        )


class MoveRequest(BaseModel):
    """Request body for dragging an event."""
    start: datetime
    end: Optional[datetime] = None
    update_option: Optional[UpdateOption] = Field(None, alias="updateOption")

    model_config = ConfigDict(populate_by_name=True)


class ResizeRequest(BaseModel):
    """Request body for resizing an event."""
    start: datetime
    end: datetime
    update_option: Optional[UpdateOption] = Field(None, alias="updateOption")

    model_config = ConfigDict(populate_by_name=True)


class ConfirmRequest(BaseModel):
    """Request body for accepting or declining a shift."""
    accepted: bool


# =============================================================================
# Helpers
# =============================================================================

async def _load_state(store: DocumentStore, settings: Settings) -> CalendarState:
    try:
        state, _ = await load_calendar_state(store, settings)
    except StoreError as exc:
        logger.error("Failed to load calendar: %s", exc)
        raise HTTPException(status_code=502, detail=f"Failed to load calendar: {exc}")
    return state


def _build_coordinator(
    store: DocumentStore,
    actor: Actor,
    state: CalendarState,
    settings: Settings,
    meetings: Optional[MeetingProvider],
) -> MutationCoordinator:
    return MutationCoordinator(
        store,
        actor,
        state,
        collection_for=settings.collection_for,
        gate=NotificationQueueGate(store, settings.outbox_collection),
        meetings=meetings,
        window=session_window(settings),
        batch_size=settings.batch_size,
    )


def _find_event(state: CalendarState, entity: str, event_id: str) -> CalendarEvent:
    event = state.find(event_id, EntityType(entity))
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found.")
    return event


def _respond(result: MutationResult) -> Dict[str, Any]:
    if result.status == MutationStatus.UNAUTHORIZED:
        raise HTTPException(status_code=403, detail="Not allowed to modify this event.")
    if result.status == MutationStatus.FAILED:
        raise HTTPException(status_code=502, detail=result.error or "Calendar update failed.")
    return result.to_api_dict()


async def _run(operation) -> Dict[str, Any]:
    try:
        result = await operation
    except EventValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _respond(result)


# =============================================================================
# Calendar Endpoints
# =============================================================================

@router.get("")
async def get_calendar(
    tutors: Optional[List[str]] = Query(None, alias="tutor"),
    subject_tutors: Optional[List[str]] = Query(None, alias="subjectTutor"),
    hide_own_availabilities: bool = Query(False, alias="hideOwnAvailabilities"),
    hide_denied_student_requests: bool = Query(False, alias="hideDeniedStudentRequests"),
    hide_tutoring_availabilities: bool = Query(False, alias="hideTutoringAvailabilities"),
    hide_work_availabilities: bool = Query(False, alias="hideWorkAvailabilities"),
    availability_work_type: Optional[str] = Query(None, alias="availabilityWorkType"),
    show_tutoring_shifts: bool = Query(True, alias="showTutoringShifts"),
    show_coaching_shifts: bool = Query(True, alias="showCoachingShifts"),
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Return the requesting actor's calendar.

    ``subjectTutor`` lists the tutors of the selected subject; it narrows
    availability only when no ``tutor`` is selected.
    """
    state = await _load_state(store, settings)
    filters = CalendarFilters(
        tutors=tutors or [],
        subject_tutors=subject_tutors,
        hide_own_availabilities=hide_own_availabilities,
        hide_denied_student_requests=hide_denied_student_requests,
        hide_tutoring_availabilities=hide_tutoring_availabilities,
        hide_work_availabilities=hide_work_availabilities,
        availability_work_type=availability_work_type,
        show_tutoring_shifts=show_tutoring_shifts,
        show_coaching_shifts=show_coaching_shifts,
    )
    view = build_calendar_view(state, actor, filters)
    policy = get_calendar_policy(actor.role)
    return {
        "role": actor.role.value,
        **view.to_api_dict(),
        "calendarFilters": dict(policy.calendar_filters),
        "calendarScope": dict(policy.calendar_scope),
    }


@router.post("/events")
async def create_event(
    request: EventPayload,
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    meetings: Optional[MeetingProvider] = Depends(get_meeting_provider),
) -> dict:
    """Create a shift, availability block or student request."""
    state = await _load_state(store, settings)
    coordinator = _build_coordinator(store, actor, state, settings, meetings)
    return await _run(coordinator.create(request.to_event()))


@router.post("/events/{entity}/{event_id}/move")
async def move_event(
    entity: EntityPath,
    event_id: str,
    request: MoveRequest,
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    meetings: Optional[MeetingProvider] = Depends(get_meeting_provider),
) -> dict:
    state = await _load_state(store, settings)
    event = _find_event(state, entity, event_id)
    coordinator = _build_coordinator(store, actor, state, settings, meetings)
    return await _run(coordinator.move(
        event,
        parse_instant(request.start),
        parse_instant(request.end),
        request.update_option,
    ))


@router.post("/events/{entity}/{event_id}/resize")
async def resize_event(
    entity: EntityPath,
    event_id: str,
    request: ResizeRequest,
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    meetings: Optional[MeetingProvider] = Depends(get_meeting_provider),
) -> dict:
    state = await _load_state(store, settings)
    event = _find_event(state, entity, event_id)
    coordinator = _build_coordinator(store, actor, state, settings, meetings)
    return await _run(coordinator.resize(
        event,
        parse_instant(request.start),
        parse_instant(request.end),
        request.update_option,
    ))


@router.post("/events/{entity}/{event_id}/duplicate")
async def duplicate_event(
    entity: EntityPath,
    event_id: str,
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    meetings: Optional[MeetingProvider] = Depends(get_meeting_provider),
) -> dict:
    state = await _load_state(store, settings)
    event = _find_event(state, entity, event_id)
    coordinator = _build_coordinator(store, actor, state, settings, meetings)
    return await _run(coordinator.duplicate(event))


@router.post("/events/{entity}/{event_id}/confirm")
async def confirm_event(
    entity: EntityPath,
    event_id: str,
    request: ConfirmRequest,
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Accept or decline participation in a shift."""
    state = await _load_state(store, settings)
    event = _find_event(state, entity, event_id)
    coordinator = _build_coordinator(store, actor, state, settings, None)
    return await _run(coordinator.confirm_participation(event, request.accepted))


@router.delete("/events/{entity}/{event_id}")
async def delete_event(
    entity: EntityPath,
    event_id: str,
    delete_option: Optional[UpdateOption] = Query(None, alias="deleteOption"),
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    meetings: Optional[MeetingProvider] = Depends(get_meeting_provider),
) -> dict:
    state = await _load_state(store, settings)
    event = _find_event(state, entity, event_id)
    coordinator = _build_coordinator(store, actor, state, settings, meetings)
    return await _run(coordinator.delete(event, delete_option))


@router.post("/materialize")
async def materialize(
    actor: Actor = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Persist every started occurrence that is not stored yet (teacher only)."""
    if actor.role != Role.TEACHER:
        raise HTTPException(status_code=403, detail="Only teachers can run materialization.")

    try:
        state, persisted = await load_calendar_state(store, settings)
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to load calendar: {exc}")

    result = await materialize_due_occurrences(
        store,
        state.all_events(),
        persisted,
        collection_for=settings.collection_for,
        batch_size=settings.batch_size,
    )
    return {
        "persisted": result.persisted,
        "skipped": result.skipped,
        "failedBatches": result.failed_batches,
        "errors": result.errors,
        "ranAt": result.ran_at.isoformat(),
    }
