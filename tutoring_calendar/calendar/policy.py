"""Role capability policies.

Each role maps to one immutable ``CalendarPolicy`` holding plain predicate
functions ``(event, actor_email) -> bool``. Policies are looked up in a flat
table keyed by role; nothing inspects the event's class, only its
``entity_type`` and ownership fields.

| role    | sees                                   | may modify              | may create       |
|---------|----------------------------------------|-------------------------|------------------|
| teacher | all shifts                             | shifts                  | shifts           |
| tutor   | own availability, shifts staffed on    | own availability        | availability     |
| student | own requests, shifts enrolled in       | own pending requests    | student requests |

The policy is the only authorization boundary: the mutation coordinator
re-checks it on every call, whatever the UI already hid.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, FrozenSet, Mapping

from .types import ApprovalStatus, CalendarEvent, CalendarFlow, EntityType, Role

Predicate = Callable[[CalendarEvent, str], bool]
FlowSelector = Callable[[CalendarEvent, str], CalendarFlow]


@dataclass(frozen=True)
class CalendarPolicy:
    """Capabilities of one role."""

    role: Role
    include_in_calendar: Predicate
    can_edit: Predicate
    can_drag: Predicate
    can_resize: Predicate
    can_duplicate: Predicate
    can_confirm: Predicate
    creatable: FrozenSet[EntityType]
    create_flow: CalendarFlow
    event_flow: FlowSelector
    show_availability_slots: bool
    calendar_filters: Mapping[str, bool] = field(default_factory=dict)
    calendar_scope: Mapping[str, bool] = field(default_factory=dict)

    def can_create(self, entity_type: EntityType) -> bool:
        return entity_type in self.creatable

    def can_delete(self, event: CalendarEvent, email: str) -> bool:
        return self.can_edit(event, email)

    def get_create_flow(self) -> CalendarFlow:
        return self.create_flow

    def get_event_flow(self, event: CalendarEvent, email: str) -> CalendarFlow:
        return self.event_flow(event, email)


# ============================================================================
# Ownership predicates
# ============================================================================


def _is_shift(event: CalendarEvent, email: str) -> bool:
    return event.entity_type == EntityType.SHIFT


def _owns_availability(event: CalendarEvent, email: str) -> bool:
    return event.entity_type == EntityType.AVAILABILITY and event.tutor == email


def _staffed_on_shift(event: CalendarEvent, email: str) -> bool:
    return event.entity_type == EntityType.SHIFT and email in event.staff


def _owns_request(event: CalendarEvent, email: str) -> bool:
    return event.entity_type == EntityType.STUDENT_REQUEST and email in event.students


def _owns_pending_request(event: CalendarEvent, email: str) -> bool:
    return _owns_request(event, email) and event.approval_status in (
        None,
        ApprovalStatus.PENDING.value,
    )


def _enrolled_in_shift(event: CalendarEvent, email: str) -> bool:
    return event.entity_type == EntityType.SHIFT and email in event.students


def _never(event: CalendarEvent, email: str) -> bool:
    return False


# ============================================================================
# Visibility / confirmation
# ============================================================================


def _tutor_sees(event: CalendarEvent, email: str) -> bool:
    # Other tutors' availability only shows up as split slots, never as events.
    return _owns_availability(event, email) or _staffed_on_shift(event, email)


def _student_sees(event: CalendarEvent, email: str) -> bool:
    return _owns_request(event, email) or _enrolled_in_shift(event, email)


def _tutor_confirms(event: CalendarEvent, email: str) -> bool:
    return _staffed_on_shift(event, email) and event.confirmation_required


def _student_confirms(event: CalendarEvent, email: str) -> bool:
    return _enrolled_in_shift(event, email) and event.min_students > 0


# ============================================================================
# Flow selection
# ============================================================================


def _teacher_flow(event: CalendarEvent, email: str) -> CalendarFlow:
    if event.entity_type == EntityType.STUDENT_REQUEST:
        return CalendarFlow.EDIT_STUDENT_REQUEST
    return CalendarFlow.EDIT_SHIFT


def _tutor_flow(event: CalendarEvent, email: str) -> CalendarFlow:
    if event.entity_type == EntityType.SHIFT:
        return CalendarFlow.VIEW_SHIFT
    if _owns_availability(event, email):
        return CalendarFlow.EDIT_AVAILABILITY
    return CalendarFlow.VIEW_AVAILABILITY


def _student_flow(event: CalendarEvent, email: str) -> CalendarFlow:
    if event.entity_type == EntityType.SHIFT:
        return CalendarFlow.VIEW_SHIFT
    if _owns_pending_request(event, email):
        return CalendarFlow.EDIT_STUDENT_REQUEST
    return CalendarFlow.VIEW_STUDENT_REQUEST


# ============================================================================
# Policy table
# ============================================================================


ROLE_POLICIES: Mapping[Role, CalendarPolicy] = MappingProxyType({
    Role.TEACHER: CalendarPolicy(
        role=Role.TEACHER,
        include_in_calendar=_is_shift,
        can_edit=_is_shift,
        can_drag=_is_shift,
        can_resize=_is_shift,
        can_duplicate=_is_shift,
        can_confirm=_never,
        creatable=frozenset({EntityType.SHIFT}),
        create_flow=CalendarFlow.CREATE_SHIFT,
        event_flow=_teacher_flow,
        show_availability_slots=True,
        calendar_filters=MappingProxyType({
            "can_filter_by_tutor": True,
            "can_filter_by_subject": True,
            "can_filter_by_work_type": True,
            "can_filter_by_availability_type": True,
        }),
        calendar_scope=MappingProxyType({
            "can_toggle_denied_student_requests": True,
            "can_toggle_tutor_availabilities": True,
            "can_toggle_coaching_shifts": True,
            "can_toggle_tutoring_shifts": True,
        }),
    ),
    Role.TUTOR: CalendarPolicy(
        role=Role.TUTOR,
        include_in_calendar=_tutor_sees,
        can_edit=_owns_availability,
        can_drag=_owns_availability,
        can_resize=_owns_availability,
        can_duplicate=_owns_availability,
        can_confirm=_tutor_confirms,
        creatable=frozenset({EntityType.AVAILABILITY}),
        create_flow=CalendarFlow.CREATE_AVAILABILITY,
        event_flow=_tutor_flow,
        show_availability_slots=True,
        calendar_filters=MappingProxyType({
            "can_filter_by_tutor": True,
            "can_filter_by_subject": True,
            "can_filter_by_work_type": True,
            "can_filter_by_availability_type": True,
        }),
        calendar_scope=MappingProxyType({
            "can_toggle_denied_student_requests": False,
            "can_toggle_tutor_availabilities": True,
            "can_toggle_coaching_shifts": True,
            "can_toggle_tutoring_shifts": True,
        }),
    ),
    Role.STUDENT: CalendarPolicy(
        role=Role.STUDENT,
        include_in_calendar=_student_sees,
        can_edit=_owns_pending_request,
        can_drag=_owns_pending_request,
        can_resize=_owns_pending_request,
        can_duplicate=_owns_request,
        can_confirm=_student_confirms,
        creatable=frozenset({EntityType.STUDENT_REQUEST}),
        create_flow=CalendarFlow.CREATE_STUDENT_REQUEST,
        event_flow=_student_flow,
        show_availability_slots=False,
        calendar_filters=MappingProxyType({
            "can_filter_by_tutor": True,
            "can_filter_by_subject": True,
            "can_filter_by_work_type": True,
            "can_filter_by_availability_type": False,
        }),
        calendar_scope=MappingProxyType({
            "can_toggle_denied_student_requests": False,
            "can_toggle_tutor_availabilities": True,
            "can_toggle_coaching_shifts": True,
            "can_toggle_tutoring_shifts": True,
        }),
    ),
})


def get_calendar_policy(role: Role | str) -> CalendarPolicy:
    """Resolve the policy for ``role`` (accepts the enum or its value)."""
    return ROLE_POLICIES[Role(role)]
