"""Role-aware calendar view filters (filter panel state applied to data)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .types import ApprovalStatus, CalendarEvent, Role

STUDENT_VISIBLE_AVAILABILITY = {"tutoring", "tutoringOrWork", None}


@dataclass(slots=True)
class CalendarFilters:
    """Filter panel selections."""

    tutors: List[str] = field(default_factory=list)
    subject_tutors: Optional[List[str]] = None  # Tutors of the selected subject
    availability_work_type: Optional[str] = None

    hide_own_availabilities: bool = False
    hide_denied_student_requests: bool = False
    hide_tutoring_availabilities: bool = False
    hide_work_availabilities: bool = False

    show_tutoring_shifts: bool = True
    show_coaching_shifts: bool = True


def _is_denied_student_request(event: CalendarEvent) -> bool:
    return event.created_by_student and event.approval_status == ApprovalStatus.DENIED.value


def filter_shifts(
    events: Iterable[CalendarEvent],
    role: Role,
    email: str,
    filters: CalendarFilters,
) -> List[CalendarEvent]:
    """Apply role scoping and filter selections to shifts."""
    filtered = list(events)

    if role == Role.TUTOR:
        filtered = [e for e in filtered if email in e.staff]

    if role in (Role.TUTOR, Role.TEACHER) and filters.hide_denied_student_requests:
        filtered = [e for e in filtered if not _is_denied_student_request(e)]

    if filters.tutors:
        selected = set(filters.tutors)
        filtered = [e for e in filtered if selected.intersection(e.staff)]

    if role == Role.TEACHER:
        if not filters.show_tutoring_shifts and not filters.show_coaching_shifts:
            filtered = []
        elif not filters.show_tutoring_shifts:
            filtered = [e for e in filtered if e.work_type == "coaching"]
        elif not filters.show_coaching_shifts:
            filtered = [e for e in filtered if e.work_type == "tutoring"]

    return filtered


def filter_availabilities(
    availabilities: Iterable[CalendarEvent],
    role: Role,
    email: str,
    filters: CalendarFilters,
) -> List[CalendarEvent]:
    """Apply role scoping and filter selections to split availability slots."""
    filtered = list(availabilities)

    if role == Role.STUDENT:
        filtered = [a for a in filtered if a.work_type in STUDENT_VISIBLE_AVAILABILITY]

    if role == Role.TUTOR and filters.hide_own_availabilities:
        filtered = [a for a in filtered if a.tutor != email]

    if role == Role.TEACHER and filters.availability_work_type:
        filtered = [a for a in filtered if a.work_type == filters.availability_work_type]

    if role in (Role.TUTOR, Role.TEACHER):
        if filters.hide_tutoring_availabilities:
            filtered = [a for a in filtered if a.work_type != "tutoring"]
        if filters.hide_work_availabilities:
            filtered = [a for a in filtered if a.work_type != "work"]
        if filters.hide_tutoring_availabilities and filters.hide_work_availabilities:
            filtered = [a for a in filtered if a.work_type != "tutoringOrWork"]

    if filters.tutors:
        selected = set(filters.tutors)
        filtered = [a for a in filtered if a.tutor in selected]
    elif filters.subject_tutors is not None:
        subject_tutors = set(filters.subject_tutors)
        filtered = [a for a in filtered if a.tutor in subject_tutors]

    return filtered
