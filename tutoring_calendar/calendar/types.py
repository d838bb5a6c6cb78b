"""Calendar data types."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class EntityType(str, Enum):
    """Kind of calendar entity; each kind lives in its own collection."""

    SHIFT = "shifts"
    AVAILABILITY = "availability"
    STUDENT_REQUEST = "studentRequest"


class Role(str, Enum):
    """Actor roles supplied by the auth collaborator."""

    TEACHER = "teacher"
    TUTOR = "tutor"
    STUDENT = "student"


class RecurrenceType(str, Enum):
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"


class UpdateOption(str, Enum):
    """Scope of an edit or delete applied to a recurring occurrence."""

    THIS = "this"
    THIS_AND_FUTURE = "thisAndFuture"
    ALL = "all"


class CalendarFlow(str, Enum):
    """Surface token telling the UI which create/edit/view form to open."""

    CREATE_SHIFT = "createShift"
    EDIT_SHIFT = "editShift"
    VIEW_SHIFT = "viewShift"

    CREATE_STUDENT_REQUEST = "createStudentRequest"
    EDIT_STUDENT_REQUEST = "editStudentRequest"
    VIEW_STUDENT_REQUEST = "viewStudentRequest"

    CREATE_AVAILABILITY = "createAvailability"
    EDIT_AVAILABILITY = "editAvailability"
    VIEW_AVAILABILITY = "viewAvailability"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class WorkStatus(str, Enum):
    NOT_COMPLETED = "notCompleted"
    COMPLETED = "completed"


RECURRENCE_PERIODS: Dict[str, timedelta] = {
    RecurrenceType.WEEKLY.value: timedelta(weeks=1),
    RecurrenceType.FORTNIGHTLY.value: timedelta(weeks=2),
}

OCCURRENCE_SEPARATOR = "_occurrence_"


def occurrence_id(template_id: str, index: int) -> str:
    """Synthetic id of occurrence ``index`` of a recurring template."""
    return f"{template_id}{OCCURRENCE_SEPARATOR}{index}"


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO string or datetime into an aware datetime (UTC if naive)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Cannot parse instant from {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _emails(values: Optional[Iterable[Any]]) -> List[str]:
    """Normalize participant lists given as emails or {"value": email} options."""
    emails: List[str] = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get("value") or value.get("email")
        if value:
            emails.append(str(value))
    return emails


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(slots=True)
class CalendarEvent:
    """A shift, tutor availability block or student request.

    Recurring templates, generated occurrences, materialized occurrences and
    split availability intervals all share this shape. Occurrences point back
    at their template through ``recurring_event_id`` only.
    """

    id: str
    entity_type: EntityType
    start: datetime
    end: datetime
    title: str = ""

    # Recurrence (templates)
    recurring: Optional[str] = None  # RecurrenceType value, None for single events
    until: Optional[datetime] = None
    exceptions: List[int] = field(default_factory=list)

    # Ownership
    staff: List[str] = field(default_factory=list)
    students: List[str] = field(default_factory=list)
    tutor: Optional[str] = None  # Availability owner
    classes: List[str] = field(default_factory=list)

    # Details
    description: str = ""
    work_type: Optional[str] = None  # tutoring/coaching (shifts), tutoring/work/tutoringOrWork (availability)
    location_type: str = ""

    # Status
    approval_status: Optional[str] = None
    work_status: str = WorkStatus.NOT_COMPLETED.value
    created_by_student: bool = False
    confirmation_required: bool = False
    min_students: int = 0
    student_responses: List[Dict[str, Any]] = field(default_factory=list)
    tutor_responses: List[Dict[str, Any]] = field(default_factory=list)

    # External meeting
    meeting_id: Optional[str] = None
    meeting_join_url: Optional[str] = None

    # Occurrence bookkeeping
    is_instance: bool = False
    occurrence_index: Optional[int] = None
    recurring_event_id: Optional[str] = None
    materialized: bool = False

    # Split availability intervals carry the id of the block they came from
    parent_id: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        """True for a recurring template (never for an occurrence)."""
        return bool(self.recurring) and not self.is_instance

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def series_id(self) -> Optional[str]:
        """Id of the template this row belongs to, if it is part of a series."""
        if self.is_instance:
            return self.recurring_event_id
        if self.is_recurring:
            return self.id
        return None

    @property
    def attendees(self) -> List[str]:
        return [*self.students, *self.staff]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "entity_type": self.entity_type.value,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "recurring": self.recurring,
            "until": _iso(self.until),
            "exceptions": sorted(set(self.exceptions)),
            "staff": list(self.staff),
            "students": list(self.students),
            "tutor": self.tutor,
            "classes": list(self.classes),
            "description": self.description,
            "work_type": self.work_type,
            "location_type": self.location_type,
            "approval_status": self.approval_status,
            "work_status": self.work_status,
            "created_by_student": self.created_by_student,
            "confirmation_required": self.confirmation_required,
            "min_students": self.min_students,
            "student_responses": [dict(r) for r in self.student_responses],
            "tutor_responses": [dict(r) for r in self.tutor_responses],
            "meeting_id": self.meeting_id,
            "meeting_join_url": self.meeting_join_url,
            "is_instance": self.is_instance,
            "occurrence_index": self.occurrence_index,
            "recurring_event_id": self.recurring_event_id,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        entity_type: Optional[EntityType] = None,
    ) -> "CalendarEvent":
        """Create from a stored document.

        ``entity_type`` wins over the stored value since the collection a
        document was read from decides what it is.
        """
        kind = entity_type or EntityType(data.get("entity_type", EntityType.SHIFT.value))
        is_instance = bool(data.get("is_instance", False))
        return cls(
            id=str(data["id"]),
            entity_type=kind,
            title=data.get("title") or "",
            start=parse_instant(data["start"]),
            end=parse_instant(data["end"]),
            recurring=data.get("recurring") or None,
            until=parse_instant(data.get("until")),
            exceptions=[int(i) for i in data.get("exceptions") or []],
            staff=_emails(data.get("staff")),
            students=_emails(data.get("students")),
            tutor=data.get("tutor"),
            classes=list(data.get("classes") or []),
            description=data.get("description") or "",
            work_type=data.get("work_type"),
            location_type=data.get("location_type") or "",
            approval_status=data.get("approval_status"),
            work_status=data.get("work_status") or WorkStatus.NOT_COMPLETED.value,
            created_by_student=bool(data.get("created_by_student", False)),
            confirmation_required=bool(data.get("confirmation_required", False)),
            min_students=int(data.get("min_students") or 0),
            student_responses=list(data.get("student_responses") or []),
            tutor_responses=list(data.get("tutor_responses") or []),
            meeting_id=data.get("meeting_id"),
            meeting_join_url=data.get("meeting_join_url"),
            is_instance=is_instance,
            occurrence_index=data.get("occurrence_index"),
            recurring_event_id=data.get("recurring_event_id"),
            # Anything read back from the store as an instance was materialized
            materialized=is_instance,
        )

    def to_api_dict(self) -> Dict[str, Any]:
        """Convert to API response format (camelCase)."""
        return {
            "id": self.id,
            "entityType": self.entity_type.value,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "recurring": self.recurring,
            "until": _iso(self.until),
            "exceptions": sorted(set(self.exceptions)),
            "staff": list(self.staff),
            "students": list(self.students),
            "tutor": self.tutor,
            "classes": list(self.classes),
            "description": self.description,
            "workType": self.work_type,
            "locationType": self.location_type,
            "approvalStatus": self.approval_status,
            "workStatus": self.work_status,
            "createdByStudent": self.created_by_student,
            "confirmationRequired": self.confirmation_required,
            "minStudents": self.min_students,
            "studentResponses": [dict(r) for r in self.student_responses],
            "tutorResponses": [dict(r) for r in self.tutor_responses],
            "meetingId": self.meeting_id,
            "meetingJoinUrl": self.meeting_join_url,
            "isInstance": self.is_instance,
            "occurrenceIndex": self.occurrence_index,
            "recurringEventId": self.recurring_event_id,
            "materialized": self.materialized,
            "parentId": self.parent_id,
        }


@dataclass(slots=True)
class Actor:
    """The active user as supplied by the auth collaborator."""

    role: Role
    email: str
