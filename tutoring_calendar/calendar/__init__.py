"""Calendar domain engine.

This module provides the tutoring calendar's core behavior:
- Expansion of recurring shifts, availability and requests into occurrences
- Materialization of started occurrences into standalone documents
- Splitting tutor availability around the shifts they are staffed on
- Role capability policies (teacher / tutor / student)
- Mutations with optimistic state and rollback
- The notification outbox gate
"""
from __future__ import annotations

from .types import (
    Actor,
    ApprovalStatus,
    CalendarEvent,
    CalendarFlow,
    EntityType,
    RecurrenceType,
    Role,
    UpdateOption,
    WorkStatus,
    occurrence_id,
    parse_instant,
)

from .recurrence import (
    ExpansionWindow,
    build_occurrence,
    expand_recurring_events,
    iter_occurrences,
    occurrence_cap,
    recurrence_period,
)

from .materialize import (
    MaterializationResult,
    due_occurrences,
    materialize_due_occurrences,
)

from .availability import split_availabilities, subtract_intervals

from .filters import CalendarFilters, filter_availabilities, filter_shifts

from .policy import ROLE_POLICIES, CalendarPolicy, get_calendar_policy

from .state import CalendarSnapshot, CalendarState

from .notifications import NotificationOutcome, NotificationQueueGate, times_changed

from .mutations import (
    EventValidationError,
    MutationCoordinator,
    MutationResult,
    MutationStatus,
    validate_event,
)

from .session import (
    CalendarSession,
    CalendarView,
    build_calendar_view,
    load_calendar_state,
    session_window,
)

__all__ = [
    # Types
    "Actor",
    "ApprovalStatus",
    "CalendarEvent",
    "CalendarFlow",
    "EntityType",
    "RecurrenceType",
    "Role",
    "UpdateOption",
    "WorkStatus",
    "occurrence_id",
    "parse_instant",
    # Recurrence
    "ExpansionWindow",
    "build_occurrence",
    "expand_recurring_events",
    "iter_occurrences",
    "occurrence_cap",
    "recurrence_period",
    "MaterializationResult",
    "due_occurrences",
    "materialize_due_occurrences",
    # Availability
    "split_availabilities",
    "subtract_intervals",
    "CalendarFilters",
    "filter_availabilities",
    "filter_shifts",
    # Policy
    "ROLE_POLICIES",
    "CalendarPolicy",
    "get_calendar_policy",
    # State and mutations
    "CalendarSnapshot",
    "CalendarState",
    "NotificationOutcome",
    "NotificationQueueGate",
    "times_changed",
    "EventValidationError",
    "MutationCoordinator",
    "MutationResult",
    "MutationStatus",
    "validate_event",
    # Session
    "CalendarSession",
    "CalendarView",
    "build_calendar_view",
    "load_calendar_state",
    "session_window",
]
