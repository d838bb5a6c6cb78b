"""Recurring event expansion.

Templates are stored once; occurrences are generated in memory on every
snapshot. Occurrence ``i`` of a template starts ``i`` periods after the
template and keeps its duration, unless ``i`` is in the template's
exceptions (skipped) or starts after ``until`` (generation stops).

Supported patterns:
- weekly: every 7 days, capped at ``max_occurrences``
- fortnightly: every 14 days, capped at ``max_occurrences // 2``
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .types import RECURRENCE_PERIODS, CalendarEvent, RecurrenceType, occurrence_id


@dataclass(slots=True)
class ExpansionWindow:
    """Half-open generation window ``[range_start, range_end)``."""

    range_start: datetime
    range_end: datetime
    max_occurrences: int = 52

    @classmethod
    def from_now(cls, now: datetime, *, horizon_weeks: int = 52, max_occurrences: int = 52) -> "ExpansionWindow":
        return cls(
            range_start=now,
            range_end=now + timedelta(weeks=horizon_weeks),
            max_occurrences=max_occurrences,
        )


def recurrence_period(recurring: str) -> timedelta:
    """Return the spacing between occurrences for a recurrence pattern."""
    try:
        return RECURRENCE_PERIODS[recurring]
    except KeyError as exc:
        raise ValueError(f"Unsupported recurrence pattern: {recurring!r}") from exc


def occurrence_cap(recurring: str, max_occurrences: int) -> int:
    """Upper bound (exclusive) on occurrence indices for a pattern.

    Fortnightly series get half the cap so both patterns span about a year.
    """
    if recurring == RecurrenceType.WEEKLY.value:
        return max_occurrences
    return max_occurrences // 2


def occurrence_start(template: CalendarEvent, index: int) -> datetime:
    return template.start + index * recurrence_period(template.recurring)


def build_occurrence(template: CalendarEvent, index: int) -> CalendarEvent:
    """Generate occurrence ``index`` of ``template`` (no exception/until checks)."""
    start = occurrence_start(template, index)
    return replace(
        template,
        id=occurrence_id(template.id, index),
        start=start,
        end=start + template.duration,
        exceptions=list(template.exceptions),
        staff=list(template.staff),
        students=list(template.students),
        classes=list(template.classes),
        student_responses=[dict(r) for r in template.student_responses],
        tutor_responses=[dict(r) for r in template.tutor_responses],
        is_instance=True,
        occurrence_index=index,
        recurring_event_id=template.id,
        materialized=False,
    )


def iter_occurrences(
    template: CalendarEvent,
    window: ExpansionWindow,
    skip_ids: Optional[set[str]] = None,
) -> Iterable[CalendarEvent]:
    """Yield the in-window occurrences of a recurring template (index >= 1)."""
    period = recurrence_period(template.recurring)
    exceptions = set(template.exceptions)
    skip_ids = skip_ids or set()

    for index in range(1, occurrence_cap(template.recurring, window.max_occurrences)):
        if index in exceptions:
            continue

        start = template.start + index * period
        if template.until is not None and start > template.until:
            break

        if not (window.range_start <= start < window.range_end):
            continue

        if occurrence_id(template.id, index) in skip_ids:
            # A materialized copy already exists and is authoritative.
            continue

        yield build_occurrence(template, index)


def expand_recurring_events(
    events: Iterable[CalendarEvent],
    window: ExpansionWindow,
) -> List[CalendarEvent]:
    """Expand recurring templates into individual occurrences.

    Args:
        events: Stored rows: single events, recurring templates and
            materialized occurrences, in any order.
        window: Generation window and occurrence cap.

    Returns:
        The input rows in order, each recurring template immediately followed
        by its generated occurrences. The template itself is always kept as
        occurrence 0.
    """
    events = list(events)
    persisted_ids = {event.id for event in events if event.is_instance}

    expanded: List[CalendarEvent] = []
    for event in events:
        expanded.append(event)
        if event.is_recurring:
            expanded.extend(iter_occurrences(event, window, persisted_ids))
    return expanded
