"""Availability splitting.

A tutor's availability block is shown minus every shift that tutor is
staffed on. Splitting is plain interval subtraction with a cursor walking
the overlapping shifts in start order; touching or overlapping shifts merge
naturally because the cursor only ever moves forward.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from .types import ApprovalStatus, CalendarEvent

Interval = Tuple[datetime, datetime]


def subtract_intervals(start: datetime, end: datetime, busy: Sequence[Interval]) -> List[Interval]:
    """Return the parts of ``[start, end)`` not covered by any ``busy`` interval."""
    overlapping = sorted(
        (b_start, b_end) for b_start, b_end in busy if b_start < end and b_end > start
    )
    if not overlapping:
        return [(start, end)]

    free: List[Interval] = []
    cursor = start
    for b_start, b_end in overlapping:
        if b_start > cursor:
            free.append((cursor, b_start))
        cursor = max(cursor, b_end)
    if cursor < end:
        free.append((cursor, end))
    return free


def _blocks_availability(shift: CalendarEvent) -> bool:
    # Denied student requests never took up the tutor's time.
    return not (shift.created_by_student and shift.approval_status == ApprovalStatus.DENIED.value)


def _shifts_by_tutor(shifts: Iterable[CalendarEvent]) -> Dict[str, List[Interval]]:
    by_tutor: Dict[str, List[Interval]] = defaultdict(list)
    for shift in shifts:
        if not _blocks_availability(shift):
            continue
        for email in shift.staff:
            by_tutor[email].append((shift.start, shift.end))
    for intervals in by_tutor.values():
        intervals.sort()
    return by_tutor


def split_availabilities(
    availabilities: Iterable[CalendarEvent],
    shifts: Iterable[CalendarEvent],
) -> List[CalendarEvent]:
    """Split availability blocks around the shifts of their tutor.

    Args:
        availabilities: Availability blocks (already expanded)
        shifts: Shifts and shift occurrences on the same calendar

    Returns:
        Free intervals. A block no shift touches is returned as-is; otherwise
        each remaining piece keeps the block's fields, gets the id
        ``{block_id}_split_{n}`` and records the block id in ``parent_id``.
        Fully covered blocks produce nothing.
    """
    busy_by_tutor = _shifts_by_tutor(shifts)

    result: List[CalendarEvent] = []
    for block in availabilities:
        busy = busy_by_tutor.get(block.tutor or "", [])
        free = subtract_intervals(block.start, block.end, busy)

        if free == [(block.start, block.end)]:
            result.append(block)
            continue

        for n, (start, end) in enumerate(free):
            result.append(
                replace(
                    block,
                    id=f"{block.id}_split_{n}",
                    start=start,
                    end=end,
                    parent_id=block.id,
                )
            )
    return result
