"""In-memory calendar state: three slices (shifts, availability, requests).

Rows are treated as immutable; every change swaps in a new list for the
affected slice so a captured ``CalendarSnapshot`` can be restored verbatim.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .types import CalendarEvent, EntityType


@dataclass(frozen=True)
class CalendarSnapshot:
    """Point-in-time copy of all three slices."""

    slices: Dict[EntityType, Tuple[CalendarEvent, ...]]


class CalendarState:
    """Shifts, availability blocks and student requests currently on screen."""

    def __init__(
        self,
        shifts: Iterable[CalendarEvent] = (),
        availabilities: Iterable[CalendarEvent] = (),
        student_requests: Iterable[CalendarEvent] = (),
    ) -> None:
        self._slices: Dict[EntityType, List[CalendarEvent]] = {
            EntityType.SHIFT: list(shifts),
            EntityType.AVAILABILITY: list(availabilities),
            EntityType.STUDENT_REQUEST: list(student_requests),
        }

    @property
    def shifts(self) -> List[CalendarEvent]:
        return list(self._slices[EntityType.SHIFT])

    @property
    def availabilities(self) -> List[CalendarEvent]:
        return list(self._slices[EntityType.AVAILABILITY])

    @property
    def student_requests(self) -> List[CalendarEvent]:
        return list(self._slices[EntityType.STUDENT_REQUEST])

    def events(self, entity_type: EntityType) -> List[CalendarEvent]:
        return list(self._slices[entity_type])

    def all_events(self) -> List[CalendarEvent]:
        return [event for rows in self._slices.values() for event in rows]

    def find(self, event_id: str, entity_type: Optional[EntityType] = None) -> Optional[CalendarEvent]:
        kinds = [entity_type] if entity_type else list(self._slices)
        for kind in kinds:
            for event in self._slices[kind]:
                if event.id == event_id:
                    return event
        return None

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> CalendarSnapshot:
        return CalendarSnapshot({kind: tuple(rows) for kind, rows in self._slices.items()})

    def restore(self, snapshot: CalendarSnapshot) -> None:
        self._slices = {kind: list(rows) for kind, rows in snapshot.slices.items()}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_slice(self, entity_type: EntityType, events: Iterable[CalendarEvent]) -> None:
        self._slices[entity_type] = list(events)

    def upsert(self, event: CalendarEvent, *, replace_id: Optional[str] = None) -> None:
        """Replace the row with id ``replace_id`` (default ``event.id``) or append."""
        target = replace_id or event.id
        rows = list(self._slices[event.entity_type])
        for i, row in enumerate(rows):
            if row.id == target:
                rows[i] = event
                break
        else:
            rows.append(event)
        self._slices[event.entity_type] = rows

    def extend(self, events: Iterable[CalendarEvent]) -> None:
        for event in events:
            self.upsert(event)

    def remove_where(self, entity_type: EntityType, predicate: Callable[[CalendarEvent], bool]) -> int:
        rows = self._slices[entity_type]
        kept = [row for row in rows if not predicate(row)]
        self._slices[entity_type] = kept
        return len(rows) - len(kept)

    def remove(self, event: CalendarEvent) -> int:
        return self.remove_where(event.entity_type, lambda row: row.id == event.id)
