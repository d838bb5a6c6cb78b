"""Materialization of started occurrences.

Once an occurrence has started it is frozen into a standalone document so
later edits to its template cannot rewrite history. Documents are written
with their synthetic occurrence id, so a pass is an idempotent, de-duplicated
write: ids already present in the store are always skipped and never
compared against the template again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Set

from ..store.base import MAX_BATCH_SIZE, BatchOp, DocumentStore, StoreError, chunked
from .types import CalendarEvent, EntityType

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MaterializationResult:
    """Outcome of one materialization pass."""

    persisted: List[str] = field(default_factory=list)
    skipped: int = 0
    failed_batches: int = 0
    errors: List[str] = field(default_factory=list)
    ran_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return not self.errors


def due_occurrences(
    events: Iterable[CalendarEvent],
    existing_ids: Set[str],
    now: datetime,
) -> List[CalendarEvent]:
    """Return transient occurrences that have started and are not yet persisted."""
    return [
        event
        for event in events
        if event.is_instance
        and not event.materialized
        and event.start <= now
        and event.id not in existing_ids
    ]


async def materialize_due_occurrences(
    store: DocumentStore,
    events: Iterable[CalendarEvent],
    existing_ids: Set[str],
    *,
    collection_for: Callable[[EntityType], str],
    now: Optional[datetime] = None,
    batch_size: int = MAX_BATCH_SIZE,
) -> MaterializationResult:
    """Persist every started transient occurrence as its own document.

    Args:
        store: Document store to write to
        events: Expanded calendar rows (templates, occurrences, singles)
        existing_ids: Ids already persisted in the target collections;
            updated in place with the ids written by this pass
        collection_for: Maps an entity type to its collection
        now: Cut-off instant (defaults to the current time)
        batch_size: Maximum writes per batched commit

    Returns:
        MaterializationResult; a failed batch is reported there and its
        occurrences stay transient until a later pass.
    """
    now = now or datetime.now(timezone.utc)
    result = MaterializationResult(ran_at=now)

    events = list(events)
    due = due_occurrences(events, existing_ids, now)
    result.skipped = sum(1 for event in events if event.is_instance) - len(due)
    if not due:
        return result

    ops = [
        BatchOp(
            kind="set",
            collection=collection_for(event.entity_type),
            doc_id=event.id,
            data=event.to_dict(),
        )
        for event in due
    ]

    for batch in chunked(ops, batch_size):
        try:
            await store.batch_write(batch)
        except StoreError as exc:
            result.failed_batches += 1
            result.errors.append(str(exc))
            logger.error(
                "[Materialize] Batch of %d occurrences failed, will retry next pass: %s",
                len(batch),
                exc,
            )
            continue
        persisted = [op.doc_id for op in batch]
        result.persisted.extend(persisted)
        existing_ids.update(persisted)

    if result.persisted:
        logger.info("[Materialize] Persisted %d occurrences", len(result.persisted))
    return result
