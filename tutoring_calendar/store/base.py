"""Document store contract shared by the Firestore and file backends.

The calendar engine never talks to a database directly. It needs CRUD,
bounded batched writes and a change feed that delivers full snapshots of a
collection; anything providing those coroutines can back the engine.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Protocol, Tuple

from ..config import MAX_BATCH_SIZE

logger = logging.getLogger(__name__)

# (field, operator, value); operators: ==, !=, <, <=, >, >=, in, array_contains
QueryFilter = Tuple[str, str, Any]
BatchOpKind = Literal["set", "update", "delete"]


class StoreError(RuntimeError):
    """Raised when a document store read or write fails."""


@dataclass(slots=True)
class BatchOp:
    """A single write inside a batched commit."""

    kind: BatchOpKind
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


@dataclass(slots=True)
class StoreSnapshot:
    """Full contents of a collection at one point in time."""

    collection: str
    docs: List[Dict[str, Any]] = field(default_factory=list)
    read_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ids(self) -> set[str]:
        return {doc["id"] for doc in self.docs}


_CLOSED = object()


class Subscription:
    """Cancellable stream of collection snapshots.

    Iterate with ``async for``; the consumer must call ``unsubscribe()`` when
    done. The stream ends after unsubscribe.
    """

    def __init__(self, collection: str, on_close: Optional[Callable[[], None]] = None) -> None:
        self.collection = collection
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, snapshot: StoreSnapshot) -> None:
        """Deliver a snapshot. Must be called on the subscriber's event loop."""
        if not self._closed:
            self._queue.put_nowait(snapshot)

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> StoreSnapshot:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class DocumentStore(Protocol):
    """Async CRUD + change-notification store."""

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...

    async def list(self, collection: str) -> List[Dict[str, Any]]: ...

    async def query(self, collection: str, filters: Iterable[QueryFilter]) -> List[Dict[str, Any]]: ...

    async def add(self, collection: str, data: Dict[str, Any]) -> str: ...

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None: ...

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def batch_write(self, ops: List[BatchOp]) -> None: ...

    def subscribe(self, collection: str) -> Subscription: ...


def chunked(ops: List[BatchOp], size: int = MAX_BATCH_SIZE) -> List[List[BatchOp]]:
    """Split ``ops`` into batches no larger than ``size``."""
    if size < 1 or size > MAX_BATCH_SIZE:
        raise ValueError(f"batch size must be between 1 and {MAX_BATCH_SIZE}")
    return [ops[i:i + size] for i in range(0, len(ops), size)]


def matches_filters(doc: Dict[str, Any], filters: Iterable[QueryFilter]) -> bool:
    """Evaluate Firestore-style filters against a plain document."""
    for field_name, op, expected in filters:
        actual = doc.get(field_name)
        if op == "==":
            ok = actual == expected
        elif op == "!=":
            ok = actual != expected
        elif op == "in":
            ok = actual in expected
        elif op == "array_contains":
            ok = isinstance(actual, list) and expected in actual
        elif actual is None:
            ok = False
        elif op == "<":
            ok = actual < expected
        elif op == "<=":
            ok = actual <= expected
        elif op == ">":
            ok = actual > expected
        elif op == ">=":
            ok = actual >= expected
        else:
            raise ValueError(f"Unsupported query operator: {op}")
        if not ok:
            return False
    return True
