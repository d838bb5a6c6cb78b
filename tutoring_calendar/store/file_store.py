"""File-backed document store for local development and tests.

File Storage Structure:
    {store_dir}/{collection}.json -> {doc_id: document}

Change notification is in-process only: every write pushes a fresh snapshot
to the subscribers of the touched collections.
"""
from __future__ import annotations

import copy
import json
import logging
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .base import (
    MAX_BATCH_SIZE,
    BatchOp,
    QueryFilter,
    StoreError,
    StoreSnapshot,
    Subscription,
    matches_filters,
)

logger = logging.getLogger(__name__)


class FileDocumentStore:
    """JSON-file implementation of the DocumentStore protocol."""

    def __init__(self, store_dir: Path) -> None:
        self.store_dir = Path(store_dir)
        self._subscribers: Dict[str, List[Subscription]] = defaultdict(list)

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _path(self, collection: str) -> Path:
        return self.store_dir / f"{collection}.json"

    def _load(self, collection: str) -> Dict[str, Dict[str, Any]]:
        path = self._path(collection)
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Failed to read collection '{collection}': {exc}") from exc

    def _save(self, collection: str, docs: Dict[str, Dict[str, Any]]) -> None:
        self.store_dir.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._path(collection), "w", encoding="utf-8") as f:
                json.dump(docs, f, indent=2, default=str)
        except OSError as exc:
            raise StoreError(f"Failed to write collection '{collection}': {exc}") from exc

    def _snapshot(self, collection: str) -> StoreSnapshot:
        docs = self._load(collection)
        return StoreSnapshot(
            collection=collection,
            docs=[{**doc, "id": doc_id} for doc_id, doc in docs.items()],
        )

    def _notify(self, *collections: str) -> None:
        for collection in set(collections):
            subscribers = self._subscribers.get(collection)
            if not subscribers:
                continue
            snapshot = self._snapshot(collection)
            for subscription in list(subscribers):
                subscription.push(copy.deepcopy(snapshot))

    # ------------------------------------------------------------------
    # DocumentStore protocol
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._load(collection).get(doc_id)
        if doc is None:
            return None
        return {**doc, "id": doc_id}

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        return self._snapshot(collection).docs

    async def query(self, collection: str, filters: Iterable[QueryFilter]) -> List[Dict[str, Any]]:
        filters = list(filters)
        return [doc for doc in self._snapshot(collection).docs if matches_filters(doc, filters)]

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        docs = self._load(collection)
        docs[doc_id] = {k: v for k, v in data.items() if k != "id"}
        self._save(collection, docs)
        self._notify(collection)

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        docs = self._load(collection)
        if doc_id not in docs:
            raise StoreError(f"No document '{doc_id}' in '{collection}' to update.")
        docs[doc_id].update({k: v for k, v in patch.items() if k != "id"})
        self._save(collection, docs)
        self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        docs = self._load(collection)
        if docs.pop(doc_id, None) is None:
            return
        self._save(collection, docs)
        self._notify(collection)

    async def batch_write(self, ops: List[BatchOp]) -> None:
        if len(ops) > MAX_BATCH_SIZE:
            raise StoreError(f"Batch of {len(ops)} writes exceeds limit of {MAX_BATCH_SIZE}.")

        # Stage every collection first so the batch commits all-or-nothing.
        staged: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for op in ops:
            docs = staged.setdefault(op.collection, self._load(op.collection))
            if op.kind == "set":
                docs[op.doc_id] = {k: v for k, v in (op.data or {}).items() if k != "id"}
            elif op.kind == "update":
                if op.doc_id not in docs:
                    raise StoreError(f"No document '{op.doc_id}' in '{op.collection}' to update.")
                docs[op.doc_id].update(op.data or {})
            elif op.kind == "delete":
                docs.pop(op.doc_id, None)
            else:
                raise StoreError(f"Unknown batch operation '{op.kind}'.")

        for collection, docs in staged.items():
            self._save(collection, docs)
        self._notify(*staged)

    def subscribe(self, collection: str) -> Subscription:
        def _remove() -> None:
            subscribers = self._subscribers.get(collection, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

        subscription = Subscription(collection, on_close=_remove)
        self._subscribers[collection].append(subscription)
        subscription.push(self._snapshot(collection))
        logger.debug("Subscribed to file collection %s", collection)
        return subscription
