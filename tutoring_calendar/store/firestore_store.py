"""Firestore implementation of the DocumentStore protocol.

Firestore Structure:
    {collection}/{doc_id} -> calendar document

CRUD and batched writes go through the firebase_admin async client. The
async client has no snapshot listener, so subscriptions use the synchronous
client's ``on_snapshot`` watch and hop each snapshot back onto the event loop.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from ..firestore import get_firestore_async_client, get_firestore_client
from .base import MAX_BATCH_SIZE, BatchOp, QueryFilter, StoreError, StoreSnapshot, Subscription

logger = logging.getLogger(__name__)


def _doc_to_dict(doc) -> Dict[str, Any]:
    return {**(doc.to_dict() or {}), "id": doc.id}


class FirestoreDocumentStore:
    """Document store backed by Cloud Firestore."""

    def __init__(self, client=None, watch_client=None) -> None:
        self._client = client
        self._watch_client = watch_client

    @property
    def client(self):
        if self._client is None:
            self._client = get_firestore_async_client()
        return self._client

    @property
    def watch_client(self):
        if self._watch_client is None:
            self._watch_client = get_firestore_client()
        return self._watch_client

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self.client.collection(collection).document(doc_id).get()
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore read of {collection}/{doc_id} failed: {exc}") from exc
        if not doc.exists:
            return None
        return _doc_to_dict(doc)

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        try:
            return [_doc_to_dict(doc) async for doc in self.client.collection(collection).stream()]
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore list of {collection} failed: {exc}") from exc

    async def query(self, collection: str, filters: Iterable[QueryFilter]) -> List[Dict[str, Any]]:
        query = self.client.collection(collection)
        for field_name, op, value in filters:
            query = query.where(filter=FieldFilter(field_name, op, value))
        try:
            return [_doc_to_dict(doc) async for doc in query.stream()]
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore query on {collection} failed: {exc}") from exc

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        payload = {k: v for k, v in data.items() if k != "id"}
        try:
            _, doc_ref = await self.client.collection(collection).add(payload)
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore add to {collection} failed: {exc}") from exc
        return doc_ref.id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        payload = {k: v for k, v in data.items() if k != "id"}
        try:
            await self.client.collection(collection).document(doc_id).set(payload)
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore set of {collection}/{doc_id} failed: {exc}") from exc

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        payload = {k: v for k, v in patch.items() if k != "id"}
        try:
            await self.client.collection(collection).document(doc_id).update(payload)
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore update of {collection}/{doc_id} failed: {exc}") from exc

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self.client.collection(collection).document(doc_id).delete()
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore delete of {collection}/{doc_id} failed: {exc}") from exc

    async def batch_write(self, ops: List[BatchOp]) -> None:
        if len(ops) > MAX_BATCH_SIZE:
            raise StoreError(f"Batch of {len(ops)} writes exceeds limit of {MAX_BATCH_SIZE}.")

        batch = self.client.batch()
        for op in ops:
            ref = self.client.collection(op.collection).document(op.doc_id)
            data = {k: v for k, v in (op.data or {}).items() if k != "id"}
            if op.kind == "set":
                batch.set(ref, data)
            elif op.kind == "update":
                batch.update(ref, data)
            elif op.kind == "delete":
                batch.delete(ref)
            else:
                raise StoreError(f"Unknown batch operation '{op.kind}'.")

        try:
            await batch.commit()
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreError(f"Firestore batch commit failed: {exc}") from exc

    def subscribe(self, collection: str) -> Subscription:
        loop = asyncio.get_running_loop()
        watch = None

        def _close() -> None:
            if watch is not None:
                watch.unsubscribe()

        subscription = Subscription(collection, on_close=_close)

        def _on_snapshot(docs, changes, read_time) -> None:
            # Runs on the Firestore watch thread.
            snapshot = StoreSnapshot(
                collection=collection,
                docs=[_doc_to_dict(doc) for doc in docs],
                read_at=read_time,
            )
            loop.call_soon_threadsafe(subscription.push, snapshot)

        watch = self.watch_client.collection(collection).on_snapshot(_on_snapshot)
        logger.info("Subscribed to Firestore collection %s", collection)
        return subscription
