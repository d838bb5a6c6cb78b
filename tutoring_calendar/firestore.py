"""Shared Firestore client helpers."""
from __future__ import annotations

_firestore_client = None
_firestore_async_client = None


def _ensure_app():
    try:
        import firebase_admin
    except ModuleNotFoundError as exc:  # pragma: no cover
        raise RuntimeError(
            "firebase-admin is required for Firestore storage. "
            "Install dependencies or set TCAL_STORE_FORCE_FILE=1."
        ) from exc

    if not firebase_admin._apps:
        firebase_admin.initialize_app()


def get_firestore_client():
    """Return a cached synchronous Firestore client (used for snapshot listeners)."""

    global _firestore_client
    if _firestore_client is not None:
        return _firestore_client

    _ensure_app()
    from firebase_admin import firestore

    _firestore_client = firestore.client()
    return _firestore_client


def get_firestore_async_client():
    """Return a cached asynchronous Firestore client (used for reads and writes)."""

    global _firestore_async_client
    if _firestore_async_client is not None:
        return _firestore_async_client

    _ensure_app()
    from firebase_admin import firestore_async

    _firestore_async_client = firestore_async.client()
    return _firestore_async_client
