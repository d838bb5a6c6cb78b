"""Shared dependencies and helper functions for API routers.

Usage in routers:
    from api.dependencies import get_current_actor, get_settings, get_store
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from tutoring_calendar.api.auth import get_current_user, resolve_actor
from tutoring_calendar.calendar.types import Actor
from tutoring_calendar.config import Settings, load_settings
from tutoring_calendar.meetings import MeetingProvider, TeamsMeetingClient
from tutoring_calendar.store import DocumentStore, get_document_store


# =============================================================================
# Configuration Constants
# =============================================================================

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    os.getenv("TCAL_ALLOWED_FRONTEND", "").strip(),
]


# =============================================================================
# Cached Functions
# =============================================================================

@lru_cache
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return load_settings()


@lru_cache
def _cached_store() -> DocumentStore:
    return get_document_store(get_settings())


def get_store() -> DocumentStore:
    """Document store shared by every request."""
    return _cached_store()


def get_meeting_provider(settings: Settings = Depends(get_settings)) -> Optional[MeetingProvider]:
    """Teams client when a Graph token is configured, else no meeting side effects."""
    if not settings.meeting_access_token:
        return None
    return TeamsMeetingClient(settings.meeting_access_token)


# =============================================================================
# Auth
# =============================================================================

async def get_current_actor(
    email: str = Depends(get_current_user),
    dev_role: Optional[str] = Header(default=None, alias="X-User-Role"),
    store: DocumentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Actor:
    """Resolve the requesting user's role from the users collection."""
    return await resolve_actor(store, settings.users_collection, email, dev_role)


def get_environment_info() -> tuple[str, bool]:
    """Get environment identifier and dev bypass flag.

    Returns:
        Tuple of (environment_name, is_dev_bypass)
    """
    env = os.getenv("TCAL_ENV", "local")
    is_dev = os.getenv("TCAL_DEV_AUTH_BYPASS") == "1"
    return env, is_dev
