"""Shared fixtures for calendar tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tutoring_calendar.calendar.types import CalendarEvent, EntityType
from tutoring_calendar.config import Settings
from tutoring_calendar.store import FileDocumentStore


MONDAY_9AM = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store_dir(tmp_path):
    """Temporary directory for the file-backed store."""
    path = tmp_path / "calendar_store"
    path.mkdir()
    return path


@pytest.fixture
def store(store_dir):
    return FileDocumentStore(store_dir)


@pytest.fixture
def settings(store_dir):
    return Settings(force_file_store=True, store_dir=store_dir)


@pytest.fixture
def make_event():
    """Factory for calendar events with sensible defaults."""

    def _make(
        event_id: str = "evt-1",
        entity_type: EntityType = EntityType.SHIFT,
        start: datetime = MONDAY_9AM,
        hours: float = 1,
        **fields,
    ) -> CalendarEvent:
        return CalendarEvent(
            id=event_id,
            entity_type=entity_type,
            start=start,
            end=start + timedelta(hours=hours),
            **fields,
        )

    return _make
