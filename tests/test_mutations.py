"""Tests for the mutation coordinator.

This module tests:
- Policy re-checks on every operation (unauthorized calls are no-ops)
- Single events, recurring occurrences (this / thisAndFuture / all) and templates
- Rollback of optimistic state on store failures
- Notification outbox and meeting side effects
- Confirm, duplicate and create flows
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tutoring_calendar.calendar.mutations import (
    EventValidationError,
    MutationCoordinator,
    MutationStatus,
    validate_event,
)
from tutoring_calendar.calendar.notifications import NotificationOutcome, NotificationQueueGate
from tutoring_calendar.calendar.recurrence import ExpansionWindow, build_occurrence
from tutoring_calendar.calendar.session import load_calendar_state
from tutoring_calendar.calendar.types import (
    Actor,
    EntityType,
    Role,
    UpdateOption,
    parse_instant,
)
from tutoring_calendar.meetings import MeetingError, MeetingInfo
from tutoring_calendar.store import FileDocumentStore, StoreError


NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)
WINDOW = ExpansionWindow(NOW - timedelta(weeks=52), NOW + timedelta(weeks=52))
MONDAY_9AM = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

TEACHER = Actor(Role.TEACHER, "teacher@example.com")
TUTOR = Actor(Role.TUTOR, "tutor@example.com")
STUDENT = Actor(Role.STUDENT, "student@example.com")


# =============================================================================
# Test Doubles
# =============================================================================

class FailingStore(FileDocumentStore):
    """File store whose calls can be made to fail by method name."""

    def __init__(self, store_dir) -> None:
        super().__init__(store_dir)
        self.fail_on = set()

    def _check(self, method: str) -> None:
        if method in self.fail_on:
            raise StoreError(f"{method} rejected")

    async def add(self, collection, data):
        self._check("add")
        return await super().add(collection, data)

    async def update(self, collection, doc_id, patch):
        self._check("update")
        await super().update(collection, doc_id, patch)

    async def delete(self, collection, doc_id):
        self._check("delete")
        await super().delete(collection, doc_id)

    async def batch_write(self, ops):
        self._check("batch_write")
        await super().batch_write(ops)

    async def query(self, collection, filters):
        self._check("query")
        return await super().query(collection, filters)


class FakeMeetings:
    """Records meeting provider calls."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.created = []
        self.updated = []
        self.deleted = []

    async def create(self, subject, description, start, end, attendees):
        if self.fail:
            raise MeetingError("Graph unavailable")
        self.created.append((subject, start, end, list(attendees)))
        return MeetingInfo(meeting_id="m-new", join_url="https://teams.example/join")

    async def update(self, meeting_id, subject, description, start, end, attendees):
        if self.fail:
            raise MeetingError("Graph unavailable")
        self.updated.append(meeting_id)

    async def delete(self, meeting_id):
        if self.fail:
            raise MeetingError("Graph unavailable")
        self.deleted.append(meeting_id)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def store(store_dir):
    return FailingStore(store_dir)


@pytest.fixture
def meetings():
    return FakeMeetings()


@pytest.fixture
def template(make_event):
    """Weekly approved shift starting Monday 2025-01-06 09:00 with a Teams meeting."""
    return make_event(
        "tpl",
        title="Algebra",
        recurring="weekly",
        staff=[TUTOR.email],
        students=[STUDENT.email],
        approval_status="approved",
        meeting_id="m-1",
    )


@pytest.fixture
def single(make_event):
    return make_event(
        "single",
        title="Geometry",
        start=MONDAY_9AM + timedelta(days=1),
        staff=[TUTOR.email],
        students=[STUDENT.email],
        approval_status="approved",
        meeting_id="m-9",
        student_responses=[{"email": STUDENT.email, "accepted": True}],
    )


@pytest.fixture
def seed(store, settings):
    async def _seed(*events):
        for event in events:
            await store.set(settings.collection_for(event.entity_type), event.id, event.to_dict())

    return _seed


@pytest.fixture
def load(store, settings):
    async def _load():
        state, _ = await load_calendar_state(store, settings, now=NOW)
        return state

    return _load


@pytest.fixture
def coordinator_for(store, settings, meetings):
    def _make(actor, state):
        return MutationCoordinator(
            store,
            actor,
            state,
            collection_for=settings.collection_for,
            gate=NotificationQueueGate(store, settings.outbox_collection),
            meetings=meetings,
            window=WINDOW,
        )

    return _make


def _series_indices(state, template_id="tpl"):
    return [row.occurrence_index for row in state.shifts if row.recurring_event_id == template_id]


# =============================================================================
# Single events
# =============================================================================

class TestSingleEvents:
    """Move / resize / delete of non-recurring shifts."""

    async def test_move_keeps_duration_and_notifies(self, store, seed, load, coordinator_for, single, meetings):
        await seed(single)
        state = await load()
        new_start = single.start + timedelta(hours=2)

        result = await coordinator_for(TEACHER, state).move(state.find("single"), new_start)

        assert result.status == MutationStatus.APPLIED
        doc = await store.get("shifts", "single")
        assert parse_instant(doc["start"]) == new_start
        assert parse_instant(doc["end"]) == new_start + timedelta(hours=1)
        assert result.notification == NotificationOutcome.ENQUEUED
        assert (await store.get("notification_outbox", "single"))["action"] == "update"
        assert meetings.updated == ["m-9"]
        assert state.find("single").start == new_start

    async def test_resize_with_same_times_does_not_notify(self, store, seed, load, coordinator_for, single):
        await seed(single)
        state = await load()

        result = await coordinator_for(TEACHER, state).resize(state.find("single"), single.start, single.end)

        assert result.status == MutationStatus.APPLIED
        assert result.notification == NotificationOutcome.UNCHANGED
        assert await store.get("notification_outbox", "single") is None

    async def test_inverted_range_rejected_before_any_change(self, seed, load, coordinator_for, single):
        await seed(single)
        state = await load()
        before = state.snapshot()

        with pytest.raises(EventValidationError):
            await coordinator_for(TEACHER, state).resize(
                state.find("single"), single.start, single.start - timedelta(minutes=30)
            )

        assert state.snapshot() == before

    async def test_delete_dequeues_and_cancels_meeting(self, store, seed, load, coordinator_for, single, meetings):
        await seed(single)
        await NotificationQueueGate(store).enqueue_on_create(single)
        state = await load()

        result = await coordinator_for(TEACHER, state).delete(state.find("single"))

        assert result.status == MutationStatus.APPLIED
        assert await store.get("shifts", "single") is None
        assert await store.list("notification_outbox") == []
        assert meetings.deleted == ["m-9"]
        assert state.find("single") is None


class TestAuthorization:
    """The policy is re-checked on every call."""

    async def test_tutor_cannot_move_shift(self, store, seed, load, coordinator_for, single):
        await seed(single)
        state = await load()
        before = state.snapshot()

        result = await coordinator_for(TUTOR, state).move(state.find("single"), single.start + timedelta(hours=1))

        assert result.status == MutationStatus.UNAUTHORIZED
        assert state.snapshot() == before
        assert parse_instant((await store.get("shifts", "single"))["start"]) == single.start

    async def test_student_cannot_delete_approved_request(self, store, seed, load, coordinator_for, make_event):
        approved = make_event(
            "req",
            EntityType.STUDENT_REQUEST,
            students=[STUDENT.email],
            approval_status="approved",
        )
        await seed(approved)
        state = await load()

        result = await coordinator_for(STUDENT, state).delete(state.find("req"))

        assert result.status == MutationStatus.UNAUTHORIZED
        assert await store.get("student_requests", "req") is not None

    async def test_tutor_cannot_duplicate_shift(self, seed, load, coordinator_for, single):
        await seed(single)
        state = await load()

        result = await coordinator_for(TUTOR, state).duplicate(state.find("single"))

        assert result.status == MutationStatus.UNAUTHORIZED


# =============================================================================
# Recurring series
# =============================================================================

class TestUpdateThisOccurrence:
    """Editing one generated occurrence detaches it from the series."""

    async def test_move_detaches_occurrence(self, store, seed, load, coordinator_for, template, meetings):
        await seed(template)
        state = await load()
        occurrence = state.find("tpl_occurrence_2")
        new_start = occurrence.start + timedelta(hours=1)

        result = await coordinator_for(TEACHER, state).move(occurrence, new_start, update_option=UpdateOption.THIS)

        assert result.status == MutationStatus.APPLIED
        assert (await store.get("shifts", "tpl"))["exceptions"] == [2]

        detached = await store.get("shifts", result.event.id)
        assert detached["recurring"] is None
        assert detached["is_instance"] is False
        assert detached["recurring_event_id"] is None
        assert detached["meeting_id"] is None
        assert parse_instant(detached["start"]) == new_start

        assert state.find("tpl_occurrence_2") is None
        assert state.find(result.event.id) is not None
        # The series meeting is left alone.
        assert meetings.updated == []

    async def test_materialized_occurrence_updated_in_place(self, store, seed, load, coordinator_for, template):
        persisted = build_occurrence(template, 1)
        await seed(template, persisted)
        state = await load()
        occurrence = state.find("tpl_occurrence_1")
        assert occurrence.materialized

        result = await coordinator_for(TEACHER, state).move(occurrence, occurrence.start + timedelta(hours=3))

        assert result.status == MutationStatus.APPLIED
        assert result.event.id == "tpl_occurrence_1"
        assert (await store.get("shifts", "tpl"))["exceptions"] == []
        assert parse_instant((await store.get("shifts", "tpl_occurrence_1"))["start"]).hour == 12

    async def test_move_all_shifts_template(self, store, seed, load, coordinator_for, template, meetings):
        await seed(template)
        state = await load()
        occurrence = state.find("tpl_occurrence_2")

        result = await coordinator_for(TEACHER, state).move(
            occurrence, occurrence.start + timedelta(hours=1), update_option=UpdateOption.ALL
        )

        assert result.status == MutationStatus.APPLIED
        assert parse_instant((await store.get("shifts", "tpl"))["start"]) == MONDAY_9AM + timedelta(hours=1)
        assert state.find("tpl_occurrence_2").start.hour == 10
        assert meetings.updated == ["m-1"]

    async def test_moving_template_row_moves_series(self, store, seed, load, coordinator_for, template):
        await seed(template)
        state = await load()

        await coordinator_for(TEACHER, state).move(state.find("tpl"), MONDAY_9AM + timedelta(hours=2))

        assert state.find("tpl_occurrence_1").start == MONDAY_9AM + timedelta(weeks=1, hours=2)


class TestThisAndFuture:
    """Cutting a series at an occurrence."""

    async def test_delete_sets_until_one_day_before(self, store, seed, load, coordinator_for, template):
        await seed(template)
        state = await load()

        result = await coordinator_for(TEACHER, state).delete(
            state.find("tpl_occurrence_3"), UpdateOption.THIS_AND_FUTURE
        )

        assert result.status == MutationStatus.APPLIED
        until = parse_instant((await store.get("shifts", "tpl"))["until"])
        # Occurrence 3 starts 2025-01-27 09:00.
        assert until == datetime(2025, 1, 26, 9, 0, tzinfo=timezone.utc)
        assert _series_indices(state) == [1, 2]
        assert state.find("tpl").until == until

    async def test_move_starts_new_series(self, store, seed, load, coordinator_for, template):
        await seed(template)
        state = await load()
        occurrence = state.find("tpl_occurrence_3")
        new_start = occurrence.start + timedelta(hours=1)

        result = await coordinator_for(TEACHER, state).move(
            occurrence, new_start, update_option=UpdateOption.THIS_AND_FUTURE
        )

        assert result.status == MutationStatus.APPLIED
        new_id = result.event.id
        new_series = await store.get("shifts", new_id)
        assert new_series["recurring"] == "weekly"
        assert new_series["exceptions"] == []
        assert new_series["is_instance"] is False
        assert parse_instant(new_series["start"]) == datetime(2025, 1, 27, 10, 0, tzinfo=timezone.utc)

        assert _series_indices(state) == [1, 2]
        follow_up = state.find(f"{new_id}_occurrence_1")
        assert follow_up.start == datetime(2025, 2, 3, 10, 0, tzinfo=timezone.utc)

    async def test_removes_materialized_occurrences_from_cutoff(self, store, seed, load, coordinator_for, template):
        await seed(template, build_occurrence(template, 1), build_occurrence(template, 4))
        state = await load()

        await coordinator_for(TEACHER, state).delete(state.find("tpl_occurrence_3"), UpdateOption.THIS_AND_FUTURE)

        ids = {doc["id"] for doc in await store.list("shifts")}
        assert ids == {"tpl", "tpl_occurrence_1"}


class TestDeleteSeries:
    """Whole-series and single-occurrence deletes."""

    async def test_delete_all_cascades(self, store, seed, load, coordinator_for, template, meetings):
        await seed(template, build_occurrence(template, 1))
        await NotificationQueueGate(store).enqueue_on_create(template)
        state = await load()

        result = await coordinator_for(TEACHER, state).delete(state.find("tpl_occurrence_2"), UpdateOption.ALL)

        assert result.status == MutationStatus.APPLIED
        assert await store.list("shifts") == []
        assert await store.list("notification_outbox") == []
        assert meetings.deleted == ["m-1"]
        assert state.shifts == []

    async def test_deleting_template_row_deletes_series(self, store, seed, load, coordinator_for, template):
        await seed(template)
        state = await load()

        result = await coordinator_for(TEACHER, state).delete(state.find("tpl"), UpdateOption.THIS)

        assert result.status == MutationStatus.APPLIED
        assert await store.list("shifts") == []
        assert state.shifts == []

    async def test_delete_this_records_exception(self, store, seed, load, coordinator_for, template, meetings):
        await seed(template)
        state = await load()

        result = await coordinator_for(TEACHER, state).delete(state.find("tpl_occurrence_2"))

        assert result.status == MutationStatus.APPLIED
        assert result.notification == NotificationOutcome.REMOVED
        assert (await store.get("shifts", "tpl"))["exceptions"] == [2]
        assert state.find("tpl_occurrence_2") is None
        assert 3 in _series_indices(state)
        assert meetings.deleted == []

    async def test_delete_materialized_occurrence(self, store, seed, load, coordinator_for, template):
        await seed(template, build_occurrence(template, 1))
        state = await load()

        await coordinator_for(TEACHER, state).delete(state.find("tpl_occurrence_1"))

        assert await store.get("shifts", "tpl_occurrence_1") is None
        assert (await store.get("shifts", "tpl"))["exceptions"] == [1]

    async def test_failed_cascade_batch_is_reported(self, store, seed, load, coordinator_for, template):
        await seed(template, build_occurrence(template, 1))
        state = await load()
        store.fail_on = {"batch_write"}

        result = await coordinator_for(TEACHER, state).delete(state.find("tpl"))

        assert result.status == MutationStatus.APPLIED
        assert len(result.warnings) == 1
        assert await store.get("shifts", "tpl") is None
        assert await store.get("shifts", "tpl_occurrence_1") is not None


# =============================================================================
# Rollback and side effects
# =============================================================================

class TestRollback:
    """Store failures restore every slice."""

    async def test_failed_update_restores_state(self, store, seed, load, coordinator_for, single):
        await seed(single)
        state = await load()
        before = state.snapshot()
        store.fail_on = {"update"}

        result = await coordinator_for(TEACHER, state).move(state.find("single"), single.start + timedelta(hours=1))

        assert result.status == MutationStatus.FAILED
        assert "update rejected" in result.error
        assert state.snapshot() == before

    async def test_failed_detach_leaves_series_untouched(self, store, seed, load, coordinator_for, template, make_event):
        availability = make_event("avail", EntityType.AVAILABILITY, tutor=TUTOR.email, hours=8)
        request = make_event("req", EntityType.STUDENT_REQUEST, students=[STUDENT.email])
        await seed(template, availability, request)
        state = await load()
        before = state.snapshot()
        store.fail_on = {"batch_write"}

        result = await coordinator_for(TEACHER, state).move(
            state.find("tpl_occurrence_2"),
            MONDAY_9AM + timedelta(weeks=2, hours=1),
            update_option=UpdateOption.THIS,
        )

        assert result.status == MutationStatus.FAILED
        assert state.snapshot() == before
        assert state.find("tpl_occurrence_2") is not None
        assert (await store.get("shifts", "tpl"))["exceptions"] == []
        assert [doc["id"] for doc in await store.list("shifts")] == ["tpl"]

    async def test_failed_split_leaves_series_untouched(self, store, seed, load, coordinator_for, template):
        await seed(template)
        state = await load()
        before = state.snapshot()
        occurrence = state.find("tpl_occurrence_3")
        store.fail_on = {"batch_write"}

        result = await coordinator_for(TEACHER, state).move(
            occurrence, occurrence.start + timedelta(hours=1), update_option=UpdateOption.THIS_AND_FUTURE
        )

        assert result.status == MutationStatus.FAILED
        assert state.snapshot() == before
        assert (await store.get("shifts", "tpl"))["until"] is None
        assert [doc["id"] for doc in await store.list("shifts")] == ["tpl"]

    async def test_failed_cleanup_after_split_is_a_warning(self, store, seed, load, coordinator_for, template):
        await seed(template)
        state = await load()
        store.fail_on = {"query"}

        result = await coordinator_for(TEACHER, state).delete(
            state.find("tpl_occurrence_3"), UpdateOption.THIS_AND_FUTURE
        )

        assert result.status == MutationStatus.APPLIED
        assert len(result.warnings) == 1
        assert (await store.get("shifts", "tpl"))["until"] is not None
        assert _series_indices(state) == [1, 2]

    async def test_meeting_failure_does_not_roll_back(self, store, settings, seed, load, single):
        await seed(single)
        state = await load()
        coordinator = MutationCoordinator(
            store,
            TEACHER,
            state,
            collection_for=settings.collection_for,
            meetings=FakeMeetings(fail=True),
            window=WINDOW,
        )
        new_start = single.start + timedelta(hours=1)

        result = await coordinator.move(state.find("single"), new_start)

        assert result.status == MutationStatus.APPLIED
        assert result.warnings[0].startswith("Meeting not updated")
        assert parse_instant((await store.get("shifts", "single"))["start"]) == new_start


# =============================================================================
# Confirm / duplicate / create
# =============================================================================

class TestConfirmParticipation:
    """Accept or decline a shift."""

    async def test_tutor_response_replaces_previous(self, store, seed, load, coordinator_for, make_event):
        shift = make_event("s", staff=[TUTOR.email], confirmation_required=True)
        await seed(shift)
        state = await load()
        coordinator = coordinator_for(TUTOR, state)

        first = await coordinator.confirm_participation(state.find("s"), True)
        second = await coordinator.confirm_participation(first.event, False)

        assert second.status == MutationStatus.APPLIED
        responses = (await store.get("shifts", "s"))["tutor_responses"]
        assert len(responses) == 1
        assert responses[0]["email"] == TUTOR.email
        assert responses[0]["accepted"] is False

    async def test_student_needs_minimum(self, seed, load, coordinator_for, make_event):
        shift = make_event("s", students=[STUDENT.email], min_students=0)
        await seed(shift)
        state = await load()

        result = await coordinator_for(STUDENT, state).confirm_participation(state.find("s"), True)

        assert result.status == MutationStatus.UNAUTHORIZED

    async def test_cannot_answer_for_someone_else(self, seed, load, coordinator_for, make_event):
        shift = make_event("s", students=[STUDENT.email, "other@example.com"], min_students=1)
        await seed(shift)
        state = await load()

        result = await coordinator_for(STUDENT, state).confirm_participation(
            state.find("s"), True, actor_email="other@example.com"
        )

        assert result.status == MutationStatus.UNAUTHORIZED

    async def test_confirming_occurrence_freezes_it(self, store, seed, load, coordinator_for, template):
        template.confirmation_required = True
        await seed(template)
        state = await load()

        result = await coordinator_for(TUTOR, state).confirm_participation(state.find("tpl_occurrence_1"), True)

        assert result.status == MutationStatus.APPLIED
        doc = await store.get("shifts", "tpl_occurrence_1")
        assert doc["is_instance"] is True
        assert len(doc["tutor_responses"]) == 1
        assert state.find("tpl_occurrence_1").materialized


class TestDuplicate:

    async def test_duplicate_one_day_later(self, store, seed, load, coordinator_for, single, meetings):
        await seed(single)
        state = await load()

        result = await coordinator_for(TEACHER, state).duplicate(state.find("single"))

        assert result.status == MutationStatus.APPLIED
        doc = await store.get("shifts", result.event.id)
        assert parse_instant(doc["start"]) == single.start + timedelta(days=1)
        assert doc["student_responses"] == []
        assert doc["meeting_id"] == "m-new"
        assert result.event.meeting_join_url == "https://teams.example/join"
        assert len(meetings.created) == 1
        assert (await store.get("notification_outbox", result.event.id))["action"] == "create"

    async def test_duplicate_occurrence_is_standalone(self, store, seed, load, coordinator_for, template):
        await seed(template)
        state = await load()

        result = await coordinator_for(TEACHER, state).duplicate(state.find("tpl_occurrence_1"))

        doc = await store.get("shifts", result.event.id)
        assert doc["recurring"] is None
        assert doc["is_instance"] is False
        assert doc["occurrence_index"] is None


class TestCreate:

    async def test_tutor_availability_gets_owner(self, store, load, coordinator_for, make_event):
        state = await load()

        result = await coordinator_for(TUTOR, state).create(make_event("", EntityType.AVAILABILITY, hours=4))

        assert result.status == MutationStatus.APPLIED
        doc = await store.get("tutor_availabilities", result.event.id)
        assert doc["tutor"] == TUTOR.email
        assert state.find(result.event.id) is not None

    async def test_student_request_is_pending(self, store, load, coordinator_for, make_event):
        state = await load()

        result = await coordinator_for(STUDENT, state).create(make_event("", EntityType.STUDENT_REQUEST))

        doc = await store.get("student_requests", result.event.id)
        assert doc["students"] == [STUDENT.email]
        assert doc["approval_status"] == "pending"
        assert doc["created_by_student"] is True

    async def test_wrong_entity_type_or_owner(self, load, coordinator_for, make_event):
        state = await load()
        coordinator = coordinator_for(TUTOR, state)

        shift = await coordinator.create(make_event(""))
        foreign = await coordinator.create(make_event("", EntityType.AVAILABILITY, tutor="other@example.com"))

        assert shift.status == MutationStatus.UNAUTHORIZED
        assert foreign.status == MutationStatus.UNAUTHORIZED
        assert state.all_events() == []

    async def test_recurring_shift_expands_locally(self, load, coordinator_for, make_event, meetings):
        state = await load()

        result = await coordinator_for(TEACHER, state).create(
            make_event("", recurring="weekly", approval_status="pending")
        )

        assert state.find(f"{result.event.id}_occurrence_1") is not None
        assert meetings.created == []

    async def test_approved_shift_gets_meeting(self, store, load, coordinator_for, make_event, meetings):
        state = await load()

        result = await coordinator_for(TEACHER, state).create(
            make_event("", title="Chemistry", approval_status="approved", students=[STUDENT.email])
        )

        assert result.event.meeting_id == "m-new"
        assert (await store.get("shifts", result.event.id))["meeting_join_url"] == "https://teams.example/join"
        assert meetings.created[0][0] == "Chemistry"


class TestValidateEvent:

    def test_availability_needs_tutor(self, make_event):
        with pytest.raises(EventValidationError):
            validate_event(make_event("a", EntityType.AVAILABILITY))

    def test_unknown_recurrence(self, make_event):
        with pytest.raises(EventValidationError):
            validate_event(make_event("a", recurring="monthly"))

    def test_until_before_start(self, make_event):
        with pytest.raises(EventValidationError):
            validate_event(make_event("a", recurring="weekly", until=MONDAY_9AM - timedelta(days=1)))
