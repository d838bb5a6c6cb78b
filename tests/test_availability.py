"""Tests for availability splitting and calendar view filters."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tutoring_calendar.calendar.availability import split_availabilities, subtract_intervals
from tutoring_calendar.calendar.filters import CalendarFilters, filter_availabilities, filter_shifts
from tutoring_calendar.calendar.types import EntityType, Role


TUTOR = "tutor@example.com"
OTHER_TUTOR = "other@example.com"


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, 6, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def block(make_event):
    """Availability 09:00-17:00."""
    return make_event(
        "avail-1",
        entity_type=EntityType.AVAILABILITY,
        start=at(9),
        hours=8,
        tutor=TUTOR,
        work_type="tutoring",
    )


@pytest.fixture
def shift(make_event):
    def _shift(start: datetime, end: datetime, staff=(TUTOR,), **fields):
        event = make_event(f"shift-{start.hour}-{end.hour}", start=start, staff=list(staff), **fields)
        event.end = end
        return event

    return _shift


# =============================================================================
# Interval subtraction
# =============================================================================

class TestSubtractIntervals:
    """Cursor walk over the busy intervals."""

    def test_shift_in_the_middle(self):
        assert subtract_intervals(at(9), at(17), [(at(11), at(13))]) == [
            (at(9), at(11)),
            (at(13), at(17)),
        ]

    def test_shift_covering_everything(self):
        assert subtract_intervals(at(9), at(17), [(at(8), at(18))]) == []

    def test_no_shifts_is_identity(self):
        assert subtract_intervals(at(9), at(17), []) == [(at(9), at(17))]

    def test_touching_shifts_merge(self):
        busy = [(at(11), at(12)), (at(10), at(11))]

        assert subtract_intervals(at(9), at(17), busy) == [(at(9), at(10)), (at(12), at(17))]

    def test_overlapping_shifts_merge(self):
        busy = [(at(10), at(12)), (at(11), at(13)), (at(15), at(16))]

        assert subtract_intervals(at(9), at(17), busy) == [
            (at(9), at(10)),
            (at(13), at(15)),
            (at(16), at(17)),
        ]

    def test_non_overlapping_shift_ignored(self):
        assert subtract_intervals(at(9), at(12), [(at(12), at(13))]) == [(at(9), at(12))]


class TestSplitAvailabilities:
    """Splitting blocks around the tutor's own shifts."""

    def test_split_pieces_keep_parent_fields(self, block, shift):
        pieces = split_availabilities([block], [shift(at(11), at(13))])

        assert [(p.start, p.end) for p in pieces] == [(at(9), at(11)), (at(13), at(17))]
        assert [p.id for p in pieces] == ["avail-1_split_0", "avail-1_split_1"]
        assert all(p.parent_id == "avail-1" for p in pieces)
        assert all(p.tutor == TUTOR and p.work_type == "tutoring" for p in pieces)

    def test_fully_covered_block_disappears(self, block, shift):
        assert split_availabilities([block], [shift(at(8), at(18))]) == []

    def test_untouched_block_returned_unchanged(self, block):
        assert split_availabilities([block], []) == [block]
        assert split_availabilities([block], [])[0] is block

    def test_other_tutors_shifts_do_not_split(self, block, shift):
        pieces = split_availabilities([block], [shift(at(11), at(13), staff=[OTHER_TUTOR])])

        assert pieces == [block]

    def test_denied_student_request_does_not_block(self, block, shift):
        denied = shift(at(11), at(13), created_by_student=True, approval_status="denied")

        assert split_availabilities([block], [denied]) == [block]

    def test_pending_student_request_blocks(self, block, shift):
        pending = shift(at(11), at(13), created_by_student=True, approval_status="pending")

        assert len(split_availabilities([block], [pending])) == 2


# =============================================================================
# Filters
# =============================================================================

class TestFilterShifts:
    """Role scoping and filter panel selections for shifts."""

    def test_tutor_only_sees_own_shifts(self, shift):
        mine = shift(at(9), at(10))
        theirs = shift(at(11), at(12), staff=[OTHER_TUTOR])

        assert filter_shifts([mine, theirs], Role.TUTOR, TUTOR, CalendarFilters()) == [mine]

    def test_teacher_hides_denied_requests_on_request(self, shift):
        denied = shift(at(9), at(10), created_by_student=True, approval_status="denied")
        normal = shift(at(11), at(12))

        filters = CalendarFilters(hide_denied_student_requests=True)

        assert filter_shifts([denied, normal], Role.TEACHER, "teacher@example.com", filters) == [normal]

    def test_teacher_work_type_toggles(self, shift):
        tutoring = shift(at(9), at(10), work_type="tutoring")
        coaching = shift(at(11), at(12), work_type="coaching")
        everyone = [tutoring, coaching]

        only_coaching = CalendarFilters(show_tutoring_shifts=False)
        neither = CalendarFilters(show_tutoring_shifts=False, show_coaching_shifts=False)

        assert filter_shifts(everyone, Role.TEACHER, "t@example.com", only_coaching) == [coaching]
        assert filter_shifts(everyone, Role.TEACHER, "t@example.com", neither) == []

    def test_tutor_selection(self, shift):
        mine = shift(at(9), at(10))
        theirs = shift(at(11), at(12), staff=[OTHER_TUTOR])

        filters = CalendarFilters(tutors=[OTHER_TUTOR])

        assert filter_shifts([mine, theirs], Role.TEACHER, "t@example.com", filters) == [theirs]


class TestFilterAvailabilities:
    """Role scoping and filter panel selections for availability slots."""

    def test_students_only_see_tutoring_availability(self, make_event):
        tutoring = make_event("a", EntityType.AVAILABILITY, tutor=TUTOR, work_type="tutoring")
        work = make_event("b", EntityType.AVAILABILITY, tutor=TUTOR, work_type="work")
        either = make_event("c", EntityType.AVAILABILITY, tutor=TUTOR, work_type="tutoringOrWork")

        visible = filter_availabilities([tutoring, work, either], Role.STUDENT, "s@example.com", CalendarFilters())

        assert visible == [tutoring, either]

    def test_tutor_can_hide_own(self, make_event):
        mine = make_event("a", EntityType.AVAILABILITY, tutor=TUTOR)
        theirs = make_event("b", EntityType.AVAILABILITY, tutor=OTHER_TUTOR)

        filters = CalendarFilters(hide_own_availabilities=True)

        assert filter_availabilities([mine, theirs], Role.TUTOR, TUTOR, filters) == [theirs]

    def test_subject_tutors_used_when_no_tutor_selected(self, make_event):
        mine = make_event("a", EntityType.AVAILABILITY, tutor=TUTOR)
        theirs = make_event("b", EntityType.AVAILABILITY, tutor=OTHER_TUTOR)

        filters = CalendarFilters(subject_tutors=[TUTOR])

        assert filter_availabilities([mine, theirs], Role.TEACHER, "t@example.com", filters) == [mine]
