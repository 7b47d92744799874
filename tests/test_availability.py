"""Tests for recurrence expansion into candidate slots."""

import inspect
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from marketplace.domain.scheduling.availability import (
    CandidateSlot,
    list_candidate_slots,
    slot_is_offered,
    validate_slot_start,
)
from marketplace.domain.scheduling.exceptions import InvalidSlotError
from marketplace.domain.scheduling.schemas import (
    WEEKDAYS,
    DailyWindow,
    ServiceAvailability,
    parse_weekday,
)
from tests.conftest import NEXT_MONDAY, NOW, PROVIDER_ID, at, make_availability

WEEK_START = datetime(2026, 3, 6, tzinfo=timezone.utc)  # Friday
WEEK_END = datetime(2026, 3, 13, tzinfo=timezone.utc)


class TestCandidateSlots:
    def test_single_monday_in_week_gives_two_slots(self):
        slots = list(list_candidate_slots(make_availability(), WEEK_START, WEEK_END, now=NOW))

        assert [(s.start_at, s.end_at) for s in slots] == [
            (at(NEXT_MONDAY, 9), at(NEXT_MONDAY, 10)),
            (at(NEXT_MONDAY, 10), at(NEXT_MONDAY, 11)),
        ]
        assert all(s.provider_id == PROVIDER_ID and s.service_id == "svc-1" for s in slots)

    def test_every_slot_respects_days_window_and_clock(self):
        availability = make_availability(
            days=("Monday", "Wednesday", "Friday"), start="08:00", end="17:30", duration_hours=1.5
        )
        slots = list(
            list_candidate_slots(availability, NOW - timedelta(days=3), NOW + timedelta(days=14), now=NOW)
        )

        assert slots
        for slot in slots:
            assert WEEKDAYS[slot.start_at.weekday()] in availability.recurring_days
            assert slot.start_at.time() >= availability.window.start
            assert slot.end_at.time() <= availability.window.end
            assert slot.start_at.date() == slot.end_at.date()
            assert slot.start_at > NOW
            assert slot.end_at - slot.start_at == timedelta(hours=1.5)

    def test_slots_are_ascending_and_deterministic(self):
        availability = make_availability(days=WEEKDAYS, start="09:00", end="12:00")
        first = list(list_candidate_slots(availability, NOW, NOW + timedelta(days=10), now=NOW))
        second = list(list_candidate_slots(availability, NOW, NOW + timedelta(days=10), now=NOW))

        assert first == second
        starts = [s.start_at for s in first]
        assert starts == sorted(starts)

    def test_sequence_is_lazy(self):
        slots = list_candidate_slots(make_availability(), WEEK_START, WEEK_END, now=NOW)
        assert inspect.isgenerator(slots)

    def test_slot_at_or_before_now_is_skipped(self):
        availability = make_availability(days=("Wednesday",), start="09:00", end="17:00")
        today = NOW.replace(hour=0)
        slots = list(list_candidate_slots(availability, today, today + timedelta(days=1), now=NOW))

        # 12:00 itself is not strictly after now
        assert [s.start_at.hour for s in slots] == [13, 14, 15, 16]

    def test_past_days_in_range_are_skipped(self):
        last_monday = datetime(2026, 3, 2, tzinfo=timezone.utc)
        slots = list(
            list_candidate_slots(make_availability(), last_monday, WEEK_END, now=NOW)
        )
        assert {s.start_at.date() for s in slots} == {NEXT_MONDAY.date()}

    def test_range_clips_partial_day(self):
        slots = list(
            list_candidate_slots(
                make_availability(), at(NEXT_MONDAY, 9, 30), at(NEXT_MONDAY, 11), now=NOW
            )
        )
        assert [s.start_at for s in slots] == [at(NEXT_MONDAY, 10)]

    def test_zero_length_range_is_empty(self):
        assert list(list_candidate_slots(make_availability(), WEEK_START, WEEK_START, now=NOW)) == []

    def test_inverted_range_is_empty(self):
        assert list(list_candidate_slots(make_availability(), WEEK_END, WEEK_START, now=NOW)) == []

    def test_no_recurring_days_is_empty(self):
        availability = make_availability(days=())
        assert not availability.is_bookable
        assert list(list_candidate_slots(availability, WEEK_START, WEEK_END, now=NOW)) == []

    def test_duration_longer_than_window_is_empty(self):
        availability = make_availability(duration_hours=3)
        assert list(list_candidate_slots(availability, WEEK_START, WEEK_END, now=NOW)) == []

    def test_non_positive_duration_is_empty(self):
        availability = make_availability(duration_hours=0)
        assert list(list_candidate_slots(availability, WEEK_START, WEEK_END, now=NOW)) == []

    def test_window_is_local_to_service_timezone(self):
        availability = make_availability(tz="Asia/Kolkata")
        slots = list(list_candidate_slots(availability, WEEK_START, WEEK_END, now=NOW))

        # 09:00 and 10:00 IST are 03:30 and 04:30 UTC
        assert [s.start_at for s in slots] == [
            at(NEXT_MONDAY, 3, 30),
            at(NEXT_MONDAY, 4, 30),
        ]
        assert all(s.start_at.tzinfo is timezone.utc for s in slots)

    def test_spring_forward_day_has_no_duplicate_starts(self):
        availability = make_availability(days=("Sunday",), start="00:00", end="05:00", tz="America/New_York")
        day = datetime(2026, 3, 8, tzinfo=timezone.utc)
        slots = list(list_candidate_slots(availability, day, day + timedelta(days=1), now=NOW))

        starts = [s.start_at for s in slots]
        assert starts == sorted(set(starts))
        # 02:00 local does not exist; 05:00 EDT is 09:00 UTC
        assert [s.start_at.hour for s in slots] == [5, 6, 7, 8]
        assert [s.start_at.astimezone(availability.tz).hour for s in slots] == [0, 1, 3, 4]

    def test_fall_back_day_offers_repeated_hour(self):
        availability = make_availability(days=("Sunday",), start="00:00", end="05:00", tz="America/New_York")
        day = datetime(2026, 11, 1, tzinfo=timezone.utc)
        slots = list(list_candidate_slots(availability, day, day + timedelta(days=1), now=NOW))

        assert [s.start_at.hour for s in slots] == [4, 5, 6, 7, 8, 9]
        assert [s.start_at.astimezone(availability.tz).hour for s in slots] == [0, 1, 1, 2, 3, 4]

    def test_default_window_matches_legacy_hourly_list(self):
        availability = ServiceAvailability(
            service_id="svc-1", provider_id=PROVIDER_ID, duration_hours=1, recurring_days=["Monday"]
        )
        slots = list(list_candidate_slots(availability, WEEK_START, WEEK_END, now=NOW))

        assert [f"{s.start_at:%H:%M}" for s in slots] == [
            "09:00", "10:00", "11:00", "12:00", "13:00",
            "14:00", "15:00", "16:00", "17:00", "18:00",
        ]

    def test_naive_bounds_are_rejected(self):
        with pytest.raises(ValueError):
            list(list_candidate_slots(make_availability(), datetime(2026, 3, 6), WEEK_END, now=NOW))


class TestValidateSlotStart:
    def test_returns_generated_slot(self):
        slot = validate_slot_start(make_availability(), at(NEXT_MONDAY, 10), now=NOW)
        assert slot == CandidateSlot(
            start_at=at(NEXT_MONDAY, 10),
            end_at=at(NEXT_MONDAY, 11),
            provider_id=PROVIDER_ID,
            service_id="svc-1",
        )

    def test_past_start(self):
        yesterday = at(NOW - timedelta(days=1), 9)
        with pytest.raises(InvalidSlotError, match="past"):
            validate_slot_start(make_availability(days=WEEKDAYS), yesterday, now=NOW)

    def test_wrong_weekday(self):
        tuesday = at(NEXT_MONDAY + timedelta(days=1), 9)
        with pytest.raises(InvalidSlotError, match="Tuesday"):
            validate_slot_start(make_availability(), tuesday, now=NOW)

    def test_misaligned_start(self):
        with pytest.raises(InvalidSlotError, match="boundary"):
            validate_slot_start(make_availability(), at(NEXT_MONDAY, 9, 30), now=NOW)

    def test_start_outside_window(self):
        assert not slot_is_offered(make_availability(), at(NEXT_MONDAY, 11), now=NOW)
        assert not slot_is_offered(make_availability(), at(NEXT_MONDAY, 8), now=NOW)

    def test_no_days(self):
        with pytest.raises(InvalidSlotError, match="no bookable days"):
            validate_slot_start(make_availability(days=()), at(NEXT_MONDAY, 9), now=NOW)

    def test_non_positive_duration(self):
        with pytest.raises(InvalidSlotError, match="duration"):
            validate_slot_start(make_availability(duration_hours=0), at(NEXT_MONDAY, 9), now=NOW)


class TestAvailabilitySchema:
    @pytest.mark.parametrize("label", ["Monday", "monday", "MON", " mon "])
    def test_weekday_labels_normalize(self, label):
        assert parse_weekday(label) == "Monday"

    def test_unknown_weekday(self):
        with pytest.raises(ValueError):
            parse_weekday("Funday")

    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            DailyWindow(start="11:00", end="09:00")

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            make_availability(tz="Mars/Olympus_Mons")

    def test_candidate_must_end_after_start(self):
        with pytest.raises(ValueError):
            CandidateSlot(
                start_at=at(NEXT_MONDAY, 10),
                end_at=at(NEXT_MONDAY, 10),
                provider_id=PROVIDER_ID,
                service_id="svc-1",
            )
