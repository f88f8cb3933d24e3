"""Tests for stop-condition liveness and countdowns."""

from __future__ import annotations

from datetime import datetime

from agenda.domain.models import (
    EndDate,
    MonthlyOrdinalPattern,
    OccurrenceCount,
    Ordinal,
    Weekday,
    WeeklyPattern,
)
from agenda.services.stop_conditions import (
    apply_daily_decrement,
    catch_up_decrements,
    is_active,
)

FRIDAYS = WeeklyPattern(weekday=Weekday.FRIDAY)


def test_no_stop_condition_is_always_active():
    assert is_active(None, datetime(2099, 1, 1))


def test_end_date_is_active_through_its_own_day():
    stop = EndDate(end_date=datetime(2026, 3, 9, 8, 0))
    assert is_active(stop, datetime(2026, 3, 9, 23, 30))
    assert not is_active(stop, datetime(2026, 3, 10))


def test_zero_count_is_inactive():
    assert not is_active(OccurrenceCount(remaining=0), datetime(2026, 3, 2))
    assert is_active(OccurrenceCount(remaining=1), datetime(2026, 3, 2))


def test_decrement_only_on_matching_day():
    stop = OccurrenceCount(remaining=3)

    unchanged, active = apply_daily_decrement(FRIDAYS, stop, datetime(2026, 3, 5))
    assert unchanged == stop
    assert active

    counted, active = apply_daily_decrement(FRIDAYS, stop, datetime(2026, 3, 6))
    assert counted == OccurrenceCount(remaining=2)
    assert active


def test_decrement_to_zero_deactivates():
    new_stop, active = apply_daily_decrement(
        FRIDAYS, OccurrenceCount(remaining=1), datetime(2026, 3, 6)
    )
    assert new_stop == OccurrenceCount(remaining=0)
    assert not active


def test_end_date_passes_through_decrement():
    stop = EndDate(end_date=datetime(2026, 1, 1))
    assert apply_daily_decrement(FRIDAYS, stop, datetime(2026, 3, 6)) == (stop, True)


def test_catch_up_counts_each_skipped_occurrence_once():
    """Refreshed Thursday, next refresh Sunday: only Friday the 6th elapsed."""
    new_stop, active = catch_up_decrements(
        FRIDAYS,
        OccurrenceCount(remaining=5),
        last_refresh_date=datetime(2026, 3, 5, 7, 0),
        reference_date=datetime(2026, 3, 8, 9, 0),
    )
    assert new_stop == OccurrenceCount(remaining=4)
    assert active


def test_catch_up_over_several_weeks():
    new_stop, _ = catch_up_decrements(
        FRIDAYS,
        OccurrenceCount(remaining=5),
        last_refresh_date=datetime(2026, 3, 2),
        reference_date=datetime(2026, 3, 23),
    )
    # Fridays 6, 13 and 20
    assert new_stop == OccurrenceCount(remaining=2)


def test_catch_up_same_day_is_a_no_op():
    stop = OccurrenceCount(remaining=5)
    assert catch_up_decrements(
        FRIDAYS, stop, datetime(2026, 3, 7, 6, 0), datetime(2026, 3, 7, 22, 0)
    ) == (stop, True)


def test_catch_up_without_history_counts_previous_day_only():
    first_saturday = MonthlyOrdinalPattern(
        ordinal=Ordinal.FIRST, weekday=Weekday.SATURDAY
    )
    new_stop, active = catch_up_decrements(
        first_saturday, OccurrenceCount(remaining=1), None, datetime(2026, 3, 8)
    )
    assert new_stop == OccurrenceCount(remaining=0)
    assert not active


def test_catch_up_stops_at_zero():
    new_stop, active = catch_up_decrements(
        FRIDAYS,
        OccurrenceCount(remaining=1),
        last_refresh_date=datetime(2026, 3, 1),
        reference_date=datetime(2026, 3, 31),
    )
    assert new_stop == OccurrenceCount(remaining=0)
    assert not active
