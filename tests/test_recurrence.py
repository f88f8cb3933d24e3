"""Tests for pattern evaluation and occurrence expansion."""

from __future__ import annotations

from datetime import datetime, time, timedelta

import pytest
from pydantic import ValidationError

from agenda.domain.exceptions import InvalidDateRange, UnboundedWindow
from agenda.domain.models import (
    EndDate,
    Event,
    MonthlyDatePattern,
    MonthlyOrdinalPattern,
    OccurrenceCount,
    OccurrenceKey,
    Ordinal,
    Recurrence,
    RecurringEvent,
    Weekday,
    WeeklyPattern,
)
from agenda.services.recurrence import occurrences_in_range, occurs_on

MONDAY = datetime(2026, 3, 2)


def _make_series(pattern, **overrides) -> RecurringEvent:
    defaults = dict(title="Series", pattern=pattern)
    defaults.update(overrides)
    return RecurringEvent(**defaults)


# ---------------------------------------------------------------------------
# occurs_on
# ---------------------------------------------------------------------------


def test_weekly_matches_its_weekday_only():
    pattern = WeeklyPattern(weekday=Weekday.MONDAY)
    assert occurs_on(pattern, datetime(2026, 3, 2, 14, 0))
    assert not occurs_on(pattern, datetime(2026, 3, 3))


def test_monthly_ordinal_first_saturday():
    pattern = MonthlyOrdinalPattern(ordinal=Ordinal.FIRST, weekday=Weekday.SATURDAY)
    assert occurs_on(pattern, datetime(2026, 3, 7))
    assert not occurs_on(pattern, datetime(2026, 3, 14))
    assert not occurs_on(pattern, datetime(2026, 3, 1))  # Sunday


def test_monthly_ordinal_last_vs_fourth_in_five_saturday_month():
    """May 2026 has Saturdays on the 2nd, 9th, 16th, 23rd and 30th."""
    last = MonthlyOrdinalPattern(ordinal=Ordinal.LAST, weekday=Weekday.SATURDAY)
    fourth = MonthlyOrdinalPattern(ordinal=Ordinal.FOURTH, weekday=Weekday.SATURDAY)

    assert occurs_on(last, datetime(2026, 5, 30))
    assert not occurs_on(last, datetime(2026, 5, 23))
    assert occurs_on(fourth, datetime(2026, 5, 23))
    assert not occurs_on(fourth, datetime(2026, 5, 30))


def test_monthly_ordinal_last_equals_fourth_in_four_saturday_month():
    last = MonthlyOrdinalPattern(ordinal=Ordinal.LAST, weekday=Weekday.SATURDAY)
    fourth = MonthlyOrdinalPattern(ordinal=Ordinal.FOURTH, weekday=Weekday.SATURDAY)
    assert occurs_on(last, datetime(2026, 3, 28))
    assert occurs_on(fourth, datetime(2026, 3, 28))


def test_monthly_date_matches_day_of_month():
    pattern = MonthlyDatePattern(day=15)
    assert occurs_on(pattern, datetime(2026, 2, 15))
    assert not occurs_on(pattern, datetime(2026, 2, 14))


@pytest.mark.parametrize("day", [0, 32, -1])
def test_monthly_date_rejects_out_of_range_day(day):
    with pytest.raises(ValidationError):
        MonthlyDatePattern(day=day)


# ---------------------------------------------------------------------------
# occurrences_in_range: one-off events
# ---------------------------------------------------------------------------


def test_one_off_inside_range_yields_single_occurrence():
    event = Event(title="Dentist", timestamp=datetime(2026, 3, 4, 9, 30))
    occurrences = occurrences_in_range(event, MONDAY, MONDAY + timedelta(days=6))

    assert len(occurrences) == 1
    assert occurrences[0].start_date == event.timestamp
    assert occurrences[0].source_event_id == event.id
    assert occurrences[0].is_recurring is False


@pytest.mark.parametrize(
    "timestamp",
    [datetime(2026, 3, 2), datetime(2026, 3, 8)],
    ids=["on-lower-bound", "on-upper-bound"],
)
def test_one_off_range_bounds_are_inclusive(timestamp):
    event = Event(title="Edge", timestamp=timestamp)
    occurrences = occurrences_in_range(event, MONDAY, datetime(2026, 3, 8))
    assert [o.start_date for o in occurrences] == [timestamp]


def test_one_off_outside_range_yields_nothing():
    event = Event(title="Later", timestamp=datetime(2026, 4, 1, 12, 0))
    assert occurrences_in_range(event, MONDAY, MONDAY + timedelta(days=6)) == []


# ---------------------------------------------------------------------------
# occurrences_in_range: single-anchor weekly / monthly events
# ---------------------------------------------------------------------------


def test_weekly_event_anchored_before_range():
    event = Event(
        title="Guitar lesson",
        timestamp=MONDAY - timedelta(days=7),
        recurrence=Recurrence.WEEKLY,
    )
    occurrences = occurrences_in_range(event, MONDAY, MONDAY + timedelta(days=7))

    assert len(occurrences) == 2
    assert occurrences[0].start_date == MONDAY
    assert all(o.is_recurring for o in occurrences)


def test_weekly_event_anchor_inside_range_is_first_occurrence():
    anchor = datetime(2026, 3, 4, 18, 0)
    event = Event(title="Run club", timestamp=anchor, recurrence=Recurrence.WEEKLY)
    occurrences = occurrences_in_range(event, MONDAY, datetime(2026, 3, 22))
    assert [o.start_date for o in occurrences] == [
        anchor,
        anchor + timedelta(weeks=1),
        anchor + timedelta(weeks=2),
    ]


def test_monthly_event_clamps_without_drifting():
    event = Event(
        title="Rent",
        timestamp=datetime(2026, 1, 31, 9, 0),
        recurrence=Recurrence.MONTHLY,
    )
    occurrences = occurrences_in_range(
        event, datetime(2026, 2, 1), datetime(2026, 5, 1)
    )
    assert [o.start_date for o in occurrences] == [
        datetime(2026, 2, 28, 9, 0),
        datetime(2026, 3, 31, 9, 0),
        datetime(2026, 4, 30, 9, 0),
    ]


def test_recurring_event_anchored_after_range_yields_nothing():
    event = Event(
        title="Future",
        timestamp=datetime(2026, 6, 1),
        recurrence=Recurrence.WEEKLY,
    )
    assert occurrences_in_range(event, MONDAY, datetime(2026, 3, 31)) == []


def test_all_day_event_occurrences_have_no_explicit_time():
    event = Event(
        title="Groceries",
        timestamp=datetime(2026, 3, 3, 15, 30),
        includes_time=False,
    )
    assert event.timestamp == datetime(2026, 3, 3)

    occurrences = occurrences_in_range(event, MONDAY, MONDAY + timedelta(days=6))
    assert occurrences[0].start_date == datetime(2026, 3, 3)
    assert occurrences[0].has_explicit_time is False


# ---------------------------------------------------------------------------
# occurrences_in_range: pattern-based series
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("weeks", [1, 2, 3, 8])
@pytest.mark.parametrize(
    "start", [MONDAY, datetime(2026, 3, 4)], ids=["from-monday", "from-wednesday"]
)
def test_weekly_density(weeks, start):
    series = _make_series(WeeklyPattern(weekday=Weekday.MONDAY))
    upper = start + timedelta(days=7 * weeks - 1)

    occurrences = occurrences_in_range(series, start, upper)

    assert len(occurrences) == weeks
    assert all(o.start_date.weekday() == Weekday.MONDAY for o in occurrences)


def test_monthly_date_31_skips_april():
    series = _make_series(MonthlyDatePattern(day=31))

    april = occurrences_in_range(series, datetime(2026, 4, 1), datetime(2026, 4, 30))
    march = occurrences_in_range(series, datetime(2026, 3, 1), datetime(2026, 3, 31))
    may = occurrences_in_range(series, datetime(2026, 5, 1), datetime(2026, 5, 31))

    assert april == []
    assert [o.start_date for o in march] == [datetime(2026, 3, 31)]
    assert [o.start_date for o in may] == [datetime(2026, 5, 31)]


def test_series_time_of_day_is_carried():
    series = _make_series(
        WeeklyPattern(weekday=Weekday.MONDAY), time_of_day=time(18, 30)
    )
    occurrences = occurrences_in_range(series, MONDAY, MONDAY + timedelta(days=6))

    assert [o.start_date for o in occurrences] == [datetime(2026, 3, 2, 18, 30)]
    assert occurrences[0].has_explicit_time is True
    assert occurrences[0].is_recurring is True


def test_series_without_time_is_all_day():
    series = _make_series(WeeklyPattern(weekday=Weekday.MONDAY))
    occurrences = occurrences_in_range(series, MONDAY, MONDAY + timedelta(days=6))
    assert occurrences[0].has_explicit_time is False


def test_series_stops_after_end_date():
    series = _make_series(
        WeeklyPattern(weekday=Weekday.MONDAY),
        stop_condition=EndDate(end_date=datetime(2026, 3, 9, 0, 0)),
    )
    occurrences = occurrences_in_range(series, MONDAY, datetime(2026, 3, 31))
    assert [o.start_date for o in occurrences] == [
        datetime(2026, 3, 2),
        datetime(2026, 3, 9),
    ]


def test_series_emits_at_most_remaining_occurrences():
    series = _make_series(
        WeeklyPattern(weekday=Weekday.MONDAY),
        stop_condition=OccurrenceCount(remaining=2),
    )
    occurrences = occurrences_in_range(series, MONDAY, datetime(2026, 3, 31))
    assert len(occurrences) == 2


def test_exhausted_series_emits_nothing():
    series = _make_series(
        WeeklyPattern(weekday=Weekday.MONDAY),
        stop_condition=OccurrenceCount(remaining=0),
    )
    assert occurrences_in_range(series, MONDAY, datetime(2026, 3, 31)) == []


def test_occurrence_ids_are_stable_across_recomputation():
    series = _make_series(WeeklyPattern(weekday=Weekday.MONDAY))
    first = occurrences_in_range(series, MONDAY, datetime(2026, 3, 31))
    second = occurrences_in_range(series, MONDAY, datetime(2026, 3, 31))

    assert [o.occurrence_id for o in first] == [o.occurrence_id for o in second]
    assert first[0].occurrence_id == OccurrenceKey(series.id, datetime(2026, 3, 2))
    assert len({o.occurrence_id for o in first}) == len(first)


# ---------------------------------------------------------------------------
# Window validation
# ---------------------------------------------------------------------------


def test_inverted_range_is_rejected():
    event = Event(title="x", timestamp=MONDAY)
    with pytest.raises(InvalidDateRange):
        occurrences_in_range(event, datetime(2026, 3, 9), MONDAY)


def test_missing_upper_bound_is_rejected():
    event = Event(title="x", timestamp=MONDAY)
    with pytest.raises(UnboundedWindow):
        occurrences_in_range(event, MONDAY, None)


def test_range_longer_than_horizon_is_rejected():
    series = _make_series(WeeklyPattern(weekday=Weekday.MONDAY))
    with pytest.raises(UnboundedWindow):
        occurrences_in_range(series, MONDAY, MONDAY + timedelta(days=365 * 3))


def test_custom_horizon_is_honoured():
    series = _make_series(WeeklyPattern(weekday=Weekday.MONDAY))
    with pytest.raises(UnboundedWindow):
        occurrences_in_range(
            series, MONDAY, MONDAY + timedelta(days=30), max_horizon=timedelta(days=14)
        )
