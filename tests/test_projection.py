"""Tests for agenda projection over a day window."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

import pytest
from dateutil import tz

from agenda.domain.exceptions import UnboundedWindow
from agenda.domain.models import (
    EndDate,
    Event,
    MonthlyDatePattern,
    OccurrenceCount,
    Recurrence,
    RecurringEvent,
    Weekday,
    WeeklyPattern,
)
from agenda.services.calendar_math import AgendaCalendar
from agenda.services.presentation import ALL_DAY_LABEL, time_label
from agenda.services.projection import agenda_window, project

TODAY = datetime(2026, 3, 2, 13, 45)  # Monday afternoon


def test_window_starts_at_midnight_and_spans_days():
    lower, upper = agenda_window(TODAY, 21)
    assert lower == datetime(2026, 3, 2)
    assert upper == datetime(2026, 3, 23)


def test_occurrences_are_merged_in_time_order():
    lunch = Event(title="Lunch", timestamp=datetime(2026, 3, 3, 12, 0))
    gym = RecurringEvent(
        title="Gym",
        pattern=WeeklyPattern(weekday=Weekday.MONDAY),
        time_of_day=time(7, 0),
    )

    occurrences = project([lunch], [gym], TODAY, days=7)

    assert [(o.title, o.start_date) for o in occurrences] == [
        ("Gym", datetime(2026, 3, 2, 7, 0)),
        ("Lunch", datetime(2026, 3, 3, 12, 0)),
        ("Gym", datetime(2026, 3, 9, 7, 0)),
    ]


def test_earlier_today_is_included():
    breakfast = Event(title="Breakfast", timestamp=datetime(2026, 3, 2, 8, 0))
    assert len(project([breakfast], [], TODAY)) == 1


def test_exhausted_counter_is_excluded():
    series = RecurringEvent(
        title="Done",
        pattern=WeeklyPattern(weekday=Weekday.MONDAY),
        stop_condition=OccurrenceCount(remaining=0),
    )
    assert project([], [series], TODAY) == []


def test_ended_series_is_excluded_before_refresh_removes_it():
    series = RecurringEvent(
        title="Finished",
        pattern=WeeklyPattern(weekday=Weekday.MONDAY),
        stop_condition=EndDate(end_date=datetime(2026, 2, 23)),
    )
    assert project([], [series], TODAY) == []


def test_all_day_event_renders_as_all_day():
    event = Event(
        title="Holiday",
        timestamp=datetime(2026, 3, 5),
        includes_time=False,
        recurrence=Recurrence.WEEKLY,
    )

    occurrences = project([event], [], TODAY, days=21)

    assert len(occurrences) == 3
    assert all(not o.has_explicit_time for o in occurrences)
    assert time_label(occurrences[0]) == ALL_DAY_LABEL


def test_ties_keep_events_before_series():
    nine = datetime(2026, 3, 4, 9, 0)
    event = Event(title="One-off", timestamp=nine)
    series = RecurringEvent(
        title="Series",
        pattern=WeeklyPattern(weekday=Weekday.WEDNESDAY),
        time_of_day=time(9, 0),
    )

    occurrences = project([event], [series], TODAY, days=6)

    assert [o.title for o in occurrences] == ["One-off", "Series"]


def test_monthly_date_series_in_window():
    series = RecurringEvent(title="Pay day", pattern=MonthlyDatePattern(day=15))
    occurrences = project([], [series], TODAY, days=21)
    assert [o.start_date for o in occurrences] == [datetime(2026, 3, 15)]


def test_window_past_horizon_is_rejected():
    with pytest.raises(UnboundedWindow):
        project([], [], TODAY, days=30, max_horizon=timedelta(days=7))


def test_all_day_event_lands_on_its_date_in_the_configured_zone():
    new_york = AgendaCalendar.named("America/New_York")
    event = Event(
        title="Holiday",
        timestamp=datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc),
        includes_time=False,
    )
    assert event.timestamp == datetime(2026, 3, 10)

    (occurrence,) = project([event], [], datetime(2026, 3, 9), 5, new_york)

    assert occurrence.start_date == datetime(
        2026, 3, 10, tzinfo=tz.gettz("America/New_York")
    )
    assert (occurrence.start_date.hour, occurrence.start_date.minute) == (0, 0)
    assert time_label(occurrence) == ALL_DAY_LABEL
