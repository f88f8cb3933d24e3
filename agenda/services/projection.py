"""Flatten events and recurring series into a time-ordered agenda window."""

from __future__ import annotations

from datetime import datetime, timedelta

from agenda.domain.models import Event, EventOccurrence, RecurringEvent
from agenda.services.calendar_math import AgendaCalendar
from agenda.services.recurrence import (
    DEFAULT_MAX_HORIZON,
    occurrences_in_range,
    validate_range,
)
from agenda.services.stop_conditions import is_active

DEFAULT_WINDOW_DAYS = 21


def agenda_window(
    today: datetime,
    days: int = DEFAULT_WINDOW_DAYS,
    calendar: AgendaCalendar | None = None,
) -> tuple[datetime, datetime]:
    """Return the closed window ``[start of today, start of today + days]``."""
    calendar = calendar or AgendaCalendar()
    start = calendar.start_of_day(today)
    return start, start + timedelta(days=days)


def project(
    events: list[Event],
    recurring_events: list[RecurringEvent],
    today: datetime,
    days: int = DEFAULT_WINDOW_DAYS,
    calendar: AgendaCalendar | None = None,
    max_horizon: timedelta = DEFAULT_MAX_HORIZON,
) -> list[EventOccurrence]:
    """Return every occurrence in the agenda window, earliest first.

    Series that are inactive as of *today* are left out even if the daily
    refresh has not removed them yet. Ties keep source order, events first.
    """
    calendar = calendar or AgendaCalendar()
    lower, upper = agenda_window(today, days, calendar)
    validate_range(lower, upper, max_horizon)

    occurrences: list[EventOccurrence] = []
    for event in events:
        occurrences.extend(
            occurrences_in_range(event, lower, upper, calendar, max_horizon)
        )
    for series in recurring_events:
        if not is_active(series.stop_condition, lower, calendar):
            continue
        occurrences.extend(
            occurrences_in_range(series, lower, upper, calendar, max_horizon)
        )

    occurrences.sort(key=lambda occurrence: occurrence.start_date)
    return occurrences
