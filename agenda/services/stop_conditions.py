"""Liveness and countdown rules for recurring-series stop conditions."""

from __future__ import annotations

from datetime import datetime

from agenda.domain.models import (
    EndDate,
    OccurrenceCount,
    RecurrencePattern,
    StopCondition,
)
from agenda.services.calendar_math import ONE_DAY, AgendaCalendar
from agenda.services.recurrence import occurs_on


def is_active(
    stop_condition: StopCondition | None,
    reference_date: datetime,
    calendar: AgendaCalendar | None = None,
) -> bool:
    """Return True if a series with *stop_condition* is live on *reference_date*.

    End dates compare at day granularity: a series ending today is still active.
    """
    if stop_condition is None:
        return True
    if isinstance(stop_condition, EndDate):
        calendar = calendar or AgendaCalendar()
        return calendar.start_of_day(reference_date) <= calendar.start_of_day(
            stop_condition.end_date
        )
    if isinstance(stop_condition, OccurrenceCount):
        return stop_condition.remaining > 0
    raise TypeError(f"Unknown stop condition: {stop_condition!r}")


def apply_daily_decrement(
    pattern: RecurrencePattern,
    stop_condition: StopCondition | None,
    previous_day: datetime,
    calendar: AgendaCalendar | None = None,
) -> tuple[StopCondition | None, bool]:
    """Count down an occurrence counter for one elapsed day.

    Returns the new stop condition and whether the series is still active.
    Only :class:`OccurrenceCount` changes; other conditions pass through.
    """
    if not isinstance(stop_condition, OccurrenceCount):
        return stop_condition, True
    if stop_condition.remaining <= 0:
        return stop_condition, False
    if not occurs_on(pattern, previous_day, calendar):
        return stop_condition, True

    remaining = max(stop_condition.remaining - 1, 0)
    return OccurrenceCount(remaining=remaining), remaining > 0


def catch_up_decrements(
    pattern: RecurrencePattern,
    stop_condition: StopCondition | None,
    last_refresh_date: datetime | None,
    reference_date: datetime,
    calendar: AgendaCalendar | None = None,
) -> tuple[StopCondition | None, bool]:
    """Apply :func:`apply_daily_decrement` for every day not yet counted.

    The days counted are ``[last_refresh_date, reference_date)``. A refresh on
    day L has already counted every day before L. With no previous refresh
    only the day before *reference_date* is counted.
    """
    if not isinstance(stop_condition, OccurrenceCount):
        return stop_condition, True

    calendar = calendar or AgendaCalendar()
    today = calendar.start_of_day(reference_date)
    if last_refresh_date is None:
        day = today - ONE_DAY
    else:
        day = calendar.start_of_day(last_refresh_date)

    active = stop_condition.remaining > 0
    while day < today and active:
        stop_condition, active = apply_daily_decrement(
            pattern, stop_condition, day, calendar
        )
        day = calendar.start_of_day(day + ONE_DAY)
    return stop_condition, active
