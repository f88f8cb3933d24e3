"""Service for evaluating recurrence patterns and expanding events into
individual occurrences within a bounded window."""

from __future__ import annotations

import calendar as _stdlib_calendar
from datetime import datetime, timedelta

from agenda.domain.exceptions import InvalidDateRange, UnboundedWindow
from agenda.domain.models import (
    EndDate,
    Event,
    EventOccurrence,
    MonthlyDatePattern,
    MonthlyOrdinalPattern,
    OccurrenceCount,
    Recurrence,
    RecurrencePattern,
    RecurringEvent,
    WeeklyPattern,
)
from agenda.services.calendar_math import (
    AgendaCalendar,
    Step,
    first_occurrence_at_or_after,
    step_from,
    steps_to_reach,
)

DEFAULT_MAX_HORIZON = timedelta(days=730)

_STEPS = {Recurrence.WEEKLY: Step.WEEK, Recurrence.MONTHLY: Step.MONTH}


def occurs_on(
    pattern: RecurrencePattern,
    day: datetime,
    calendar: AgendaCalendar | None = None,
) -> bool:
    """Return True if *pattern* has an occurrence on the calendar day of *day*."""
    local = (calendar or AgendaCalendar()).localize(day)

    if isinstance(pattern, WeeklyPattern):
        return local.weekday() == pattern.weekday

    if isinstance(pattern, MonthlyOrdinalPattern):
        if local.weekday() != pattern.weekday:
            return False
        position = pattern.ordinal.index
        if position is None:
            days_in_month = _stdlib_calendar.monthrange(local.year, local.month)[1]
            return local.day + 7 > days_in_month
        return (local.day - 1) // 7 + 1 == position

    if isinstance(pattern, MonthlyDatePattern):
        # No clamping: a 31st never falls in a 30-day month.
        return local.day == pattern.day

    raise TypeError(f"Unknown recurrence pattern: {pattern!r}")


def validate_range(
    lower: datetime,
    upper: datetime | None,
    max_horizon: timedelta = DEFAULT_MAX_HORIZON,
) -> None:
    """Reject inverted, open-ended, or over-long expansion windows."""
    if upper is None:
        raise UnboundedWindow("an upper bound is required")
    if lower > upper:
        raise InvalidDateRange(lower, upper)
    if upper - lower > max_horizon:
        raise UnboundedWindow(
            f"window of {upper - lower} exceeds the {max_horizon.days}-day horizon"
        )


def occurrences_in_range(
    item: Event | RecurringEvent,
    lower: datetime,
    upper: datetime | None,
    calendar: AgendaCalendar | None = None,
    max_horizon: timedelta = DEFAULT_MAX_HORIZON,
) -> list[EventOccurrence]:
    """Expand *item* into its occurrences within the closed range [lower, upper].

    Raises :class:`InvalidDateRange` or :class:`UnboundedWindow` for bad windows.
    """
    calendar = calendar or AgendaCalendar()
    lower = calendar.localize(lower)
    upper = calendar.localize(upper) if upper is not None else None
    validate_range(lower, upper, max_horizon)

    if isinstance(item, RecurringEvent):
        return _pattern_occurrences(item, lower, upper, calendar)
    return _event_occurrences(item, lower, upper, calendar)


def _event_occurrences(
    event: Event,
    lower: datetime,
    upper: datetime,
    calendar: AgendaCalendar,
) -> list[EventOccurrence]:
    anchor = calendar.localize(event.timestamp)

    if event.recurrence == Recurrence.NONE:
        if lower <= anchor <= upper:
            return [_occurrence_for_event(event, anchor, is_recurring=False)]
        return []

    step = _STEPS[event.recurrence]
    if first_occurrence_at_or_after(anchor, lower, step, upper_bound=upper) is None:
        return []

    # Index steps from the anchor so month-end clamping never accumulates.
    count = steps_to_reach(anchor, lower, step)
    current = step_from(anchor, step, count)

    occurrences: list[EventOccurrence] = []
    while current is not None and current <= upper:
        occurrences.append(_occurrence_for_event(event, current, is_recurring=True))
        count += 1
        current = step_from(anchor, step, count)
    return occurrences


def _pattern_occurrences(
    series: RecurringEvent,
    lower: datetime,
    upper: datetime,
    calendar: AgendaCalendar,
) -> list[EventOccurrence]:
    stop = series.stop_condition
    last_day = calendar.start_of_day(upper)
    remaining: int | None = None
    if isinstance(stop, EndDate):
        last_day = min(last_day, calendar.start_of_day(stop.end_date))
    elif isinstance(stop, OccurrenceCount):
        remaining = stop.remaining

    occurrences: list[EventOccurrence] = []
    if remaining == 0 or last_day < calendar.start_of_day(lower):
        return occurrences

    for day in calendar.days(lower, last_day):
        if not occurs_on(series.pattern, day, calendar):
            continue
        occurrences.append(
            EventOccurrence(
                source_event_id=series.id,
                start_date=calendar.at_time(day, series.time_of_day),
                title=series.title,
                location=series.location,
                notes=series.notes,
                is_recurring=True,
                has_explicit_time=series.includes_time,
            )
        )
        if remaining is not None and len(occurrences) >= remaining:
            break
    return occurrences


def _occurrence_for_event(
    event: Event, start: datetime, is_recurring: bool
) -> EventOccurrence:
    return EventOccurrence(
        source_event_id=event.id,
        start_date=start,
        title=event.title,
        location=event.location,
        notes=event.notes,
        is_recurring=is_recurring,
        has_explicit_time=event.includes_time,
    )
