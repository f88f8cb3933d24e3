"""Daily maintenance pass: purge past one-off events and expire finished series.

The pass is pure. It returns new collections together with the refresh date
the caller must persist, so a second call for the same day changes nothing and
a call after several skipped days counts each skipped day exactly once.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from agenda.domain.models import (
    EndDate,
    Event,
    OccurrenceCount,
    RecurringEvent,
    RetentionSettings,
)
from agenda.services.calendar_math import AgendaCalendar
from agenda.services.stop_conditions import catch_up_decrements

logger = logging.getLogger(__name__)


class RefreshResult(BaseModel):
    events: list[Event]
    recurring_events: list[RecurringEvent]
    last_refresh_date: datetime
    purged_event_ids: list[str] = Field(default_factory=list)
    expired_series_ids: list[str] = Field(default_factory=list)
    decremented_series_ids: list[str] = Field(default_factory=list)


def daily_refresh(
    events: list[Event],
    recurring_events: list[RecurringEvent],
    reference_date: datetime,
    settings: RetentionSettings,
    last_refresh_date: datetime | None = None,
    calendar: AgendaCalendar | None = None,
) -> RefreshResult:
    calendar = calendar or AgendaCalendar()
    today = calendar.start_of_day(reference_date)

    if (
        last_refresh_date is not None
        and calendar.start_of_day(last_refresh_date) > today
    ):
        logger.warning(
            "Last refresh %s is after reference date %s; skipping countdowns",
            last_refresh_date,
            today,
        )
        last_refresh_date = today

    # 1. One-off events from earlier days
    kept_events: list[Event] = []
    purged: list[str] = []
    for event in events:
        if (
            settings.purge_past_events
            and event.is_one_off
            and calendar.start_of_day(event.timestamp) < today
        ):
            purged.append(event.id)
            continue
        kept_events.append(event)

    # 2. Recurring series
    kept_series: list[RecurringEvent] = []
    expired: list[str] = []
    decremented: list[str] = []
    for series in recurring_events:
        updated = _refresh_series(series, today, settings, last_refresh_date, calendar)
        if updated is None:
            expired.append(series.id)
            continue
        if updated is not series:
            decremented.append(series.id)
        kept_series.append(updated)

    # 3. Ordering
    sort_events(kept_events, calendar)
    if settings.sort_recurring_by_title:
        sort_recurring(kept_series)

    if purged or expired or decremented:
        logger.info(
            "Daily refresh for %s: purged %d events, expired %d series, "
            "counted down %d series",
            today.date(),
            len(purged),
            len(expired),
            len(decremented),
        )

    return RefreshResult(
        events=kept_events,
        recurring_events=kept_series,
        last_refresh_date=today,
        purged_event_ids=purged,
        expired_series_ids=expired,
        decremented_series_ids=decremented,
    )


def _refresh_series(
    series: RecurringEvent,
    today: datetime,
    settings: RetentionSettings,
    last_refresh_date: datetime | None,
    calendar: AgendaCalendar,
) -> RecurringEvent | None:
    """Return the series as it should be kept, or ``None`` to remove it."""
    stop = series.stop_condition

    if isinstance(stop, EndDate):
        ended = calendar.start_of_day(stop.end_date) < today
        if settings.expires_recurring and ended:
            logger.debug("Series %s ended on %s", series.id, stop.end_date)
            return None
        return series

    if isinstance(stop, OccurrenceCount):
        if stop.remaining <= 0:
            logger.debug("Series %s has no occurrences left", series.id)
            return None
        if not settings.expires_recurring:
            return series

        new_stop, active = catch_up_decrements(
            series.pattern, stop, last_refresh_date, today, calendar
        )
        if not active:
            logger.debug("Series %s counted down to zero", series.id)
            return None
        if new_stop != stop:
            return series.touch(stop_condition=new_stop)
        return series

    return series


def sort_events(events: list[Event], calendar: AgendaCalendar | None = None) -> None:
    """Sort in place by date, then by end time (events with one first), then title.

    Times are compared through *calendar* so naive and aware timestamps mix.
    """
    calendar = calendar or AgendaCalendar()

    def key(event: Event) -> tuple:
        start = calendar.localize(event.timestamp)
        if event.end_time is not None:
            return (start, 0, calendar.localize(event.end_time), "")
        return (start, 1, start, event.title)

    events.sort(key=key)


def sort_recurring(recurring_events: list[RecurringEvent]) -> None:
    recurring_events.sort(key=lambda series: series.title.casefold())
