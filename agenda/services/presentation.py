"""Display helpers layered on projection output: labels and section grouping."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field

from agenda.domain.models import (
    EventOccurrence,
    MonthlyDatePattern,
    RecurringEvent,
    Weekday,
)
from agenda.services.calendar_math import AgendaCalendar

ALL_DAY_LABEL = "All day"


class SmartBucket(StrEnum):
    EARLIER = "Earlier"
    TODAY = "Today"
    THIS_WEEK = "This Week"
    NEXT_WEEK = "Next Week"
    LATER = "Later"


class AgendaEntry(BaseModel):
    occurrence: EventOccurrence
    time_label: str

    @classmethod
    def from_occurrence(cls, occurrence: EventOccurrence) -> AgendaEntry:
        return cls(occurrence=occurrence, time_label=time_label(occurrence))


class AgendaSection(BaseModel):
    title: str
    date: datetime | None = None
    entries: list[AgendaEntry] = Field(default_factory=list)


class RecurringSection(BaseModel):
    title: str
    recurring_events: list[RecurringEvent] = Field(default_factory=list)


def time_label(occurrence: EventOccurrence) -> str:
    """``"All day"`` for untimed occurrences, otherwise ``HH:MM``."""
    if not occurrence.has_explicit_time:
        return ALL_DAY_LABEL
    return occurrence.start_date.strftime("%H:%M")


def group_by_date(
    occurrences: list[EventOccurrence],
    calendar: AgendaCalendar | None = None,
) -> list[AgendaSection]:
    calendar = calendar or AgendaCalendar()
    sections: dict[datetime, list[EventOccurrence]] = {}
    for occurrence in occurrences:
        day = calendar.start_of_day(occurrence.start_date)
        sections.setdefault(day, []).append(occurrence)

    return [
        AgendaSection(
            title=f"{day:%A}, {day:%B} {day.day}",
            date=day,
            entries=_entries(sections[day]),
        )
        for day in sorted(sections)
    ]


def smart_sections(
    occurrences: list[EventOccurrence],
    today: datetime,
    calendar: AgendaCalendar | None = None,
) -> list[AgendaSection]:
    """Group into Earlier / Today / This Week / Next Week / Later.

    Weeks start on Monday. Empty buckets are omitted.
    """
    calendar = calendar or AgendaCalendar()
    today = calendar.start_of_day(today)
    this_week = today - timedelta(days=today.weekday())
    next_week = this_week + timedelta(weeks=1)
    week_after = next_week + timedelta(weeks=1)

    buckets: dict[SmartBucket, list[EventOccurrence]] = {}
    for occurrence in occurrences:
        day = calendar.start_of_day(occurrence.start_date)
        if day < today:
            bucket = SmartBucket.EARLIER
        elif day == today:
            bucket = SmartBucket.TODAY
        elif day < next_week:
            bucket = SmartBucket.THIS_WEEK
        elif day < week_after:
            bucket = SmartBucket.NEXT_WEEK
        else:
            bucket = SmartBucket.LATER
        buckets.setdefault(bucket, []).append(occurrence)

    return [
        AgendaSection(
            title=bucket.value,
            entries=_entries(buckets[bucket]),
        )
        for bucket in SmartBucket
        if bucket in buckets
    ]


def group_recurring_by_weekday(
    recurring_events: list[RecurringEvent],
) -> list[RecurringSection]:
    """Group series by the weekday they fall on, Monday first.

    Day-of-month series have no fixed weekday and are listed last.
    """
    by_weekday: dict[Weekday, list[RecurringEvent]] = {}
    by_date: list[RecurringEvent] = []
    for series in recurring_events:
        if isinstance(series.pattern, MonthlyDatePattern):
            by_date.append(series)
        else:
            by_weekday.setdefault(series.pattern.weekday, []).append(series)

    sections = [
        RecurringSection(title=weekday.label, recurring_events=by_weekday[weekday])
        for weekday in sorted(by_weekday)
    ]
    if by_date:
        sections.append(
            RecurringSection(title="Monthly by date", recurring_events=by_date)
        )
    return sections


def _entries(occurrences: list[EventOccurrence]) -> list[AgendaEntry]:
    ordered = sorted(occurrences, key=lambda occurrence: occurrence.start_date)
    return [AgendaEntry.from_occurrence(occurrence) for occurrence in ordered]
