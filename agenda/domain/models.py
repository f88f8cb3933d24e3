"""Domain models for the agenda: events, recurring series, patterns and occurrences."""

from __future__ import annotations

import uuid
from datetime import datetime, time, timezone
from enum import IntEnum, StrEnum
from typing import Annotated, Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class Recurrence(StrEnum):
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Weekday(IntEnum):
    """Day of the week, numbered like ``datetime.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Ordinal(StrEnum):
    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    FOURTH = "fourth"
    LAST = "last"

    @property
    def index(self) -> int | None:
        """1-based position within the month, or ``None`` for ``LAST``."""
        if self is Ordinal.LAST:
            return None
        return list(Ordinal).index(self) + 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def ordinal_string(number: int) -> str:
    if number % 100 in (11, 12, 13):
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


# ---------------------------------------------------------------------------
# Recurrence patterns and stop conditions (closed tagged unions)
# ---------------------------------------------------------------------------


class WeeklyPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["weekly"] = "weekly"
    weekday: Weekday

    def describe(self) -> str:
        return f"Every {self.weekday.label}"


class MonthlyOrdinalPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["monthly_ordinal"] = "monthly_ordinal"
    ordinal: Ordinal
    weekday: Weekday

    def describe(self) -> str:
        return f"{self.ordinal.value.capitalize()} {self.weekday.label}"


class MonthlyDatePattern(BaseModel):
    """Occurs on a fixed day of each month; short months are skipped."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["monthly_date"] = "monthly_date"
    day: int = Field(ge=1, le=31)

    def describe(self) -> str:
        return f"Day {ordinal_string(self.day)}"


RecurrencePattern = Annotated[
    Union[WeeklyPattern, MonthlyOrdinalPattern, MonthlyDatePattern],
    Field(discriminator="kind"),
]


class EndDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["end_date"] = "end_date"
    end_date: datetime

    def describe(self) -> str:
        d = self.end_date
        return f"Ends on {d:%b} {d.day}, {d.year}"


class OccurrenceCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["occurrence_count"] = "occurrence_count"
    remaining: int = Field(ge=0)

    def describe(self) -> str:
        return f"Ends after {self.remaining} occurrences"


StopCondition = Annotated[
    Union[EndDate, OccurrenceCount],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class Event(BaseModel):
    """An agenda item: one-off, or repeating weekly/monthly from its timestamp."""

    id: str = Field(default_factory=_new_id)
    title: str
    timestamp: datetime
    end_time: datetime | None = None
    includes_time: bool = True
    location: str | None = None
    notes: str | None = None
    recurrence: Recurrence = Recurrence.NONE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _normalize_all_day(self) -> Event:
        if not self.includes_time:
            # A floating date: the calendar in use decides which instant it is.
            self.timestamp = datetime.combine(self.timestamp.date(), time())
            self.end_time = None
        if self.end_time is None:
            return self
        if (self.end_time.tzinfo is None) != (self.timestamp.tzinfo is None):
            raise ValueError(
                "timestamp and end_time must both carry a UTC offset or neither"
            )
        if self.end_time <= self.timestamp:
            raise ValueError("end_time must be after timestamp")
        return self

    @property
    def is_one_off(self) -> bool:
        return self.recurrence == Recurrence.NONE

    def touch(self, **changes) -> Event:
        """Return a validated copy with *changes* applied and a fresh ``updated_at``."""
        data = self.model_dump()
        data.update(changes, updated_at=_utcnow())
        return Event.model_validate(data)


class RecurringEvent(BaseModel):
    """A pattern-based series, optionally bounded by a stop condition."""

    id: str = Field(default_factory=_new_id)
    title: str
    pattern: RecurrencePattern
    time_of_day: time | None = None
    location: str | None = None
    notes: str | None = None
    stop_condition: StopCondition | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def includes_time(self) -> bool:
        return self.time_of_day is not None

    def touch(self, **changes) -> RecurringEvent:
        data = self.model_dump()
        data.update(changes, updated_at=_utcnow())
        return RecurringEvent.model_validate(data)


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


class OccurrenceKey(NamedTuple):
    event_id: str
    start_date: datetime


class EventOccurrence(BaseModel):
    """One concrete calendar instance of an event or recurring series."""

    model_config = ConfigDict(frozen=True)

    source_event_id: str
    start_date: datetime
    title: str
    location: str | None = None
    notes: str | None = None
    is_recurring: bool = False
    has_explicit_time: bool = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def occurrence_id(self) -> OccurrenceKey:
        return OccurrenceKey(self.source_event_id, self.start_date)


class NotificationKind(StrEnum):
    AGENDA = "agenda"
    RECURRING = "recurring"
    COMBINED = "combined"


class NotificationPreferences(BaseModel):
    """Daily digest switches; times are seconds after local midnight."""

    agenda_enabled: bool = False
    recurring_enabled: bool = False
    agenda_time: float = Field(default=8 * 3600)
    recurring_time: float = Field(default=8 * 3600)
    channel: str = "log"


class ScheduledNotification(BaseModel):
    id: str = Field(default_factory=_new_id)
    kind: NotificationKind
    title: str
    body: str
    fire_at: datetime
    channel: str = "log"
    was_sent: bool = False
    sent_at: datetime | None = None


class RetentionSettings(BaseModel):
    """Switches for the daily refresh, passed explicitly into every call."""

    model_config = ConfigDict(frozen=True)

    purge_past_events: bool = True
    # None follows purge_past_events
    auto_expire_recurring: bool | None = None
    sort_recurring_by_title: bool = True

    @property
    def expires_recurring(self) -> bool:
        if self.auto_expire_recurring is None:
            return self.purge_past_events
        return self.auto_expire_recurring


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class EventCreateRequest(BaseModel):
    title: str
    timestamp: datetime
    end_time: datetime | None = None
    includes_time: bool = True
    location: str | None = None
    notes: str | None = None
    recurrence: Recurrence = Recurrence.NONE


class EventUpdateRequest(BaseModel):
    title: str | None = None
    timestamp: datetime | None = None
    end_time: datetime | None = None
    includes_time: bool | None = None
    location: str | None = None
    notes: str | None = None
    recurrence: Recurrence | None = None


class RecurringEventCreateRequest(BaseModel):
    title: str
    pattern: RecurrencePattern
    time_of_day: time | None = None
    location: str | None = None
    notes: str | None = None
    stop_condition: StopCondition | None = None


class RecurringEventUpdateRequest(BaseModel):
    title: str | None = None
    pattern: RecurrencePattern | None = None
    time_of_day: time | None = None
    location: str | None = None
    notes: str | None = None
    stop_condition: StopCondition | None = None


class MoveRecurringRequest(BaseModel):
    position: int = Field(ge=0)
