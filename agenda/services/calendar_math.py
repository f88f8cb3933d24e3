"""Calendar arithmetic shared by the recurrence, retention and projection code.

All day-level decisions go through one :class:`AgendaCalendar` per run so that
"start of day" and "same day" mean the same thing everywhere.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, time, timedelta, tzinfo
from enum import StrEnum

from dateutil import tz as dateutil_tz
from dateutil.relativedelta import relativedelta

ONE_DAY = timedelta(days=1)


class Step(StrEnum):
    WEEK = "week"
    MONTH = "month"


class AgendaCalendar:
    """Resolves datetimes to local calendar days in a single timezone.

    With ``tz=None`` naive datetimes are taken as local wall-clock time and
    aware ones are converted to the system zone, then made naive. With a
    timezone set, naive datetimes are interpreted in that zone.
    """

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz

    @classmethod
    def named(cls, name: str | None) -> AgendaCalendar:
        if not name:
            return cls()
        zone = dateutil_tz.gettz(name)
        if zone is None:
            raise ValueError(f"Unknown timezone: {name}")
        return cls(zone)

    def localize(self, value: date | datetime) -> datetime:
        if not isinstance(value, datetime):
            value = datetime.combine(value, time())
        if self.tz is None:
            if value.tzinfo is not None:
                return value.astimezone().replace(tzinfo=None)
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def start_of_day(self, value: date | datetime) -> datetime:
        local = self.localize(value)
        return datetime.combine(local.date(), time(), tzinfo=local.tzinfo)

    def at_time(self, day: date | datetime, time_of_day: time | None) -> datetime:
        """Combine a calendar day with a wall-clock time (midnight when None)."""
        midnight = self.start_of_day(day)
        if time_of_day is None:
            return midnight
        return datetime.combine(midnight.date(), time_of_day, tzinfo=midnight.tzinfo)

    def is_same_day(self, a: date | datetime, b: date | datetime) -> bool:
        return self.localize(a).date() == self.localize(b).date()

    def weekday(self, value: date | datetime) -> int:
        return self.localize(value).weekday()

    def days(
        self, lower: date | datetime, upper: date | datetime
    ) -> Iterator[datetime]:
        """Yield the start of every calendar day from *lower* to *upper*, inclusive."""
        current = self.start_of_day(lower)
        last = self.start_of_day(upper)
        while current <= last:
            yield current
            try:
                current = self.start_of_day(current + ONE_DAY)
            except OverflowError:
                return


def _delta(step: Step, count: int) -> relativedelta:
    if step is Step.WEEK:
        return relativedelta(weeks=count)
    return relativedelta(months=count)


def _estimate_steps(anchor: datetime, lower_bound: datetime, step: Step) -> int:
    if step is Step.WEEK:
        return max((lower_bound - anchor) // timedelta(weeks=1), 0)
    months = (lower_bound.year - anchor.year) * 12 + lower_bound.month - anchor.month
    return max(months - 1, 0)


def first_occurrence_at_or_after(
    anchor: datetime,
    lower_bound: datetime,
    step: Step,
    upper_bound: datetime | None = None,
) -> datetime | None:
    """Return the first ``anchor + n * step`` that is ``>= lower_bound``.

    Steps are always taken from the anchor, so month clamping (Jan 31 -> Feb 28)
    does not drift later occurrences. Returns ``None`` when the result would be
    past *upper_bound* or stepping runs off the end of the calendar.
    """
    if upper_bound is not None and anchor > upper_bound:
        return None
    count = steps_to_reach(anchor, lower_bound, step)
    if count is None:
        return None
    current = step_from(anchor, step, count)
    if current is None or (upper_bound is not None and current > upper_bound):
        return None
    return current


def steps_to_reach(anchor: datetime, lower_bound: datetime, step: Step) -> int | None:
    """Smallest ``n >= 0`` with ``anchor + n * step >= lower_bound``."""
    if anchor >= lower_bound:
        return 0
    count = _estimate_steps(anchor, lower_bound, step)
    current = step_from(anchor, step, count)
    while current is not None and current < lower_bound:
        count += 1
        current = step_from(anchor, step, count)
    if current is None:
        return None
    return count


def step_from(anchor: datetime, step: Step, count: int) -> datetime | None:
    """``anchor + count * step``, or ``None`` past the end of the calendar."""
    try:
        return anchor + _delta(step, count)
    except (OverflowError, ValueError):
        return None


def is_same_day(
    a: date | datetime,
    b: date | datetime,
    calendar: AgendaCalendar | None = None,
) -> bool:
    return (calendar or AgendaCalendar()).is_same_day(a, b)
