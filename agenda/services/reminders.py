"""Service for building and delivering the daily agenda digests."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Protocol

from agenda.domain.models import (
    Event,
    NotificationKind,
    NotificationPreferences,
    RecurringEvent,
    ScheduledNotification,
)
from agenda.repos.memory import NotificationScheduleRepository
from agenda.services.calendar_math import ONE_DAY, AgendaCalendar
from agenda.services.recurrence import occurrences_in_range, occurs_on
from agenda.services.stop_conditions import is_active

logger = logging.getLogger(__name__)

LAST_SECOND_OF_DAY = 86_399


class Notifier(Protocol):
    def notify(self, notification: ScheduledNotification) -> None: ...


class LogNotifier:
    """Delivers notifications to the log and records them in the schedule repo."""

    def __init__(self, schedule_repo: NotificationScheduleRepository) -> None:
        self.schedule_repo = schedule_repo

    def notify(self, notification: ScheduledNotification) -> None:
        self.schedule_repo.add(notification)
        logger.info(
            "Scheduled %s notification %r for %s",
            notification.kind,
            notification.title,
            notification.fire_at.isoformat(),
        )


def items_for_day(
    day: datetime,
    events: list[Event],
    recurring_events: list[RecurringEvent],
    calendar: AgendaCalendar | None = None,
) -> tuple[list[Event], list[RecurringEvent]]:
    """Return the agenda events occurring on *day* and the live series on it.

    Weekly and monthly events count on every repeat day, not only their anchor.
    """
    calendar = calendar or AgendaCalendar()
    start = calendar.start_of_day(day)
    end = start + ONE_DAY - timedelta(microseconds=1)
    agenda_items = [e for e in events if occurrences_in_range(e, start, end, calendar)]
    recurring_items = [
        series
        for series in recurring_events
        if is_active(series.stop_condition, day, calendar)
        and occurs_on(series.pattern, day, calendar)
    ]
    return agenda_items, recurring_items


def build_daily_notifications(
    day: datetime,
    agenda_items: list[Event],
    recurring_items: list[RecurringEvent],
    preferences: NotificationPreferences,
    now: datetime,
    calendar: AgendaCalendar | None = None,
) -> list[ScheduledNotification]:
    """Build the digests to schedule for *day*.

    When both digests are enabled for the same time they are merged into one.
    Digests with nothing to say, or whose fire time has already passed, are
    dropped.
    """
    calendar = calendar or AgendaCalendar()
    if not (preferences.agenda_enabled or preferences.recurring_enabled):
        return []

    if not preferences.agenda_enabled:
        agenda_items = []
    if not preferences.recurring_enabled:
        recurring_items = []

    same_time = (
        preferences.agenda_enabled
        and preferences.recurring_enabled
        and abs(preferences.agenda_time - preferences.recurring_time) < 1
    )

    drafts: list[tuple[NotificationKind, str, str, float]] = []
    if same_time:
        if agenda_items or recurring_items:
            drafts.append(
                (
                    NotificationKind.COMBINED,
                    "Today's Plan",
                    combined_body(agenda_items, recurring_items),
                    preferences.agenda_time,
                )
            )
    else:
        if agenda_items:
            drafts.append(
                (
                    NotificationKind.AGENDA,
                    "Agenda items for today",
                    agenda_body(agenda_items),
                    preferences.agenda_time,
                )
            )
        if recurring_items:
            drafts.append(
                (
                    NotificationKind.RECURRING,
                    "Recurring events today",
                    recurring_body(recurring_items),
                    preferences.recurring_time,
                )
            )

    notifications: list[ScheduledNotification] = []
    for kind, title, body, seconds in drafts:
        fire_at = _fire_time(day, seconds, calendar)
        if fire_at <= calendar.localize(now):
            logger.debug("Skipping %s notification; %s has passed", kind, fire_at)
            continue
        notifications.append(
            ScheduledNotification(
                kind=kind,
                title=title,
                body=body,
                fire_at=fire_at,
                channel=preferences.channel,
            )
        )
    return notifications


def schedule_day(
    day: datetime,
    events: list[Event],
    recurring_events: list[RecurringEvent],
    preferences: NotificationPreferences,
    notifier: Notifier,
    schedule_repo: NotificationScheduleRepository,
    now: datetime,
    calendar: AgendaCalendar | None = None,
) -> list[ScheduledNotification]:
    """Replace any pending digests with freshly built ones for *day*."""
    schedule_repo.clear_pending()
    agenda_items, recurring_items = items_for_day(
        day, events, recurring_events, calendar
    )
    notifications = build_daily_notifications(
        day, agenda_items, recurring_items, preferences, now, calendar
    )
    for notification in notifications:
        notifier.notify(notification)
    return notifications


def agenda_body(events: list[Event]) -> str:
    lines = []
    for event in events:
        if event.includes_time:
            lines.append(f"• {event.title} {event.timestamp:%H:%M}")
        else:
            lines.append(f"• {event.title}")
    return "\n".join(lines)


def recurring_body(recurring_events: list[RecurringEvent]) -> str:
    return "\n".join(f"• {series.title}" for series in recurring_events)


def combined_body(
    agenda_items: list[Event], recurring_items: list[RecurringEvent]
) -> str:
    parts = []
    if agenda_items:
        parts.append(f"Agenda:\n{agenda_body(agenda_items)}")
    if recurring_items:
        parts.append(f"Recurring:\n{recurring_body(recurring_items)}")
    return "\n\n".join(parts)


def _fire_time(day: datetime, seconds: float, calendar: AgendaCalendar) -> datetime:
    clamped = max(0, min(LAST_SECOND_OF_DAY, int(seconds)))
    return calendar.start_of_day(day) + timedelta(seconds=clamped)
