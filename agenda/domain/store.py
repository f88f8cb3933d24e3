"""The agenda store: single writer over the event and recurring collections.

Every mutation and every refresh runs under one lock, and domain events are
published before the lock is released, so persistence always sees a complete
state and never interleaves with a refresh.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from agenda.domain.bus import EventBus
from agenda.domain.events import AgendaChanged, AgendaRefreshed, ChangeKind
from agenda.domain.exceptions import ItemNotFound, StorageError
from agenda.domain.handlers import AgendaStorage
from agenda.domain.models import (
    EndDate,
    Event,
    EventOccurrence,
    RecurringEvent,
    RetentionSettings,
)
from agenda.repos.json_store import AgendaSnapshot
from agenda.repos.memory import (
    EventRepository,
    RecurringEventRepository,
    RefreshStateRepository,
)
from agenda.services.calendar_math import AgendaCalendar
from agenda.services.projection import DEFAULT_WINDOW_DAYS, project
from agenda.services.recurrence import DEFAULT_MAX_HORIZON
from agenda.services.reminders import items_for_day
from agenda.services.retention import (
    RefreshResult,
    daily_refresh,
    sort_events,
    sort_recurring,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgendaStore:
    def __init__(
        self,
        bus: EventBus,
        event_repo: EventRepository,
        recurring_repo: RecurringEventRepository,
        state_repo: RefreshStateRepository,
        settings: RetentionSettings,
        calendar: AgendaCalendar | None = None,
        max_horizon: timedelta = DEFAULT_MAX_HORIZON,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.bus = bus
        self.event_repo = event_repo
        self.recurring_repo = recurring_repo
        self.state_repo = state_repo
        self.settings = settings
        self.calendar = calendar or AgendaCalendar()
        self.max_horizon = max_horizon
        self.clock = clock
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, storage: AgendaStorage) -> bool:
        """Replace the collections with what *storage* holds.

        A failed load is logged and leaves the current state untouched.
        """
        try:
            snapshot: AgendaSnapshot = storage.load()
        except StorageError as exc:
            logger.warning("Could not load agenda: %s (%s)", exc.message, exc.detail)
            return False
        with self._lock:
            events = list(snapshot.events)
            sort_events(events, self.calendar)
            self.event_repo.replace_all(events)
            self.recurring_repo.replace_all(snapshot.recurring_events)
            self.state_repo.set(snapshot.last_refresh_date)
        return True

    # ------------------------------------------------------------------
    # Agenda events
    # ------------------------------------------------------------------

    def add_event(self, event: Event) -> Event:
        with self._lock:
            self._put_event(event)
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.EVENT_ADDED, item_id=event.id)
            )
        return event

    def update_event(self, event_id: str, **changes) -> Event:
        with self._lock:
            current = self._require_event(event_id)
            changes.pop("id", None)
            updated = current.touch(**changes)
            self._put_event(updated)
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.EVENT_UPDATED, item_id=event_id)
            )
        return updated

    def delete_event(self, event_id: str) -> None:
        with self._lock:
            if not self.event_repo.delete(event_id):
                raise ItemNotFound("Event", event_id)
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.EVENT_DELETED, item_id=event_id)
            )

    def duplicate_event(self, event_id: str) -> Event:
        with self._lock:
            clone = self._require_event(event_id).touch(
                id=str(uuid.uuid4()), created_at=_utcnow()
            )
            self._put_event(clone)
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.EVENT_ADDED, item_id=clone.id)
            )
        return clone

    def get_event(self, event_id: str) -> Event:
        return self._require_event(event_id)

    def list_events(self) -> list[Event]:
        return self.event_repo.list_all()

    # ------------------------------------------------------------------
    # Recurring series
    # ------------------------------------------------------------------

    def add_recurring(self, series: RecurringEvent) -> RecurringEvent | None:
        """Add *series*; returns ``None`` if it already ended and would be purged."""
        with self._lock:
            if self._already_ended(series):
                logger.info("Not adding series %s: its end date has passed", series.id)
                return None
            self.recurring_repo.add(series)
            self._resort_recurring()
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.RECURRING_ADDED, item_id=series.id)
            )
        return series

    def update_recurring(self, series_id: str, **changes) -> RecurringEvent | None:
        """Apply *changes*; a series edited to an already-past end date is removed."""
        with self._lock:
            current = self._require_series(series_id)
            changes.pop("id", None)
            updated = current.touch(**changes)
            if self._already_ended(updated):
                self.recurring_repo.delete(series_id)
                self.bus.publish(
                    AgendaChanged(kind=ChangeKind.RECURRING_DELETED, item_id=series_id)
                )
                return None
            self.recurring_repo.add(updated)
            self._resort_recurring()
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.RECURRING_UPDATED, item_id=series_id)
            )
        return updated

    def delete_recurring(self, series_id: str) -> None:
        with self._lock:
            if not self.recurring_repo.delete(series_id):
                raise ItemNotFound("Recurring event", series_id)
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.RECURRING_DELETED, item_id=series_id)
            )

    def duplicate_recurring(self, series_id: str) -> RecurringEvent:
        """Copy a series; the copy is placed right after the original."""
        with self._lock:
            clone = self._require_series(series_id).touch(
                id=str(uuid.uuid4()), created_at=_utcnow()
            )
            self.recurring_repo.insert_after(series_id, clone)
            self._resort_recurring()
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.RECURRING_ADDED, item_id=clone.id)
            )
        return clone

    def move_recurring(self, series_id: str, position: int) -> list[RecurringEvent]:
        with self._lock:
            self._require_series(series_id)
            self.recurring_repo.move(series_id, position)
            self.bus.publish(
                AgendaChanged(kind=ChangeKind.RECURRING_MOVED, item_id=series_id)
            )
            return self.recurring_repo.list_all()

    def get_recurring(self, series_id: str) -> RecurringEvent:
        return self._require_series(series_id)

    def list_recurring(self) -> list[RecurringEvent]:
        return self.recurring_repo.list_all()

    # ------------------------------------------------------------------
    # Daily refresh and projection
    # ------------------------------------------------------------------

    def refresh(self, reference_date: datetime | None = None) -> RefreshResult:
        """Run the daily refresh for *reference_date* (defaults to now)."""
        reference_date = reference_date or self.clock()
        with self._lock:
            return self._refresh_locked(reference_date)

    def ensure_refreshed(self, now: datetime | None = None) -> RefreshResult | None:
        """Refresh unless a refresh already ran on the day of *now*."""
        now = now or self.clock()
        today = self.calendar.start_of_day(now)
        with self._lock:
            last = self.state_repo.get()
            if last is not None and self.calendar.start_of_day(last) >= today:
                return None
            return self._refresh_locked(now)

    def agenda(
        self, today: datetime | None = None, days: int = DEFAULT_WINDOW_DAYS
    ) -> list[EventOccurrence]:
        today = today or self.clock()
        with self._lock:
            events = self.event_repo.list_all()
            recurring = self.recurring_repo.list_all()
        return project(
            events, recurring, today, days, self.calendar, self.max_horizon
        )

    def occurring_on(self, day: datetime) -> tuple[list[Event], list[RecurringEvent]]:
        with self._lock:
            events = self.event_repo.list_all()
            recurring = self.recurring_repo.list_all()
        return items_for_day(day, events, recurring, self.calendar)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _refresh_locked(self, reference_date: datetime) -> RefreshResult:
        result = daily_refresh(
            events=self.event_repo.list_all(),
            recurring_events=self.recurring_repo.list_all(),
            reference_date=reference_date,
            settings=self.settings,
            last_refresh_date=self.state_repo.get(),
            calendar=self.calendar,
        )
        self.event_repo.replace_all(result.events)
        self.recurring_repo.replace_all(result.recurring_events)
        self.state_repo.set(result.last_refresh_date)
        self.bus.publish(
            AgendaRefreshed(
                reference_date=result.last_refresh_date,
                purged_event_ids=result.purged_event_ids,
                expired_series_ids=result.expired_series_ids,
                decremented_series_ids=result.decremented_series_ids,
            )
        )
        return result

    def _require_event(self, event_id: str) -> Event:
        event = self.event_repo.get(event_id)
        if event is None:
            raise ItemNotFound("Event", event_id)
        return event

    def _require_series(self, series_id: str) -> RecurringEvent:
        series = self.recurring_repo.get(series_id)
        if series is None:
            raise ItemNotFound("Recurring event", series_id)
        return series

    def _already_ended(self, series: RecurringEvent) -> bool:
        stop = series.stop_condition
        if not (self.settings.expires_recurring and isinstance(stop, EndDate)):
            return False
        today = self.calendar.start_of_day(self.clock())
        return self.calendar.start_of_day(stop.end_date) < today

    def _put_event(self, event: Event) -> None:
        """Insert or replace *event*; the repo is only written once sorted."""
        events = [e for e in self.event_repo.list_all() if e.id != event.id]
        events.append(event)
        sort_events(events, self.calendar)
        self.event_repo.replace_all(events)

    def _resort_recurring(self) -> None:
        if not self.settings.sort_recurring_by_title:
            return
        recurring = self.recurring_repo.list_all()
        sort_recurring(recurring)
        self.recurring_repo.replace_all(recurring)
