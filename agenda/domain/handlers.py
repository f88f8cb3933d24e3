"""Domain event handlers: persist snapshots and schedule daily digests."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Protocol

from agenda.domain.bus import EventBus
from agenda.domain.events import AgendaChanged, AgendaRefreshed, PersistenceFailed
from agenda.domain.exceptions import StorageError
from agenda.domain.models import NotificationPreferences
from agenda.repos.json_store import AgendaSnapshot
from agenda.repos.memory import (
    EventRepository,
    NotificationScheduleRepository,
    RecurringEventRepository,
    RefreshStateRepository,
)
from agenda.services.calendar_math import AgendaCalendar
from agenda.services.reminders import Notifier, schedule_day

logger = logging.getLogger(__name__)


class AgendaStorage(Protocol):
    def load(self) -> AgendaSnapshot: ...

    def save(self, snapshot: AgendaSnapshot) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to all repositories."""

    def __init__(
        self,
        bus: EventBus,
        event_repo: EventRepository,
        recurring_repo: RecurringEventRepository,
        state_repo: RefreshStateRepository,
        schedule_repo: NotificationScheduleRepository,
        storage: AgendaStorage,
        notifier: Notifier,
        preferences: NotificationPreferences,
        calendar: AgendaCalendar | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.bus = bus
        self.event_repo = event_repo
        self.recurring_repo = recurring_repo
        self.state_repo = state_repo
        self.schedule_repo = schedule_repo
        self.storage = storage
        self.notifier = notifier
        self.preferences = preferences
        self.calendar = calendar or AgendaCalendar()
        self.clock = clock
        self.last_error: str | None = None
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(AgendaChanged, self.on_agenda_changed)
        self.bus.subscribe(AgendaRefreshed, self.on_agenda_refreshed)
        self.bus.subscribe(PersistenceFailed, self.on_persistence_failed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_agenda_changed(self, event: AgendaChanged) -> None:
        logger.debug("Agenda changed: %s %s", event.kind, event.item_id)
        self._persist()
        self._reschedule(self.clock())

    def on_agenda_refreshed(self, event: AgendaRefreshed) -> None:
        self._persist()
        self._reschedule(event.reference_date)

    def on_persistence_failed(self, event: PersistenceFailed) -> None:
        # Non-fatal: the in-memory collections stay authoritative.
        self.last_error = event.detail or event.message
        logger.warning("Could not save agenda: %s (%s)", event.message, event.detail)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def snapshot(self) -> AgendaSnapshot:
        return AgendaSnapshot(
            events=self.event_repo.list_all(),
            recurring_events=self.recurring_repo.list_all(),
            last_refresh_date=self.state_repo.get(),
        )

    def _persist(self) -> None:
        try:
            self.storage.save(self.snapshot())
        except StorageError as exc:
            self.bus.publish(PersistenceFailed(message=exc.message, detail=exc.detail))
            return
        self.last_error = None

    def _reschedule(self, day: datetime) -> None:
        schedule_day(
            day=day,
            events=self.event_repo.list_all(),
            recurring_events=self.recurring_repo.list_all(),
            preferences=self.preferences,
            notifier=self.notifier,
            schedule_repo=self.schedule_repo,
            now=self.clock(),
            calendar=self.calendar,
        )
