"""In-memory repositories for events, recurring series and notifications."""

from __future__ import annotations

from datetime import datetime

from agenda.domain.models import Event, RecurringEvent, ScheduledNotification


class EventRepository:
    """Dict-backed store for Event instances, keyed by id, in insertion order."""

    def __init__(self) -> None:
        self._store: dict[str, Event] = {}

    def add(self, event: Event) -> None:
        self._store[event.id] = event

    def get(self, event_id: str) -> Event | None:
        return self._store.get(event_id)

    def list_all(self) -> list[Event]:
        return list(self._store.values())

    def delete(self, event_id: str) -> bool:
        return self._store.pop(event_id, None) is not None

    def replace_all(self, events: list[Event]) -> None:
        """Swap in a whole collection, keeping the order given."""
        self._store = {event.id: event for event in events}


class RecurringEventRepository:
    """Dict-backed store for RecurringEvent instances; order is user-visible."""

    def __init__(self) -> None:
        self._store: dict[str, RecurringEvent] = {}

    def add(self, series: RecurringEvent) -> None:
        self._store[series.id] = series

    def insert_after(self, anchor_id: str, series: RecurringEvent) -> None:
        items = list(self._store.values())
        position = next(
            (i + 1 for i, s in enumerate(items) if s.id == anchor_id), len(items)
        )
        items.insert(position, series)
        self.replace_all(items)

    def get(self, series_id: str) -> RecurringEvent | None:
        return self._store.get(series_id)

    def list_all(self) -> list[RecurringEvent]:
        return list(self._store.values())

    def delete(self, series_id: str) -> bool:
        return self._store.pop(series_id, None) is not None

    def move(self, series_id: str, position: int) -> None:
        """Move a series to *position* (clamped to the list bounds)."""
        items = self.list_all()
        index = next((i for i, s in enumerate(items) if s.id == series_id), None)
        if index is None:
            return
        series = items.pop(index)
        position = max(0, min(position, len(items)))
        items.insert(position, series)
        self.replace_all(items)

    def replace_all(self, recurring_events: list[RecurringEvent]) -> None:
        self._store = {series.id: series for series in recurring_events}


class NotificationScheduleRepository:
    """List-backed store for ScheduledNotification instances."""

    def __init__(self) -> None:
        self._items: list[ScheduledNotification] = []

    def add(self, item: ScheduledNotification) -> None:
        self._items.append(item)

    def list_pending(self) -> list[ScheduledNotification]:
        return [i for i in self._items if not i.was_sent]

    def list_due(self, now: datetime) -> list[ScheduledNotification]:
        return [i for i in self._items if not i.was_sent and i.fire_at <= now]

    def mark_sent(self, item_id: str, sent_at: datetime) -> None:
        for item in self._items:
            if item.id == item_id:
                item.was_sent = True
                item.sent_at = sent_at
                return

    def clear_pending(self) -> None:
        self._items = [i for i in self._items if i.was_sent]


class RefreshStateRepository:
    """Holds the date of the last completed daily refresh."""

    def __init__(self, last_refresh_date: datetime | None = None) -> None:
        self._last_refresh_date = last_refresh_date

    def get(self) -> datetime | None:
        return self._last_refresh_date

    def set(self, value: datetime | None) -> None:
        self._last_refresh_date = value
