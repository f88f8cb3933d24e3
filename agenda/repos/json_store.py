"""JSON file persistence for the agenda collections and refresh bookkeeping.

Three files live in the data directory: ``events.json``, ``recurring.json``
and ``state.json`` (the last refresh date). Missing files load as empty.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from agenda.domain.exceptions import StorageError
from agenda.domain.models import Event, RecurringEvent

logger = logging.getLogger(__name__)

_EVENTS = TypeAdapter(list[Event])
_RECURRING = TypeAdapter(list[RecurringEvent])


class RefreshState(BaseModel):
    last_refresh_date: datetime | None = None


class AgendaSnapshot(BaseModel):
    """Everything the store persists, handed over as one unit."""

    events: list[Event] = Field(default_factory=list)
    recurring_events: list[RecurringEvent] = Field(default_factory=list)
    last_refresh_date: datetime | None = None


class JsonAgendaStorage:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    @property
    def events_path(self) -> Path:
        return self.directory / "events.json"

    @property
    def recurring_path(self) -> Path:
        return self.directory / "recurring.json"

    @property
    def state_path(self) -> Path:
        return self.directory / "state.json"

    def load(self) -> AgendaSnapshot:
        """Read all files; raises :class:`StorageError` on unreadable content."""
        events = self._read(self.events_path, _EVENTS.validate_json, [])
        recurring = self._read(self.recurring_path, _RECURRING.validate_json, [])
        state = self._read(
            self.state_path, RefreshState.model_validate_json, RefreshState()
        )
        logger.debug(
            "Loaded %d events and %d recurring series from %s",
            len(events),
            len(recurring),
            self.directory,
        )
        return AgendaSnapshot(
            events=events,
            recurring_events=recurring,
            last_refresh_date=state.last_refresh_date,
        )

    def save(self, snapshot: AgendaSnapshot) -> None:
        """Write all files atomically; raises :class:`StorageError` on failure."""
        self._write(self.events_path, _EVENTS.dump_json(snapshot.events, indent=2))
        self._write(
            self.recurring_path,
            _RECURRING.dump_json(snapshot.recurring_events, indent=2),
        )
        state = RefreshState(last_refresh_date=snapshot.last_refresh_date)
        self._write(self.state_path, state.model_dump_json(indent=2).encode())

    def _read(self, path: Path, parse, default):
        if not path.exists():
            return default
        try:
            return parse(path.read_bytes())
        except (OSError, ValidationError) as exc:
            raise StorageError(path, str(exc)) from exc

    def _write(self, path: Path, payload: bytes) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except OSError as exc:
            raise StorageError(path, str(exc)) from exc


class InMemoryAgendaStorage:
    """Storage double that keeps the last saved snapshot in memory."""

    def __init__(self, snapshot: AgendaSnapshot | None = None) -> None:
        self.snapshot = snapshot or AgendaSnapshot()
        self.save_count = 0

    def load(self) -> AgendaSnapshot:
        return self.snapshot.model_copy(deep=True)

    def save(self, snapshot: AgendaSnapshot) -> None:
        self.snapshot = snapshot.model_copy(deep=True)
        self.save_count += 1
