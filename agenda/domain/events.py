"""Domain events emitted when the agenda changes."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class ChangeKind(StrEnum):
    EVENT_ADDED = "event_added"
    EVENT_UPDATED = "event_updated"
    EVENT_DELETED = "event_deleted"
    RECURRING_ADDED = "recurring_added"
    RECURRING_UPDATED = "recurring_updated"
    RECURRING_DELETED = "recurring_deleted"
    RECURRING_MOVED = "recurring_moved"


class AgendaChanged(BaseModel):
    """Fired after a user edit to either collection."""

    kind: ChangeKind
    item_id: str


class AgendaRefreshed(BaseModel):
    """Fired after the daily refresh has replaced both collections."""

    reference_date: datetime
    purged_event_ids: list[str] = Field(default_factory=list)
    expired_series_ids: list[str] = Field(default_factory=list)
    decremented_series_ids: list[str] = Field(default_factory=list)


class PersistenceFailed(BaseModel):
    """Fired when saving a snapshot failed; in-memory state is still authoritative."""

    message: str
    detail: str | None = None
