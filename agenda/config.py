"""
Application configuration using Pydantic Settings.
Values come from ``AGENDA_*`` environment variables or a ``.env`` file.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from agenda.domain.models import NotificationPreferences, RetentionSettings
from agenda.services.calendar_math import AgendaCalendar

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    """Agenda settings; the core receives them as explicit arguments."""

    # ── Storage ──────────────────────────────────────────
    data_dir: Path = Path.home() / ".local" / "share" / "agenda"

    # ── Calendar ─────────────────────────────────────────
    timezone: str | None = None  # IANA name; None = system local time
    agenda_window_days: int = 21
    max_horizon_days: int = 730

    # ── Retention ────────────────────────────────────────
    purge_past_events: bool = True
    auto_expire_recurring: bool | None = None  # None = follow purge_past_events
    sort_recurring_by_title: bool = True

    # ── Notifications (seconds after midnight) ───────────
    agenda_notifications_enabled: bool = False
    recurring_notifications_enabled: bool = False
    agenda_notification_time: float = 8 * 3600
    recurring_notification_time: float = 8 * 3600

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="AGENDA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def retention(self) -> RetentionSettings:
        return RetentionSettings(
            purge_past_events=self.purge_past_events,
            auto_expire_recurring=self.auto_expire_recurring,
            sort_recurring_by_title=self.sort_recurring_by_title,
        )

    def notifications(self) -> NotificationPreferences:
        return NotificationPreferences(
            agenda_enabled=self.agenda_notifications_enabled,
            recurring_enabled=self.recurring_notifications_enabled,
            agenda_time=self.agenda_notification_time,
            recurring_time=self.recurring_notification_time,
        )

    def calendar(self) -> AgendaCalendar:
        return AgendaCalendar.named(self.timezone)

    @property
    def max_horizon(self) -> timedelta:
        return timedelta(days=self.max_horizon_days)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
