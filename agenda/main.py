"""FastAPI entry point for the agenda service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Literal

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from agenda.config import Settings, configure_logging, get_settings
from agenda.domain.bus import EventBus
from agenda.domain.exceptions import AgendaError, ItemNotFound
from agenda.domain.handlers import AgendaStorage, HandlerRegistry
from agenda.domain.models import (
    Event,
    EventCreateRequest,
    EventUpdateRequest,
    MoveRecurringRequest,
    RecurringEvent,
    RecurringEventCreateRequest,
    RecurringEventUpdateRequest,
)
from agenda.domain.store import AgendaStore
from agenda.repos.json_store import JsonAgendaStorage
from agenda.repos.memory import (
    EventRepository,
    NotificationScheduleRepository,
    RecurringEventRepository,
    RefreshStateRepository,
)
from agenda.services.presentation import (
    AgendaEntry,
    AgendaSection,
    RecurringSection,
    group_by_date,
    group_recurring_by_weekday,
    smart_sections,
)
from agenda.services.recurrence import occurs_on
from agenda.services.reminders import LogNotifier
from agenda.services.stop_conditions import is_active

logger = logging.getLogger(__name__)


class AgendaResponse(BaseModel):
    start: datetime
    days: int
    entries: list[AgendaEntry] = Field(default_factory=list)
    sections: list[AgendaSection] = Field(default_factory=list)


class RefreshResponse(BaseModel):
    reference_date: datetime
    purged_event_ids: list[str]
    expired_series_ids: list[str]
    decremented_series_ids: list[str]
    last_error: str | None = None


class OccursResponse(BaseModel):
    series_id: str
    on: datetime
    occurs: bool
    active: bool


def app_error_to_http(error: AgendaError, status_code: int = 400) -> HTTPException:
    """Convert an AgendaError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_app(
    settings: Settings | None = None,
    storage: AgendaStorage | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> FastAPI:
    """Build the app with its own bus, repositories and store."""
    settings = settings or get_settings()
    storage = storage or JsonAgendaStorage(settings.data_dir)
    calendar = settings.calendar()

    bus = EventBus()
    event_repo = EventRepository()
    recurring_repo = RecurringEventRepository()
    state_repo = RefreshStateRepository()
    schedule_repo = NotificationScheduleRepository()

    store = AgendaStore(
        bus=bus,
        event_repo=event_repo,
        recurring_repo=recurring_repo,
        state_repo=state_repo,
        settings=settings.retention(),
        calendar=calendar,
        max_horizon=settings.max_horizon,
        clock=clock,
    )
    handler_registry = HandlerRegistry(
        bus=bus,
        event_repo=event_repo,
        recurring_repo=recurring_repo,
        state_repo=state_repo,
        schedule_repo=schedule_repo,
        storage=storage,
        notifier=LogNotifier(schedule_repo),
        preferences=settings.notifications(),
        calendar=calendar,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        store.load(storage)
        store.ensure_refreshed()
        yield

    app = FastAPI(title="Agenda Service", lifespan=lifespan)
    app.state.store = store
    app.state.handlers = handler_registry
    app.state.schedule_repo = schedule_repo

    @app.exception_handler(AgendaError)
    async def _agenda_error(_: Request, exc: AgendaError) -> JSONResponse:
        code = (
            status.HTTP_404_NOT_FOUND
            if isinstance(exc, ItemNotFound)
            else status.HTTP_400_BAD_REQUEST
        )
        http = app_error_to_http(exc, code)
        return JSONResponse(
            status_code=http.status_code, content={"detail": http.detail}
        )

    @app.exception_handler(ValidationError)
    async def _validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        # Model rules checked after the request body parsed, e.g. end_time order
        return JSONResponse(
            status_code=422,
            content={
                "detail": jsonable_encoder(
                    exc.errors(include_url=False, include_context=False)
                )
            },
        )

    # ── Agenda events ─────────────────────────────────────────────────

    @app.get("/events", response_model=list[Event])
    def list_events() -> list[Event]:
        return store.list_events()

    @app.post("/events", response_model=Event, status_code=201)
    def create_event(body: EventCreateRequest) -> Event:
        return store.add_event(Event(**body.model_dump()))

    @app.get("/events/{event_id}", response_model=Event)
    def get_event(event_id: str) -> Event:
        return store.get_event(event_id)

    @app.put("/events/{event_id}", response_model=Event)
    def update_event(event_id: str, body: EventUpdateRequest) -> Event:
        return store.update_event(event_id, **body.model_dump(exclude_unset=True))

    @app.delete("/events/{event_id}", status_code=204)
    def delete_event(event_id: str) -> None:
        store.delete_event(event_id)

    @app.post("/events/{event_id}/duplicate", response_model=Event, status_code=201)
    def duplicate_event(event_id: str) -> Event:
        return store.duplicate_event(event_id)

    # ── Recurring series ──────────────────────────────────────────────

    @app.get("/recurring-events", response_model=list[RecurringEvent])
    def list_recurring() -> list[RecurringEvent]:
        return store.list_recurring()

    @app.get("/recurring-events/by-weekday", response_model=list[RecurringSection])
    def list_recurring_by_weekday() -> list[RecurringSection]:
        return group_recurring_by_weekday(store.list_recurring())

    @app.post("/recurring-events", response_model=RecurringEvent, status_code=201)
    def create_recurring(body: RecurringEventCreateRequest) -> RecurringEvent:
        added = store.add_recurring(RecurringEvent(**body.model_dump()))
        if added is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Recurring event has already ended",
            )
        return added

    @app.get("/recurring-events/{series_id}", response_model=RecurringEvent)
    def get_recurring(series_id: str) -> RecurringEvent:
        return store.get_recurring(series_id)

    @app.put("/recurring-events/{series_id}", response_model=RecurringEvent | None)
    def update_recurring(
        series_id: str, body: RecurringEventUpdateRequest
    ) -> RecurringEvent | None:
        """Returns ``null`` when the edit ended the series and it was removed."""
        return store.update_recurring(series_id, **body.model_dump(exclude_unset=True))

    @app.delete("/recurring-events/{series_id}", status_code=204)
    def delete_recurring(series_id: str) -> None:
        store.delete_recurring(series_id)

    @app.post(
        "/recurring-events/{series_id}/duplicate",
        response_model=RecurringEvent,
        status_code=201,
    )
    def duplicate_recurring(series_id: str) -> RecurringEvent:
        return store.duplicate_recurring(series_id)

    @app.post("/recurring-events/{series_id}/move", response_model=list[RecurringEvent])
    def move_recurring(
        series_id: str, body: MoveRecurringRequest
    ) -> list[RecurringEvent]:
        return store.move_recurring(series_id, body.position)

    @app.get("/recurring-events/{series_id}/occurs", response_model=OccursResponse)
    def recurring_occurs(series_id: str, on: datetime) -> OccursResponse:
        series = store.get_recurring(series_id)
        return OccursResponse(
            series_id=series_id,
            on=on,
            occurs=occurs_on(series.pattern, on, calendar),
            active=is_active(series.stop_condition, on, calendar),
        )

    # ── Agenda projection and maintenance ─────────────────────────────

    @app.get("/agenda", response_model=AgendaResponse)
    def agenda(
        today: datetime | None = None,
        days: int | None = None,
        grouping: Literal["none", "date", "smart"] = "none",
    ) -> AgendaResponse:
        """Return occurrences in ``[today, today + days]``, optionally grouped."""
        today = today or clock()
        days = settings.agenda_window_days if days is None else days
        occurrences = store.agenda(today, days)

        sections: list[AgendaSection] = []
        if grouping == "date":
            sections = group_by_date(occurrences, calendar)
        elif grouping == "smart":
            sections = smart_sections(occurrences, today, calendar)

        return AgendaResponse(
            start=calendar.start_of_day(today),
            days=days,
            entries=[AgendaEntry.from_occurrence(o) for o in occurrences],
            sections=sections,
        )

    @app.post("/refresh", response_model=RefreshResponse)
    def refresh(today: datetime | None = None) -> RefreshResponse:
        """Run the daily refresh.

        Pass *today* as a query param to control the simulated clock.
        Defaults to the current time when omitted.
        """
        result = store.refresh(today or clock())
        return RefreshResponse(
            reference_date=result.last_refresh_date,
            purged_event_ids=result.purged_event_ids,
            expired_series_ids=result.expired_series_ids,
            decremented_series_ids=result.decremented_series_ids,
            last_error=handler_registry.last_error,
        )

    return app


configure_logging(get_settings().log_level)
app = create_app()
