"""Errors raised by the agenda core and its collaborators."""

from __future__ import annotations


class AgendaError(Exception):
    """Base exception for all agenda errors."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class InvalidDateRange(AgendaError):
    """Raised when a range's lower bound is after its upper bound."""

    def __init__(self, lower: object, upper: object) -> None:
        super().__init__(
            message="Invalid date range",
            detail=f"lower bound {lower} is after upper bound {upper}",
        )


class UnboundedWindow(AgendaError):
    """Raised when an expansion window has no upper bound or exceeds the horizon cap."""

    def __init__(self, detail: str) -> None:
        super().__init__(message="Unbounded occurrence window", detail=detail)


class StorageError(AgendaError):
    """Raised by the persistence layer when reading or writing fails."""

    def __init__(self, path: object, original_error: str) -> None:
        super().__init__(message=f"Storage failure at {path}", detail=original_error)


class ItemNotFound(AgendaError):
    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(message=f"{kind} not found", detail=item_id)
