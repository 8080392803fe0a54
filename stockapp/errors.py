"""Exceptions raised by the stock services.

Every error derives from :class:`StockAppError`, itself a ``ValueError`` so
callers that only care about "bad input" can keep catching ``ValueError``.
"""

from __future__ import annotations

from typing import Sequence


class StockAppError(ValueError):
    """Base class for expected, user-facing failures."""

    status_code = 400

    def to_dict(self) -> dict[str, object]:
        return {"error": str(self)}


class ValidationError(StockAppError):
    """A field is missing or out of range; raised before any write."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, object]:
        return {"error": str(self), "field": self.field}


class InsufficientStock(StockAppError):
    status_code = 409

    def __init__(self, item_name: str, requested: int, available: int):
        super().__init__(
            f"Not enough stock for {item_name}. "
            f"Requested {requested}, available {available}."
        )
        self.item_name = item_name
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict[str, object]:
        return {
            "error": str(self),
            "requested": self.requested,
            "available": self.available,
        }


class DuplicateEntity(StockAppError):
    """An item with the same name exists; the caller may confirm and retry."""

    status_code = 409

    def __init__(self, item_name: str, existing: Sequence[object] = ()):
        super().__init__(
            f'An item named "{item_name}" already exists. '
            "Confirm to add it as another entry."
        )
        self.item_name = item_name
        self.existing = list(existing)

    def to_dict(self) -> dict[str, object]:
        return {
            "error": str(self),
            "duplicate": True,
            "existing_ids": [getattr(row, "id", None) for row in self.existing],
        }


class NotFound(StockAppError):
    status_code = 404


class AlreadyReturned(StockAppError):
    status_code = 409

    def __init__(self, record_id: int | None):
        super().__init__("This borrow record has already been returned.")
        self.record_id = record_id


class ConcurrentUpdate(StockAppError):
    status_code = 409

    def __init__(self, message: str = "The record was changed by another session. Reload and try again."):
        super().__init__(message)


class RemoteWriteFailure(StockAppError):
    status_code = 503

    def __init__(self, message: str = "The database rejected the change."):
        super().__init__(message)
