"""Domain errors shared by the inventory and counts apps.

Services raise these; views translate them with :func:`error_response`.
"""

from rest_framework import status
from rest_framework.response import Response


class InventoryError(Exception):
    """Base class for ledger and counting failures."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "", **detail):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def as_dict(self) -> dict:
        body = {"detail": self.message or self.__class__.__name__}
        if self.detail:
            body["error"] = {"type": self.__class__.__name__, **self.detail}
        return body


class ValidationError(InventoryError):
    """Malformed input (quantity, scope, missing location for a type)."""


class InsufficientStock(InventoryError):
    """Source location cannot cover the requested quantity."""

    def __init__(self, *, location: str, available: int, requested: int, stock_item_id=None):
        message = f"Insufficient stock at {location or '-'}: available {available}, requested {requested}"
        super().__init__(
            message,
            location=location,
            available=available,
            requested=requested,
            shortfall=requested - available,
            stock_item=stock_item_id,
        )
        self.location = location
        self.available = available
        self.requested = requested


class NotFoundError(InventoryError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(InventoryError):
    """Actor may not act on this resource (e.g. not assigned to a count)."""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateTransition(InventoryError):
    status_code = status.HTTP_409_CONFLICT


class TransactionAbortError(InventoryError):
    """A batch or approval failed part-way; everything was rolled back."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, cause: InventoryError | None = None, **detail):
        if cause is not None:
            detail = {"cause": cause.__class__.__name__, "reason": cause.message, **cause.detail, **detail}
        super().__init__(message, **detail)
        self.cause = cause


def error_response(exc: InventoryError) -> Response:
    return Response(exc.as_dict(), status=exc.status_code)
