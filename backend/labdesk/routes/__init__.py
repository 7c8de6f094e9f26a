from importlib import import_module

from fastapi import HTTPException

from ..errors import (
    ConcurrencyConflict,
    InsufficientStockError,
    InvalidTransitionError,
    LabDeskError,
    NotFoundError,
    SlotTakenError,
    ValidationError,
)


def http_error(exc: LabDeskError) -> HTTPException:
    """Translate a service failure into the HTTP error the API reports."""

    if isinstance(exc, InsufficientStockError):
        return HTTPException(status_code=409, detail={"message": str(exc), "available": exc.available})
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (SlotTakenError, InvalidTransitionError, ConcurrencyConflict)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


modules = [
    'auth',
    'users',
    'equipment',
    'bookings',
    'usage',
    'inventory',
    'activity',
    'notifications',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
