"""Typed failures raised by the booking and stock services."""

from __future__ import annotations


class LabDeskError(RuntimeError):
    """Base error for booking and inventory operations."""


class ValidationError(LabDeskError):
    """Raised when caller-supplied input is malformed before touching the store."""


class NotFoundError(LabDeskError):
    """Raised when an equipment, booking, item or session id does not resolve."""


class EquipmentUnavailableError(NotFoundError):
    """Raised when equipment exists but is not in the available state."""


class SlotTakenError(LabDeskError):
    """Raised when a reservation overlaps an active booking."""


class InsufficientStockError(LabDeskError):
    """Raised when a consumption would drive stock below zero."""

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(f"Insufficient stock. Available: {available}")
        self.available = available
        self.requested = requested


class InvalidTransitionError(LabDeskError):
    """Raised when a record is not in a state that allows the requested change."""


class ConcurrencyConflict(LabDeskError):
    """Raised when the store reports a lock timeout or deadlock; safe to retry."""
