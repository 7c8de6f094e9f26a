"""Equipment booking conflict checks and booking lifecycle transitions."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, time, timezone
from typing import Callable, Iterable
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import audit, models
from ..database import Store
from ..errors import (
    EquipmentUnavailableError,
    InvalidTransitionError,
    NotFoundError,
    SlotTakenError,
    ValidationError,
)

# purpose: own the no-overlap invariant for (equipment, date) slots and the booking state machine
# status: active
# depends_on: labdesk.models.Booking, labdesk.models.Equipment, labdesk.models.UsageSession

logger = logging.getLogger(__name__)

ACTIVE_BOOKING_STATUSES = ("pending", "approved")


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open intervals overlap iff each one starts before the other ends."""

    return start_a < end_b and start_b < end_a


def _lock_equipment(db: Session, equipment_id: UUID, *, require_available: bool) -> None:
    """Take the equipment row write lock that serializes every slot change.

    The conditional UPDATE is the first write of the transaction, so it blocks
    on a row lock under PostgreSQL and on the database write lock under SQLite
    until any concurrent booking change for this equipment has committed.
    """

    stmt = (
        sa.update(models.Equipment)
        .where(models.Equipment.id == equipment_id)
        .values(lock_version=models.Equipment.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    if require_available:
        stmt = stmt.where(models.Equipment.status == "available")
    result = db.execute(stmt)
    if result.rowcount:
        return
    exists = db.execute(
        sa.select(models.Equipment.id).where(models.Equipment.id == equipment_id)
    ).first()
    if exists is None:
        raise NotFoundError(f"equipment {equipment_id} not found")
    raise EquipmentUnavailableError("Equipment not found or not available")


def _find_conflict(
    db: Session,
    equipment_id: UUID,
    booking_date: date,
    start_time: time,
    end_time: time,
    statuses: Iterable[str],
    *,
    exclude_id: UUID | None = None,
) -> models.Booking | None:
    query = (
        db.query(models.Booking)
        .filter(models.Booking.equipment_id == equipment_id)
        .filter(models.Booking.booking_date == booking_date)
        .filter(models.Booking.status.in_(list(statuses)))
        .filter(
            sa.and_(
                models.Booking.start_time < end_time,
                models.Booking.end_time > start_time,
            )
        )
    )
    if exclude_id is not None:
        query = query.filter(models.Booking.id != exclude_id)
    return query.first()


def _equipment_id_for_booking(db: Session, booking_id: UUID) -> UUID:
    equipment_id = db.execute(
        sa.select(models.Booking.equipment_id).where(models.Booking.id == booking_id)
    ).scalar_one_or_none()
    if equipment_id is None:
        raise NotFoundError(f"booking {booking_id} not found")
    return equipment_id


def find_overlapping_bookings(db: Session) -> list[tuple[models.Booking, models.Booking]]:
    """Return every pair of active bookings that share a slot; empty when the invariant holds."""

    bookings = (
        db.query(models.Booking)
        .filter(models.Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .order_by(
            models.Booking.equipment_id,
            models.Booking.booking_date,
            models.Booking.start_time,
        )
        .all()
    )
    by_slot: dict[tuple[UUID, date], list[models.Booking]] = defaultdict(list)
    for booking in bookings:
        by_slot[(booking.equipment_id, booking.booking_date)].append(booking)

    pairs: list[tuple[models.Booking, models.Booking]] = []
    for day_bookings in by_slot.values():
        for index, first in enumerate(day_bookings):
            for second in day_bookings[index + 1 :]:
                if intervals_overlap(first.start_time, first.end_time, second.start_time, second.end_time):
                    pairs.append((first, second))
    return pairs


class BookingService:
    """Reserve equipment slots and drive bookings through their lifecycle."""

    def __init__(self, store: Store, *, clock: Callable[[], datetime] | None = None) -> None:
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def check_and_reserve(
        self,
        equipment_id: UUID,
        booking_date: date,
        start_time: time,
        end_time: time,
        *,
        user_id: UUID,
        purpose: str | None = None,
    ) -> models.Booking:
        """Insert a pending booking unless it overlaps an active one."""

        if start_time >= end_time:
            raise ValidationError("start time must be before end time")
        if booking_date < self.clock().date():
            raise ValidationError("Booking date cannot be in the past")

        def _reserve(db: Session) -> models.Booking:
            _lock_equipment(db, equipment_id, require_available=True)
            conflict = _find_conflict(
                db, equipment_id, booking_date, start_time, end_time, ACTIVE_BOOKING_STATUSES
            )
            if conflict is not None:
                raise SlotTakenError("This time slot is already booked")
            now = self.clock()
            booking = models.Booking(
                equipment_id=equipment_id,
                user_id=user_id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
                purpose=purpose,
                status="pending",
                created_at=now,
                updated_at=now,
            )
            db.add(booking)
            db.flush()
            return booking

        try:
            booking = self.store.run(_reserve)
        except SlotTakenError:
            logger.warning(
                "slot taken for equipment %s on %s %s-%s", equipment_id, booking_date, start_time, end_time
            )
            raise
        logger.info("booking %s created for equipment %s", booking.id, equipment_id)
        audit.record_activity(
            self.store,
            user_id,
            "booking_created",
            "booking",
            booking.id,
            details={
                "equipment_id": str(equipment_id),
                "booking_date": booking_date.isoformat(),
                "start_time": start_time.isoformat(),
                "end_time": end_time.isoformat(),
            },
        )
        return booking

    def approve(self, booking_id: UUID, *, admin_id: UUID, remarks: str | None = None) -> models.Booking:
        """Approve a pending booking after re-checking it against approved bookings."""

        def _approve(db: Session) -> models.Booking:
            booking = self._lock_pending(db, booking_id)
            conflict = _find_conflict(
                db,
                booking.equipment_id,
                booking.booking_date,
                booking.start_time,
                booking.end_time,
                ("approved",),
                exclude_id=booking.id,
            )
            if conflict is not None:
                raise SlotTakenError("An approved booking already occupies this slot")
            self._review(booking, "approved", admin_id, remarks)
            db.add(
                models.Notification(
                    user_id=booking.user_id,
                    title="Booking Approved",
                    message=f"Your booking has been approved. {remarks or ''}".strip(),
                    category="approval",
                    booking_id=booking.id,
                )
            )
            db.flush()
            return booking

        booking = self.store.run(_approve)
        logger.info("booking %s approved by %s", booking_id, admin_id)
        audit.record_activity(self.store, admin_id, "booking_approved", "booking", booking.id)
        return booking

    def reject(self, booking_id: UUID, *, admin_id: UUID, remarks: str | None = None) -> models.Booking:
        def _reject(db: Session) -> models.Booking:
            booking = self._lock_pending(db, booking_id)
            self._review(booking, "rejected", admin_id, remarks)
            db.add(
                models.Notification(
                    user_id=booking.user_id,
                    title="Booking Rejected",
                    message=f"Your booking has been rejected. Reason: {remarks or 'Not specified'}",
                    category="rejection",
                    booking_id=booking.id,
                )
            )
            db.flush()
            return booking

        booking = self.store.run(_reject)
        logger.info("booking %s rejected by %s", booking_id, admin_id)
        audit.record_activity(self.store, admin_id, "booking_rejected", "booking", booking.id)
        return booking

    def cancel(self, booking_id: UUID, *, user_id: UUID) -> models.Booking:
        """Cancel the caller's own booking while it is still pending."""

        def _cancel(db: Session) -> models.Booking:
            equipment_id = _equipment_id_for_booking(db, booking_id)
            _lock_equipment(db, equipment_id, require_available=False)
            booking = db.get(models.Booking, booking_id, populate_existing=True)
            if booking.user_id != user_id or booking.status != "pending":
                raise NotFoundError("Booking not found or cannot be cancelled")
            booking.status = "cancelled"
            booking.updated_at = self.clock()
            db.flush()
            return booking

        booking = self.store.run(_cancel)
        audit.record_activity(self.store, user_id, "booking_cancelled", "booking", booking.id)
        return booking

    def start_usage(self, booking_id: UUID, *, user_id: UUID) -> models.UsageSession:
        """Open a usage session against the caller's approved booking."""

        def _start(db: Session) -> models.UsageSession:
            equipment_id = _equipment_id_for_booking(db, booking_id)
            _lock_equipment(db, equipment_id, require_available=False)
            booking = db.get(models.Booking, booking_id, populate_existing=True)
            if booking.user_id != user_id or booking.status != "approved":
                raise NotFoundError("Approved booking not found")
            open_session = (
                db.query(models.UsageSession)
                .filter(models.UsageSession.booking_id == booking_id)
                .filter(models.UsageSession.ended_at.is_(None))
                .first()
            )
            if open_session is not None:
                raise InvalidTransitionError("Session already started for this booking")
            session = models.UsageSession(
                booking_id=booking.id,
                user_id=user_id,
                equipment_id=booking.equipment_id,
                started_at=self.clock(),
            )
            db.add(session)
            db.flush()
            return session

        session = self.store.run(_start)
        audit.record_activity(
            self.store,
            user_id,
            "usage_started",
            "usage_session",
            session.id,
            details={"booking_id": str(booking_id)},
        )
        return session

    def end_usage(self, session_id: UUID, *, user_id: UUID, notes: str | None = None) -> models.UsageSession:
        """Close an open usage session and mark its booking completed."""

        def _end(db: Session) -> models.UsageSession:
            equipment_id = db.execute(
                sa.select(models.UsageSession.equipment_id).where(models.UsageSession.id == session_id)
            ).scalar_one_or_none()
            if equipment_id is None:
                raise NotFoundError("Active session not found")
            _lock_equipment(db, equipment_id, require_available=False)
            session = db.get(models.UsageSession, session_id, populate_existing=True)
            if session.user_id != user_id or session.ended_at is not None:
                raise NotFoundError("Active session not found")
            now = self.clock()
            session.ended_at = now
            session.notes = notes
            booking = db.get(models.Booking, session.booking_id, populate_existing=True)
            if booking.status != "approved":
                raise InvalidTransitionError(f"booking is {booking.status}, expected approved")
            booking.status = "completed"
            booking.updated_at = now
            db.flush()
            return session

        session = self.store.run(_end)
        audit.record_activity(
            self.store,
            user_id,
            "usage_ended",
            "usage_session",
            session.id,
            details={"booking_id": str(session.booking_id), "duration_minutes": session.duration_minutes},
        )
        return session

    def _lock_pending(self, db: Session, booking_id: UUID) -> models.Booking:
        equipment_id = _equipment_id_for_booking(db, booking_id)
        _lock_equipment(db, equipment_id, require_available=False)
        booking = db.get(models.Booking, booking_id, populate_existing=True)
        if booking.status != "pending":
            raise InvalidTransitionError("Booking not found or already processed")
        return booking

    def _review(self, booking: models.Booking, status: str, admin_id: UUID, remarks: str | None) -> None:
        now = self.clock()
        booking.status = status
        booking.reviewed_by = admin_id
        booking.reviewed_at = now
        booking.remarks = remarks
        booking.updated_at = now
