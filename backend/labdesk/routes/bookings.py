from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_admin
from ..deps import get_booking_service
from ..errors import LabDeskError
from ..rate_limit import rate_limit
from ..services.booking import BookingService, find_overlapping_bookings
from .. import models, schemas
from . import http_error

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post("/", response_model=schemas.BookingOut)
@rate_limit("10/hour")
def create_booking(
    request: Request,
    payload: schemas.BookingCreate,
    bookings: BookingService = Depends(get_booking_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return bookings.check_and_reserve(
            payload.equipment_id,
            payload.booking_date,
            payload.start_time,
            payload.end_time,
            user_id=user.id,
            purpose=payload.purpose,
        )
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.get("/mine", response_model=list[schemas.BookingOut])
def my_bookings(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    query = db.query(models.Booking).filter(models.Booking.user_id == user.id)
    if status:
        query = query.filter(models.Booking.status == status)
    return query.order_by(models.Booking.booking_date.desc(), models.Booking.start_time.desc()).all()


@router.get("/", response_model=list[schemas.BookingOut])
def list_bookings(
    status: Optional[str] = None,
    equipment_id: Optional[UUID] = None,
    booking_date: Optional[date] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    if status and status not in models.BOOKING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status {status}")
    query = db.query(models.Booking)
    if status:
        query = query.filter(models.Booking.status == status)
    if equipment_id:
        query = query.filter(models.Booking.equipment_id == equipment_id)
    if booking_date:
        query = query.filter(models.Booking.booking_date == booking_date)
    return (
        query.order_by(models.Booking.booking_date, models.Booking.start_time)
        .offset(offset)
        .limit(min(limit, 500))
        .all()
    )


@router.get("/conflicts", response_model=schemas.ConflictReport)
def booking_conflicts(
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    pairs = find_overlapping_bookings(db)
    return schemas.ConflictReport(overlapping=[[first.id, second.id] for first, second in pairs])


@router.get("/{booking_id}", response_model=schemas.BookingOut)
def get_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    booking = db.get(models.Booking, booking_id)
    if not booking or (booking.user_id != user.id and not user.is_admin):
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.post("/{booking_id}/approve", response_model=schemas.BookingOut)
def approve_booking(
    booking_id: UUID,
    review: schemas.BookingReview,
    bookings: BookingService = Depends(get_booking_service),
    admin: models.User = Depends(require_admin),
):
    try:
        return bookings.approve(booking_id, admin_id=admin.id, remarks=review.remarks)
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.post("/{booking_id}/reject", response_model=schemas.BookingOut)
def reject_booking(
    booking_id: UUID,
    review: schemas.BookingReview,
    bookings: BookingService = Depends(get_booking_service),
    admin: models.User = Depends(require_admin),
):
    try:
        return bookings.reject(booking_id, admin_id=admin.id, remarks=review.remarks)
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.post("/{booking_id}/cancel", response_model=schemas.BookingOut)
def cancel_booking(
    booking_id: UUID,
    bookings: BookingService = Depends(get_booking_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return bookings.cancel(booking_id, user_id=user.id)
    except LabDeskError as exc:
        raise http_error(exc) from exc
