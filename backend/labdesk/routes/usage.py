from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_admin
from ..deps import get_booking_service
from ..errors import LabDeskError
from ..services.booking import BookingService
from .. import models, schemas
from . import http_error

router = APIRouter(prefix="/api/usage", tags=["usage"])


@router.post("/start", response_model=schemas.UsageSessionOut)
def start_session(
    payload: schemas.UsageStart,
    bookings: BookingService = Depends(get_booking_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return bookings.start_usage(payload.booking_id, user_id=user.id)
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.post("/{session_id}/end", response_model=schemas.UsageSessionOut)
def end_session(
    session_id: UUID,
    payload: schemas.UsageEnd,
    bookings: BookingService = Depends(get_booking_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return bookings.end_usage(session_id, user_id=user.id, notes=payload.notes)
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.get("/mine", response_model=list[schemas.UsageSessionOut])
def my_sessions(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return (
        db.query(models.UsageSession)
        .filter(models.UsageSession.user_id == user.id)
        .order_by(models.UsageSession.started_at.desc())
        .all()
    )


@router.get("/", response_model=list[schemas.UsageSessionOut])
def list_sessions(
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    return (
        db.query(models.UsageSession)
        .order_by(models.UsageSession.started_at.desc())
        .offset(offset)
        .limit(min(limit, 500))
        .all()
    )


@router.get("/equipment/{equipment_id}", response_model=list[schemas.UsageSessionOut])
def equipment_sessions(
    equipment_id: UUID,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    if not db.get(models.Equipment, equipment_id):
        raise HTTPException(status_code=404, detail="Equipment not found")
    return (
        db.query(models.UsageSession)
        .filter(models.UsageSession.equipment_id == equipment_id)
        .order_by(models.UsageSession.started_at.desc())
        .all()
    )
