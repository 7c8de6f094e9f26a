from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_admin
from .. import models, schemas, audit
from ..services.booking import ACTIVE_BOOKING_STATUSES

router = APIRouter(prefix="/api/equipment", tags=["equipment"])


@router.post("/", response_model=schemas.EquipmentOut)
def create_equipment(
    equipment: schemas.EquipmentCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    db_eq = models.Equipment(**equipment.model_dump(), created_by=admin.id)
    db.add(db_eq)
    db.commit()
    db.refresh(db_eq)
    audit.log_action(db, admin.id, "equipment_created", "equipment", db_eq.id)
    return db_eq


@router.get("/", response_model=list[schemas.EquipmentOut])
def list_equipment(
    status: Optional[str] = None,
    eq_type: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if status and status not in models.EQUIPMENT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status {status}")
    query = db.query(models.Equipment).filter(models.Equipment.status != "deleted")
    if status:
        query = query.filter(models.Equipment.status == status)
    if eq_type:
        query = query.filter(models.Equipment.eq_type == eq_type)
    return query.order_by(models.Equipment.name).all()


@router.get("/{equipment_id}", response_model=schemas.EquipmentOut)
def get_equipment(
    equipment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    eq = db.get(models.Equipment, equipment_id)
    if not eq or eq.status == "deleted":
        raise HTTPException(status_code=404, detail="Equipment not found")
    return eq


@router.get("/{equipment_id}/bookings", response_model=list[schemas.BookingOut])
def equipment_schedule(
    equipment_id: UUID,
    booking_date: date,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """Active bookings for one equipment on one day, for slot pickers."""
    return (
        db.query(models.Booking)
        .filter(models.Booking.equipment_id == equipment_id)
        .filter(models.Booking.booking_date == booking_date)
        .filter(models.Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .order_by(models.Booking.start_time)
        .all()
    )


@router.put("/{equipment_id}", response_model=schemas.EquipmentOut)
def update_equipment(
    equipment_id: UUID,
    data: schemas.EquipmentUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    eq = db.get(models.Equipment, equipment_id)
    if not eq:
        raise HTTPException(status_code=404, detail="Equipment not found")
    changes = data.model_dump(exclude_unset=True)
    for k, v in changes.items():
        setattr(eq, k, v)
    db.commit()
    db.refresh(eq)
    audit.log_action(db, admin.id, "equipment_updated", "equipment", eq.id, details={"fields": sorted(changes)})
    return eq


@router.delete("/{equipment_id}", status_code=204)
def delete_equipment(
    equipment_id: UUID,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    eq = db.get(models.Equipment, equipment_id)
    if not eq or eq.status == "deleted":
        raise HTTPException(status_code=404, detail="Equipment not found")
    # bookings keep pointing at the row, so it is only flagged
    eq.status = "deleted"
    db.commit()
    audit.log_action(db, admin.id, "equipment_deleted", "equipment", eq.id)
