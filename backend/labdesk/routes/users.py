from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas, auth, audit

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=schemas.UserOut)
async def read_profile(current_user: models.User = Depends(auth.get_current_user)):
    return current_user


@router.put("/me", response_model=schemas.UserOut)
async def update_profile(
    update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    if update.full_name is not None:
        current_user.full_name = update.full_name
    if update.department is not None:
        current_user.department = update.department
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/", response_model=list[schemas.UserOut])
async def list_users(
    db: Session = Depends(get_db),
    admin: models.User = Depends(auth.require_admin),
):
    return db.query(models.User).order_by(models.User.created_at).all()


@router.put("/{user_id}/status", response_model=schemas.UserOut)
async def set_user_status(
    user_id: UUID,
    update: schemas.UserStatusUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(auth.require_admin),
):
    """Deactivate or reactivate an account; inactive users are refused at login and on every token."""
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == admin.id and not update.is_active:
        raise HTTPException(status_code=400, detail="Admins cannot deactivate their own account")
    user.is_active = update.is_active
    db.commit()
    db.refresh(user)
    audit.log_action(
        db,
        admin.id,
        "user_activated" if user.is_active else "user_deactivated",
        "user",
        user.id,
        details={"email": user.email},
    )
    return user
