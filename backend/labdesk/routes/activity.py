from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_admin
from .. import models, schemas

router = APIRouter(prefix="/api/activity", tags=["activity"])


@router.get("/mine", response_model=list[schemas.ActivityLogOut])
def my_activity(
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return (
        db.query(models.ActivityLog)
        .filter(models.ActivityLog.user_id == user.id)
        .order_by(models.ActivityLog.created_at.desc())
        .offset(offset)
        .limit(min(limit, 200))
        .all()
    )


@router.get("/", response_model=list[schemas.ActivityLogOut])
def list_activity(
    action: Optional[str] = None,
    user_id: Optional[UUID] = None,
    target_type: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    query = db.query(models.ActivityLog)
    if action:
        query = query.filter(models.ActivityLog.action == action)
    if user_id:
        query = query.filter(models.ActivityLog.user_id == user_id)
    if target_type:
        query = query.filter(models.ActivityLog.target_type == target_type)
    return (
        query.order_by(models.ActivityLog.created_at.desc())
        .offset(offset)
        .limit(min(limit, 500))
        .all()
    )
