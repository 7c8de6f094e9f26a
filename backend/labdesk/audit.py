import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .database import Store

logger = logging.getLogger(__name__)


def _as_uuid(value: str | UUID | None) -> UUID | None:
    if value is None:
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def log_action(
    db: Session,
    user_id: str | UUID | None,
    action: str,
    target_type: str | None = None,
    target_id: str | UUID | None = None,
    details: dict | None = None,
    description: str | None = None,
):
    log = models.ActivityLog(
        user_id=_as_uuid(user_id),
        action=action,
        target_type=target_type,
        target_id=_as_uuid(target_id),
        description=description,
        details=details or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def record_activity(
    store: Store,
    user_id: str | UUID | None,
    action: str,
    target_type: str | None = None,
    target_id: str | UUID | None = None,
    details: dict | None = None,
    description: str | None = None,
) -> models.ActivityLog | None:
    """Append a logbook entry in its own session after the caller has committed.

    Failures are logged and swallowed so a lost logbook line never undoes the
    operation it describes.
    """

    db = store.session()
    try:
        return log_action(db, user_id, action, target_type, target_id, details, description)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to record %s activity for %s %s", action, target_type, target_id)
        return None
    finally:
        db.close()
