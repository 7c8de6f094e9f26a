"""Low-stock and expiry alerts for inventory items."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import audit, models
from ..database import Store
from ..errors import InvalidTransitionError, NotFoundError
from .inventory import reorder_required_clause

# purpose: raise one unresolved alert per (item, condition) and let admins resolve it
# status: active
# depends_on: labdesk.models.InventoryAlert, labdesk.models.LabInventoryItem

logger = logging.getLogger(__name__)

SEVERITY_RANK = {"CRITICAL": 0, "HIGH": 1, "MEDIUM": 2, "LOW": 3}


class AlertService:
    def __init__(
        self,
        store: Store,
        *,
        critical_days: int = 30,
        warning_days: int = 90,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.critical_days = critical_days
        self.warning_days = warning_days
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def expiry_alert(self, expiration_date: date, today: date) -> tuple[str, str, str] | None:
        """Return (alert_type, severity, message) for an expiry date, or None when it is far off."""

        days_left = (expiration_date - today).days
        if days_left < 0:
            return "EXPIRED", "CRITICAL", f"Expired on {expiration_date.isoformat()}"
        if days_left <= self.critical_days:
            return "EXPIRY_CRITICAL", "CRITICAL", f"Expires in {days_left} days"
        if days_left <= self.warning_days:
            return "EXPIRY_WARNING", "MEDIUM", f"Expires in {days_left} days"
        return None

    def generate_alerts(self, *, today: date | None = None) -> list[models.InventoryAlert]:
        today = today or self.clock().date()

        def _generate(db: Session) -> list[models.InventoryAlert]:
            open_keys = {
                (row.inventory_type, row.item_id, row.alert_type)
                for row in db.query(
                    models.InventoryAlert.inventory_type,
                    models.InventoryAlert.item_id,
                    models.InventoryAlert.alert_type,
                ).filter(models.InventoryAlert.is_resolved.is_(False))
            }
            created: list[models.InventoryAlert] = []

            def _raise(kind, item, alert_type, severity, message):
                key = (kind, item.id, alert_type)
                if key in open_keys:
                    return
                alert = models.InventoryAlert(
                    inventory_type=kind,
                    item_id=item.id,
                    item_name=item.item_name,
                    alert_type=alert_type,
                    alert_message=message,
                    severity=severity,
                    created_at=self.clock(),
                )
                db.add(alert)
                open_keys.add(key)
                created.append(alert)

            for kind, model in models.ITEM_MODELS.items():
                for item in db.query(model).filter(reorder_required_clause(model)):
                    _raise(
                        kind,
                        item,
                        "LOW_STOCK",
                        "HIGH",
                        f"Stock {item.stock} is at or below reorder point {item.reorder_point}",
                    )

            lab = models.LabInventoryItem
            for item in db.query(lab).filter(lab.expiration_date.isnot(None)):
                found = self.expiry_alert(item.expiration_date, today)
                if found is not None:
                    _raise(lab.ITEM_KIND, item, *found)

            db.flush()
            return created

        created = self.store.run(_generate)
        if created:
            logger.info("raised %s inventory alerts", len(created))
        return created

    def list_open_alerts(self) -> list[models.InventoryAlert]:
        rank = sa.case(
            *((models.InventoryAlert.severity == severity, order) for severity, order in SEVERITY_RANK.items()),
            else_=len(SEVERITY_RANK),
        )
        with self.store.session() as db:
            return (
                db.query(models.InventoryAlert)
                .filter(models.InventoryAlert.is_resolved.is_(False))
                .order_by(rank, models.InventoryAlert.created_at.desc())
                .all()
            )

    def resolve_alert(self, alert_id: UUID, *, actor_id: UUID) -> models.InventoryAlert:
        def _resolve(db: Session) -> models.InventoryAlert:
            alert = db.get(models.InventoryAlert, alert_id)
            if alert is None:
                raise NotFoundError("Alert not found")
            if alert.is_resolved:
                raise InvalidTransitionError("Alert already resolved")
            alert.is_resolved = True
            alert.resolved_by = actor_id
            alert.resolved_at = self.clock()
            db.flush()
            return alert

        alert = self.store.run(_resolve)
        audit.record_activity(self.store, actor_id, "alert_resolved", "inventory_alert", alert.id)
        return alert
