"""Catalogue operations for LAB and NGS inventory items."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import audit, models
from ..database import Store
from ..errors import NotFoundError, ValidationError
from .stock_ledger import INITIAL_STOCK, StockLedger, resolve_item_model

logger = logging.getLogger(__name__)

# stock only moves through the ledger
READ_ONLY_FIELDS = frozenset({"id", "stock", "lock_version", "created_by", "created_at", "updated_at"})


def _writable_columns(model: type[models.StockedItemMixin]) -> set[str]:
    return {column.key for column in sa.inspect(model).columns} - READ_ONLY_FIELDS


def reorder_required_clause(model: type[models.StockedItemMixin]):
    return sa.and_(model.reorder_point.isnot(None), model.stock <= model.reorder_point)


class InventoryCatalog:
    def __init__(
        self,
        store: Store,
        ledger: StockLedger,
        *,
        clock: Callable[[], datetime] | None = None,
        expiring_within_days: int = 30,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.expiring_within_days = expiring_within_days

    def create_item(
        self,
        kind: str,
        fields: dict[str, Any],
        *,
        opening_stock: int = 0,
        actor_id: UUID | None,
    ) -> models.StockedItemMixin:
        """Insert an item at zero stock, then book its opening stock through the ledger."""

        model = resolve_item_model(kind)
        if opening_stock < 0:
            raise ValidationError("opening stock must not be negative")
        unknown = set(fields) - _writable_columns(model)
        if unknown:
            raise ValidationError(f"unknown fields for {model.ITEM_KIND} item: {', '.join(sorted(unknown))}")
        if not fields.get("item_name"):
            raise ValidationError("item_name is required")

        def _create(db: Session) -> models.StockedItemMixin:
            now = self.clock()
            item = model(**fields, stock=0, created_by=actor_id, created_at=now, updated_at=now)
            db.add(item)
            db.flush()
            if opening_stock > 0:
                self.ledger.receive(
                    db,
                    model.ITEM_KIND,
                    item.id,
                    opening_stock,
                    actor_id=actor_id,
                    reference_type=INITIAL_STOCK,
                    remarks="Initial stock",
                )
                db.refresh(item)
            return item

        item = self.store.run(_create)
        logger.info("created %s item %s with stock %s", model.ITEM_KIND, item.id, item.stock)
        audit.record_activity(
            self.store,
            actor_id,
            "item_created",
            "inventory_item",
            item.id,
            details={"inventory_type": model.ITEM_KIND, "item_name": item.item_name, "stock": item.stock},
        )
        return item

    def list_items(
        self,
        kind: str,
        *,
        category: str | None = None,
        location: str | None = None,
        reorder_status: str | None = None,
        search: str | None = None,
    ) -> list[models.StockedItemMixin]:
        model = resolve_item_model(kind)
        with self.store.session() as db:
            query = db.query(model)
            if category:
                if not hasattr(model, "category"):
                    raise ValidationError(f"{model.ITEM_KIND} items have no category")
                query = query.filter(model.category == category)
            if location:
                query = query.filter(model.location == location)
            if reorder_status:
                status = reorder_status.upper()
                if status == "REORDER_REQUIRED":
                    query = query.filter(reorder_required_clause(model))
                elif status == "OK":
                    query = query.filter(sa.not_(reorder_required_clause(model)))
                else:
                    raise ValidationError(f"unknown reorder status {reorder_status!r}")
            if search:
                pattern = f"%{search}%"
                searchable = [model.item_name, model.notes, model.manufacturer, model.lot_number]
                query = query.filter(sa.or_(*(column.ilike(pattern) for column in searchable)))
            return query.order_by(model.item_name).all()

    def get_item(self, kind: str, item_id: UUID) -> models.StockedItemMixin:
        model = resolve_item_model(kind)
        with self.store.session() as db:
            item = db.get(model, item_id)
            if item is None:
                raise NotFoundError("Item not found")
            return item

    def update_item(
        self,
        kind: str,
        item_id: UUID,
        changes: dict[str, Any],
        *,
        actor_id: UUID | None,
    ) -> models.StockedItemMixin:
        """Change descriptive fields; stock and bookkeeping columns are refused."""

        model = resolve_item_model(kind)
        blocked = set(changes) & READ_ONLY_FIELDS
        if blocked:
            raise ValidationError(f"fields cannot be updated directly: {', '.join(sorted(blocked))}")
        unknown = set(changes) - _writable_columns(model)
        if unknown:
            raise ValidationError(f"unknown fields for {model.ITEM_KIND} item: {', '.join(sorted(unknown))}")
        if "item_name" in changes and not changes["item_name"]:
            raise ValidationError("item_name is required")

        def _update(db: Session) -> models.StockedItemMixin:
            item = db.get(model, item_id)
            if item is None:
                raise NotFoundError("Item not found")
            for key, value in changes.items():
                setattr(item, key, value)
            item.updated_at = self.clock()
            db.flush()
            return item

        item = self.store.run(_update)
        audit.record_activity(
            self.store,
            actor_id,
            "item_updated",
            "inventory_item",
            item.id,
            details={"inventory_type": model.ITEM_KIND, "fields": sorted(changes)},
        )
        return item

    def item_stats(self, kind: str, *, today: date | None = None) -> dict[str, int]:
        model = resolve_item_model(kind)
        today = today or self.clock().date()
        horizon = today + timedelta(days=self.expiring_within_days)
        with self.store.session() as db:
            total = db.query(sa.func.count(model.id)).scalar()
            reorder_needed = db.query(sa.func.count(model.id)).filter(reorder_required_clause(model)).scalar()
            expiring_soon = (
                db.query(sa.func.count(model.id))
                .filter(model.expiration_date.isnot(None))
                .filter(model.expiration_date >= today)
                .filter(model.expiration_date <= horizon)
                .scalar()
            )
        return {
            "total_items": total or 0,
            "reorder_needed": reorder_needed or 0,
            "expiring_soon": expiring_soon or 0,
        }
