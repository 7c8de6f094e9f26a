"""Transactional stock changes backed by an append-only transaction ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import audit, models
from ..database import Store
from ..errors import InsufficientStockError, InvalidTransitionError, NotFoundError, ValidationError

# purpose: keep item stock and its ledger in lockstep under concurrent consume/adjust calls
# status: active
# depends_on: labdesk.models.InventoryTransaction, labdesk.models.ITEM_MODELS

logger = logging.getLogger(__name__)

INITIAL_STOCK = "INITIAL_STOCK"
RESTOCK = "RESTOCK"


@dataclass(frozen=True)
class StockAdjustment:
    item_id: UUID
    old_quantity: int
    new_quantity: int
    delta: int


@dataclass(frozen=True)
class LedgerReconciliation:
    item_id: UUID
    stock: int
    ledger_total: int
    transaction_count: int

    @property
    def consistent(self) -> bool:
        return self.stock == self.ledger_total


def resolve_item_model(kind: str) -> type[models.StockedItemMixin]:
    model = models.ITEM_MODELS.get((kind or "").upper())
    if model is None:
        raise ValidationError(f"unknown inventory type {kind!r}")
    return model


def _lock_item(db: Session, model: type[models.StockedItemMixin], item_id: UUID) -> int:
    """Write-lock the item row and return its current stock."""

    result = db.execute(
        sa.update(model)
        .where(model.id == item_id)
        .values(lock_version=model.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise NotFoundError("Item not found")
    return db.execute(
        sa.select(model.stock).where(model.id == item_id).with_for_update()
    ).scalar_one()


def _next_sequence(db: Session, kind: str, item_id: UUID) -> int:
    current = db.execute(
        sa.select(sa.func.max(models.InventoryTransaction.sequence)).where(
            models.InventoryTransaction.inventory_type == kind,
            models.InventoryTransaction.item_id == item_id,
        )
    ).scalar_one()
    return (current or 0) + 1


class StockLedger:
    """Apply stock mutations and append one ledger row per mutation."""

    def __init__(self, store: Store, *, clock: Callable[[], datetime] | None = None) -> None:
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # in-transaction primitives ------------------------------------------------

    def append(
        self,
        db: Session,
        kind: str,
        item_id: UUID,
        *,
        transaction_type: str,
        delta: int,
        balance_after: int,
        actor_id: UUID | None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        remarks: str | None = None,
    ) -> models.InventoryTransaction:
        if transaction_type not in models.TRANSACTION_TYPES:
            raise ValidationError(f"unknown transaction type {transaction_type!r}")
        entry = models.InventoryTransaction(
            inventory_type=kind,
            item_id=item_id,
            sequence=_next_sequence(db, kind, item_id),
            transaction_type=transaction_type,
            quantity=abs(delta),
            direction="increase" if delta >= 0 else "decrease",
            balance_after=balance_after,
            reference_type=reference_type,
            reference_id=reference_id,
            performed_by=actor_id,
            remarks=remarks,
            created_at=self.clock(),
        )
        db.add(entry)
        return entry

    def receive(
        self,
        db: Session,
        kind: str,
        item_id: UUID,
        quantity: int,
        *,
        actor_id: UUID | None,
        reference_type: str,
        remarks: str | None = None,
    ) -> int:
        """Add ``quantity`` to stock inside the caller's transaction and log an IN row."""

        if quantity <= 0:
            raise ValidationError("quantity must be positive")
        kind = kind.upper()
        model = resolve_item_model(kind)
        stock = _lock_item(db, model, item_id)
        balance = stock + quantity
        db.execute(
            sa.update(model)
            .where(model.id == item_id)
            .values(stock=balance, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        self.append(
            db,
            kind,
            item_id,
            transaction_type="IN",
            delta=quantity,
            balance_after=balance,
            actor_id=actor_id,
            reference_type=reference_type,
            remarks=remarks,
        )
        db.flush()
        return balance

    # operations -----------------------------------------------------------------

    def consume(
        self,
        kind: str,
        item_id: UUID,
        quantity: int,
        *,
        actor_id: UUID | None,
        reason: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> int:
        """Decrement stock by ``quantity`` and return what remains.

        Fails with ``InsufficientStockError`` and leaves stock untouched when
        the item holds less than ``quantity``.
        """

        if quantity <= 0:
            raise ValidationError("quantity must be positive")
        kind = kind.upper()
        model = resolve_item_model(kind)

        def _consume(db: Session) -> int:
            stock = _lock_item(db, model, item_id)
            if stock < quantity:
                raise InsufficientStockError(stock, quantity)
            remaining = stock - quantity
            db.execute(
                sa.update(model)
                .where(model.id == item_id)
                .values(stock=remaining, updated_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            self.append(
                db,
                kind,
                item_id,
                transaction_type="OUT",
                delta=-quantity,
                balance_after=remaining,
                actor_id=actor_id,
                reference_type=reference_type,
                reference_id=reference_id,
                remarks=reason,
            )
            db.flush()
            return remaining

        try:
            remaining = self.store.run(_consume)
        except InsufficientStockError as exc:
            logger.warning(
                "rejected consume of %s from %s item %s; %s available",
                quantity,
                kind,
                item_id,
                exc.available,
            )
            raise
        logger.info("consumed %s from %s item %s, %s left", quantity, kind, item_id, remaining)
        audit.record_activity(
            self.store,
            actor_id,
            "stock_consumed",
            "inventory_item",
            item_id,
            details={
                "inventory_type": kind,
                "quantity": quantity,
                "remaining": remaining,
                "reason": reason,
            },
        )
        return remaining

    def adjust(
        self,
        kind: str,
        item_id: UUID,
        new_quantity: int,
        *,
        actor_id: UUID | None,
        reason: str | None = None,
    ) -> StockAdjustment:
        """Set stock to an absolute count, recording the difference as an ADJUSTMENT."""

        if new_quantity < 0:
            raise ValidationError("quantity must not be negative")
        kind = kind.upper()
        model = resolve_item_model(kind)

        def _adjust(db: Session) -> StockAdjustment:
            old_quantity = _lock_item(db, model, item_id)
            delta = new_quantity - old_quantity
            db.execute(
                sa.update(model)
                .where(model.id == item_id)
                .values(stock=new_quantity, updated_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            self.append(
                db,
                kind,
                item_id,
                transaction_type="ADJUSTMENT",
                delta=delta,
                balance_after=new_quantity,
                actor_id=actor_id,
                remarks=reason,
            )
            db.flush()
            return StockAdjustment(item_id, old_quantity, new_quantity, delta)

        adjustment = self.store.run(_adjust)
        logger.info(
            "adjusted %s item %s from %s to %s",
            kind,
            item_id,
            adjustment.old_quantity,
            adjustment.new_quantity,
        )
        audit.record_activity(
            self.store,
            actor_id,
            "stock_adjusted",
            "inventory_item",
            item_id,
            details={
                "inventory_type": kind,
                "old_quantity": adjustment.old_quantity,
                "new_quantity": adjustment.new_quantity,
                "reason": reason,
            },
        )
        return adjustment

    def initial_stock(self, kind: str, item_id: UUID, quantity: int, *, actor_id: UUID | None) -> int:
        """Record opening stock for an item that has no ledger history yet."""

        def _initial(db: Session) -> int:
            self.ensure_no_history(db, kind.upper(), item_id)
            return self.receive(
                db,
                kind,
                item_id,
                quantity,
                actor_id=actor_id,
                reference_type=INITIAL_STOCK,
                remarks="Initial stock",
            )

        return self.store.run(_initial)

    def restock(
        self,
        kind: str,
        item_id: UUID,
        quantity: int,
        *,
        actor_id: UUID | None,
        reason: str | None = None,
    ) -> int:
        def _restock(db: Session) -> int:
            return self.receive(
                db,
                kind,
                item_id,
                quantity,
                actor_id=actor_id,
                reference_type=RESTOCK,
                remarks=reason,
            )

        balance = self.store.run(_restock)
        logger.info("restocked %s item %s by %s, now %s", kind.upper(), item_id, quantity, balance)
        return balance

    def ensure_no_history(self, db: Session, kind: str, item_id: UUID) -> None:
        exists = db.execute(
            sa.select(models.InventoryTransaction.id)
            .where(models.InventoryTransaction.inventory_type == kind)
            .where(models.InventoryTransaction.item_id == item_id)
            .limit(1)
        ).first()
        if exists is not None:
            raise InvalidTransitionError("item already has stock history")

    # reads ---------------------------------------------------------------------

    def reconcile(self, kind: str, item_id: UUID) -> LedgerReconciliation:
        """Compare the stored stock count with the sum of signed ledger deltas."""

        kind = kind.upper()
        model = resolve_item_model(kind)
        signed = sa.case(
            (models.InventoryTransaction.direction == "increase", models.InventoryTransaction.quantity),
            else_=-models.InventoryTransaction.quantity,
        )
        with self.store.session() as db:
            stock = db.execute(sa.select(model.stock).where(model.id == item_id)).scalar_one_or_none()
            if stock is None:
                raise NotFoundError("Item not found")
            total, count = db.execute(
                sa.select(sa.func.coalesce(sa.func.sum(signed), 0), sa.func.count())
                .where(models.InventoryTransaction.inventory_type == kind)
                .where(models.InventoryTransaction.item_id == item_id)
            ).one()
        result = LedgerReconciliation(item_id, stock, int(total), int(count))
        if not result.consistent:
            logger.error(
                "ledger drift on %s item %s: stock %s, ledger %s", kind, item_id, stock, result.ledger_total
            )
        return result

    def list_transactions(
        self,
        kind: str | None = None,
        item_id: UUID | None = None,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[models.InventoryTransaction]:
        with self.store.session() as db:
            query = db.query(models.InventoryTransaction)
            if kind:
                query = query.filter(models.InventoryTransaction.inventory_type == resolve_item_model(kind).ITEM_KIND)
            if item_id is not None:
                query = query.filter(models.InventoryTransaction.item_id == item_id)
            return (
                query.order_by(
                    models.InventoryTransaction.created_at.desc(),
                    models.InventoryTransaction.sequence.desc(),
                )
                .offset(offset)
                .limit(limit)
                .all()
            )
