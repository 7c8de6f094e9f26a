import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Time,
    Text,
    CheckConstraint,
    UniqueConstraint,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Session, declared_attr

from .database import Base
from .errors import InvalidTransitionError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


BOOKING_STATUSES = ("pending", "approved", "rejected", "cancelled", "completed")
EQUIPMENT_STATUSES = ("available", "in_use", "maintenance", "deleted")
TRANSACTION_TYPES = ("IN", "OUT", "ADJUSTMENT")


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String)
    department = Column(String)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class Equipment(Base):
    __tablename__ = "equipment"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    eq_type = Column(String, nullable=False)
    description = Column(Text)
    model_number = Column(String)
    serial_number = Column(String)
    status = Column(String, default="available", nullable=False)
    # bumped under a write lock by every booking state change for this equipment
    lock_version = Column(Integer, default=0, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_bookings_time_range"),
        sa.Index("ix_bookings_slot", "equipment_id", "booking_date", "status"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    equipment_id = Column(UUID(as_uuid=True), ForeignKey("equipment.id"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    purpose = Column(Text)
    status = Column(String, default="pending", nullable=False)
    remarks = Column(Text)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    reviewed_at = Column(DateTime)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class UsageSession(Base):
    __tablename__ = "equipment_usage_sessions"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    equipment_id = Column(UUID(as_uuid=True), ForeignKey("equipment.id"), nullable=False)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime)
    notes = Column(Text)

    @property
    def duration_minutes(self) -> int | None:
        if self.ended_at is None:
            return None
        # sqlite hands back naive values; both sides are UTC
        elapsed = self.ended_at.replace(tzinfo=None) - self.started_at.replace(tzinfo=None)
        return int(elapsed.total_seconds() // 60)


class StockedItemMixin:
    """Columns shared by every inventory variant that carries a stock count."""

    # purpose: keep the stock/reorder shape identical across LAB and NGS items
    # status: active
    ITEM_KIND = ""

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    item_name = Column(String, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    unit = Column(String)
    location = Column(String)
    reorder_point = Column(Integer)
    notes = Column(Text)
    lock_version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    @declared_attr
    def created_by(cls):
        return Column(UUID(as_uuid=True), ForeignKey("users.id"))

    @declared_attr
    def __table_args__(cls):
        return (CheckConstraint("stock >= 0", name=f"ck_{cls.__tablename__}_stock_non_negative"),)

    @property
    def inventory_type(self) -> str:
        return self.ITEM_KIND

    @property
    def reorder_status(self) -> str:
        if self.reorder_point is not None and (self.stock or 0) <= self.reorder_point:
            return "REORDER_REQUIRED"
        return "OK"


class LabInventoryItem(StockedItemMixin, Base):
    __tablename__ = "lab_inventory"
    ITEM_KIND = "LAB"

    category = Column(String)
    manufacturer = Column(String)
    lot_number = Column(String)
    expiration_date = Column(Date)
    tentative_order_quantity = Column(Integer)
    supplier = Column(String)
    distributor_details = Column(Text)
    contact_number = Column(String)


class NgsInventoryItem(StockedItemMixin, Base):
    __tablename__ = "ngs_inventory"
    ITEM_KIND = "NGS"

    manufacturer = Column(String)
    catalog_number = Column(String)
    lot_number = Column(String)
    expiration_date = Column(Date)


ITEM_MODELS: dict[str, type[StockedItemMixin]] = {
    LabInventoryItem.ITEM_KIND: LabInventoryItem,
    NgsInventoryItem.ITEM_KIND: NgsInventoryItem,
}


class InventoryTransaction(Base):
    """One immutable ledger row; ``quantity`` is always a magnitude."""

    __tablename__ = "inventory_transactions"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_transactions_quantity"),
        UniqueConstraint("inventory_type", "item_id", "sequence", name="uq_inventory_transactions_sequence"),
        sa.Index("ix_inventory_transactions_item", "inventory_type", "item_id"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    inventory_type = Column(String, nullable=False)
    item_id = Column(UUID(as_uuid=True), nullable=False)
    sequence = Column(Integer, nullable=False)
    transaction_type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    direction = Column(String, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reference_type = Column(String)
    reference_id = Column(String)
    performed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    remarks = Column(Text)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.direction == "increase" else -self.quantity


@event.listens_for(Session, "before_flush")
def _reject_ledger_rewrites(session, flush_context, instances):
    for obj in session.deleted:
        if isinstance(obj, InventoryTransaction):
            raise InvalidTransitionError("inventory transactions are append-only")
    for obj in session.dirty:
        if isinstance(obj, InventoryTransaction) and session.is_modified(obj):
            raise InvalidTransitionError("inventory transactions are append-only")


class InventoryAlert(Base):
    __tablename__ = "inventory_alerts"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    inventory_type = Column(String, nullable=False)
    item_id = Column(UUID(as_uuid=True), nullable=False)
    item_name = Column(String, nullable=False)
    alert_type = Column(String, nullable=False)
    alert_message = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    is_resolved = Column(Boolean, default=False, nullable=False)
    resolved_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    resolved_at = Column(DateTime)
    created_at = Column(DateTime, default=_utcnow)


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    category = Column(String, default="info")  # info, approval, rejection
    booking_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id"))
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    description = Column(String)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)
