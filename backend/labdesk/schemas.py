from datetime import date, datetime, time
from typing import Annotated, Optional, Any, Dict, Literal, List, Union
from pydantic import BaseModel, EmailStr, ConfigDict, Field, model_validator
from uuid import UUID


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: Optional[str] = None
    department: Optional[str] = None


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    department: Optional[str] = None
    is_admin: bool = False
    is_active: bool = True
    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    department: Optional[str] = None


class UserStatusUpdate(BaseModel):
    is_active: bool


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class EquipmentCreate(BaseModel):
    name: str
    eq_type: str
    description: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None


class EquipmentUpdate(BaseModel):
    name: Optional[str] = None
    eq_type: Optional[str] = None
    description: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None
    status: Optional[Literal["available", "in_use", "maintenance", "deleted"]] = None


class EquipmentOut(BaseModel):
    id: UUID
    name: str
    eq_type: str
    description: Optional[str] = None
    model_number: Optional[str] = None
    serial_number: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class BookingCreate(BaseModel):
    equipment_id: UUID
    booking_date: date
    start_time: time
    end_time: time
    purpose: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _check_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BookingReview(BaseModel):
    remarks: Optional[str] = None


class BookingOut(BaseModel):
    id: UUID
    equipment_id: UUID
    user_id: UUID
    booking_date: date
    start_time: time
    end_time: time
    purpose: Optional[str] = None
    status: str
    remarks: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class UsageStart(BaseModel):
    booking_id: UUID


class UsageEnd(BaseModel):
    notes: Optional[str] = None


class UsageSessionOut(BaseModel):
    id: UUID
    booking_id: UUID
    user_id: UUID
    equipment_id: UUID
    started_at: datetime
    ended_at: Optional[datetime] = None
    notes: Optional[str] = None
    duration_minutes: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class _InventoryFields(BaseModel):
    unit: Optional[str] = None
    location: Optional[str] = None
    reorder_point: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    manufacturer: Optional[str] = None
    lot_number: Optional[str] = None
    expiration_date: Optional[date] = None


class LabItemCreate(_InventoryFields):
    item_name: str
    quantity: int = Field(default=0, ge=0)
    category: Optional[str] = None
    tentative_order_quantity: Optional[int] = Field(default=None, ge=0)
    supplier: Optional[str] = None
    distributor_details: Optional[str] = None
    contact_number: Optional[str] = None


class LabItemUpdate(_InventoryFields):
    model_config = ConfigDict(extra="forbid")

    item_name: Optional[str] = None
    category: Optional[str] = None
    tentative_order_quantity: Optional[int] = Field(default=None, ge=0)
    supplier: Optional[str] = None
    distributor_details: Optional[str] = None
    contact_number: Optional[str] = None


class NgsItemCreate(_InventoryFields):
    item_name: str
    quantity: int = Field(default=0, ge=0)
    catalog_number: Optional[str] = None


class NgsItemUpdate(_InventoryFields):
    model_config = ConfigDict(extra="forbid")

    item_name: Optional[str] = None
    catalog_number: Optional[str] = None


class InventoryItemOut(BaseModel):
    id: UUID
    item_name: str
    stock: int
    unit: Optional[str] = None
    location: Optional[str] = None
    reorder_point: Optional[int] = None
    reorder_status: str
    notes: Optional[str] = None
    manufacturer: Optional[str] = None
    lot_number: Optional[str] = None
    expiration_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class LabItemOut(InventoryItemOut):
    inventory_type: Literal["LAB"] = "LAB"
    category: Optional[str] = None
    tentative_order_quantity: Optional[int] = None
    supplier: Optional[str] = None
    distributor_details: Optional[str] = None
    contact_number: Optional[str] = None


class NgsItemOut(InventoryItemOut):
    inventory_type: Literal["NGS"] = "NGS"
    catalog_number: Optional[str] = None


ItemOut = Annotated[Union[LabItemOut, NgsItemOut], Field(discriminator="inventory_type")]


class InventoryStats(BaseModel):
    total_items: int
    reorder_needed: int
    expiring_soon: int


class StockConsume(BaseModel):
    quantity: int = Field(gt=0)
    reason: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None


class StockAdjust(BaseModel):
    new_quantity: int = Field(ge=0)
    reason: Optional[str] = None


class StockRestock(BaseModel):
    quantity: int = Field(gt=0)
    reason: Optional[str] = None


class StockLevelOut(BaseModel):
    item_id: UUID
    stock: int


class StockAdjustmentOut(BaseModel):
    item_id: UUID
    old_quantity: int
    new_quantity: int
    delta: int
    model_config = ConfigDict(from_attributes=True)


class LedgerReconciliationOut(BaseModel):
    item_id: UUID
    stock: int
    ledger_total: int
    transaction_count: int
    consistent: bool
    model_config = ConfigDict(from_attributes=True)


class InventoryTransactionOut(BaseModel):
    id: UUID
    inventory_type: str
    item_id: UUID
    sequence: int
    transaction_type: str
    quantity: int
    direction: str
    balance_after: int
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    performed_by: Optional[UUID] = None
    remarks: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class InventoryAlertOut(BaseModel):
    id: UUID
    inventory_type: str
    item_id: UUID
    item_name: str
    alert_type: str
    alert_message: str
    severity: str
    is_resolved: bool
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class NotificationOut(BaseModel):
    id: UUID
    title: str
    message: str
    category: Optional[str] = None
    booking_id: Optional[UUID] = None
    is_read: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ActivityLogOut(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[UUID] = None
    description: Optional[str] = None
    details: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ConflictReport(BaseModel):
    overlapping: List[List[UUID]]
