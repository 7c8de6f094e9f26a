from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from ..auth import get_current_user, require_admin
from ..deps import get_alert_service, get_inventory_catalog, get_stock_ledger
from ..errors import LabDeskError
from ..services.alerts import AlertService
from ..services.inventory import InventoryCatalog
from ..services.stock_ledger import StockLedger
from .. import models, schemas
from . import http_error

# purpose: expose the LAB/NGS catalogue, the stock ledger and inventory alerts over HTTP
# status: active
# depends_on: labdesk.services.inventory, labdesk.services.stock_ledger, labdesk.services.alerts

router = APIRouter(prefix="/api/inventory", tags=["inventory"])

_OUT_SCHEMAS = {"LAB": schemas.LabItemOut, "NGS": schemas.NgsItemOut}


def _kind(kind: str) -> str:
    resolved = kind.upper()
    if resolved not in _OUT_SCHEMAS:
        raise HTTPException(status_code=404, detail=f"Unknown inventory type {kind}")
    return resolved


def _item_out(kind: str, item) -> schemas.ItemOut:
    return _OUT_SCHEMAS[kind].model_validate(item)


@router.post("/lab/items", response_model=schemas.LabItemOut)
def create_lab_item(
    payload: schemas.LabItemCreate,
    catalog: InventoryCatalog = Depends(get_inventory_catalog),
    admin: models.User = Depends(require_admin),
):
    fields = payload.model_dump(exclude={"quantity"}, exclude_none=True)
    try:
        item = catalog.create_item("LAB", fields, opening_stock=payload.quantity, actor_id=admin.id)
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return _item_out("LAB", item)


@router.post("/ngs/items", response_model=schemas.NgsItemOut)
def create_ngs_item(
    payload: schemas.NgsItemCreate,
    catalog: InventoryCatalog = Depends(get_inventory_catalog),
    admin: models.User = Depends(require_admin),
):
    fields = payload.model_dump(exclude={"quantity"}, exclude_none=True)
    try:
        item = catalog.create_item("NGS", fields, opening_stock=payload.quantity, actor_id=admin.id)
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return _item_out("NGS", item)


@router.put("/lab/items/{item_id}", response_model=schemas.LabItemOut)
def update_lab_item(
    item_id: UUID,
    payload: schemas.LabItemUpdate,
    catalog: InventoryCatalog = Depends(get_inventory_catalog),
    admin: models.User = Depends(require_admin),
):
    try:
        item = catalog.update_item("LAB", item_id, payload.model_dump(exclude_unset=True), actor_id=admin.id)
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return _item_out("LAB", item)


@router.put("/ngs/items/{item_id}", response_model=schemas.NgsItemOut)
def update_ngs_item(
    item_id: UUID,
    payload: schemas.NgsItemUpdate,
    catalog: InventoryCatalog = Depends(get_inventory_catalog),
    admin: models.User = Depends(require_admin),
):
    try:
        item = catalog.update_item("NGS", item_id, payload.model_dump(exclude_unset=True), actor_id=admin.id)
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return _item_out("NGS", item)


@router.get("/transactions", response_model=list[schemas.InventoryTransactionOut])
def list_transactions(
    inventory_type: Optional[str] = None,
    item_id: Optional[UUID] = None,
    limit: int = 50,
    offset: int = 0,
    ledger: StockLedger = Depends(get_stock_ledger),
    admin: models.User = Depends(require_admin),
):
    try:
        return ledger.list_transactions(inventory_type, item_id, limit=min(limit, 500), offset=offset)
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.get("/alerts", response_model=list[schemas.InventoryAlertOut])
def list_alerts(
    alerts: AlertService = Depends(get_alert_service),
    admin: models.User = Depends(require_admin),
):
    return alerts.list_open_alerts()


@router.post("/alerts/generate", response_model=list[schemas.InventoryAlertOut])
def generate_alerts(
    alerts: AlertService = Depends(get_alert_service),
    admin: models.User = Depends(require_admin),
):
    return alerts.generate_alerts()


@router.put("/alerts/{alert_id}/resolve", response_model=schemas.InventoryAlertOut)
def resolve_alert(
    alert_id: UUID,
    alerts: AlertService = Depends(get_alert_service),
    admin: models.User = Depends(require_admin),
):
    try:
        return alerts.resolve_alert(alert_id, actor_id=admin.id)
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.get("/{kind}/items", response_model=list[schemas.ItemOut])
def list_items(
    kind: str,
    category: Optional[str] = None,
    location: Optional[str] = None,
    reorder_status: Optional[str] = None,
    search: Optional[str] = None,
    catalog: InventoryCatalog = Depends(get_inventory_catalog),
    user: models.User = Depends(get_current_user),
):
    kind = _kind(kind)
    try:
        items = catalog.list_items(
            kind,
            category=category,
            location=location,
            reorder_status=reorder_status,
            search=search,
        )
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return [_item_out(kind, item) for item in items]


@router.get("/{kind}/stats", response_model=schemas.InventoryStats)
def item_stats(
    kind: str,
    catalog: InventoryCatalog = Depends(get_inventory_catalog),
    user: models.User = Depends(get_current_user),
):
    return catalog.item_stats(_kind(kind))


@router.get("/{kind}/items/{item_id}", response_model=schemas.ItemOut)
def get_item(
    kind: str,
    item_id: UUID,
    catalog: InventoryCatalog = Depends(get_inventory_catalog),
    user: models.User = Depends(get_current_user),
):
    kind = _kind(kind)
    try:
        item = catalog.get_item(kind, item_id)
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return _item_out(kind, item)


@router.post("/{kind}/items/{item_id}/consume", response_model=schemas.StockLevelOut)
def consume_stock(
    kind: str,
    item_id: UUID,
    payload: schemas.StockConsume,
    ledger: StockLedger = Depends(get_stock_ledger),
    admin: models.User = Depends(require_admin),
):
    try:
        remaining = ledger.consume(
            _kind(kind),
            item_id,
            payload.quantity,
            actor_id=admin.id,
            reason=payload.reason,
            reference_type=payload.reference_type,
            reference_id=payload.reference_id,
        )
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return schemas.StockLevelOut(item_id=item_id, stock=remaining)


@router.post("/{kind}/items/{item_id}/adjust", response_model=schemas.StockAdjustmentOut)
def adjust_stock(
    kind: str,
    item_id: UUID,
    payload: schemas.StockAdjust,
    ledger: StockLedger = Depends(get_stock_ledger),
    admin: models.User = Depends(require_admin),
):
    try:
        return ledger.adjust(_kind(kind), item_id, payload.new_quantity, actor_id=admin.id, reason=payload.reason)
    except LabDeskError as exc:
        raise http_error(exc) from exc


@router.post("/{kind}/items/{item_id}/restock", response_model=schemas.StockLevelOut)
def restock(
    kind: str,
    item_id: UUID,
    payload: schemas.StockRestock,
    ledger: StockLedger = Depends(get_stock_ledger),
    admin: models.User = Depends(require_admin),
):
    try:
        balance = ledger.restock(_kind(kind), item_id, payload.quantity, actor_id=admin.id, reason=payload.reason)
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return schemas.StockLevelOut(item_id=item_id, stock=balance)


@router.get("/{kind}/items/{item_id}/reconcile", response_model=schemas.LedgerReconciliationOut)
def reconcile(
    kind: str,
    item_id: UUID,
    ledger: StockLedger = Depends(get_stock_ledger),
    admin: models.User = Depends(require_admin),
):
    try:
        result = ledger.reconcile(_kind(kind), item_id)
    except LabDeskError as exc:
        raise http_error(exc) from exc
    return schemas.LedgerReconciliationOut.model_validate(result)
