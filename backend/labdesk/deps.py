"""FastAPI dependencies that hand routes the services built by ``create_app``."""

from fastapi import Request

from .config import Settings
from .database import Store
from .services.alerts import AlertService
from .services.booking import BookingService
from .services.inventory import InventoryCatalog
from .services.stock_ledger import StockLedger


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.bookings


def get_stock_ledger(request: Request) -> StockLedger:
    return request.app.state.ledger


def get_inventory_catalog(request: Request) -> InventoryCatalog:
    return request.app.state.catalog


def get_alert_service(request: Request) -> AlertService:
    return request.app.state.alerts
