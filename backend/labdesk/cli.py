"""Operator commands for schema setup and consistency checks."""

# purpose: give administrators offline checks for the booking and stock invariants
# status: active
# depends_on: labdesk.database.Store, labdesk.services.booking, labdesk.services.stock_ledger

from __future__ import annotations

import json
import logging

import typer

from . import models
from .config import Settings
from .database import Store
from .services.alerts import AlertService
from .services.booking import find_overlapping_bookings
from .services.stock_ledger import StockLedger

app = typer.Typer(help="LabDesk maintenance commands")

logger = logging.getLogger(__name__)


def _store(settings: Settings | None = None) -> Store:
    settings = settings or Settings.from_env()
    return Store(settings.database_url, retry_attempts=settings.lock_retry_attempts)


def promote_admin(store: Store, email: str) -> dict[str, object]:
    with store.transaction() as db:
        user = db.query(models.User).filter(models.User.email == email).first()
        if user is None:
            raise ValueError(f"No user registered with email {email}")
        user.is_admin = True
        return {"email": email, "user_id": str(user.id), "is_admin": True}


def reconcile_all(store: Store) -> dict[str, object]:
    """Compare stock with ledger totals for every item; returns the drifted ones."""

    ledger = StockLedger(store)
    checked = 0
    drifted: list[dict[str, object]] = []
    with store.session() as db:
        targets = [
            (kind, item_id)
            for kind, model in models.ITEM_MODELS.items()
            for (item_id,) in db.query(model.id).all()
        ]
    for kind, item_id in targets:
        result = ledger.reconcile(kind, item_id)
        checked += 1
        if not result.consistent:
            drifted.append(
                {
                    "inventory_type": kind,
                    "item_id": str(item_id),
                    "stock": result.stock,
                    "ledger_total": result.ledger_total,
                }
            )
    return {"checked": checked, "drifted": drifted}


def check_bookings(store: Store) -> dict[str, object]:
    with store.session() as db:
        pairs = find_overlapping_bookings(db)
        return {
            "overlapping": [
                {
                    "equipment_id": str(first.equipment_id),
                    "booking_date": first.booking_date.isoformat(),
                    "bookings": [str(first.id), str(second.id)],
                }
                for first, second in pairs
            ]
        }


@app.command("init-db")
def init_db_command() -> None:
    """Create all tables on the configured database."""

    store = _store()
    try:
        store.create_all()
        typer.echo(json.dumps({"database": store.engine.url.render_as_string(hide_password=True), "created": True}))
    finally:
        store.dispose()


@app.command("promote-admin")
def promote_admin_command(email: str = typer.Argument(..., help="Email of a registered user")) -> None:
    store = _store()
    try:
        summary = promote_admin(store, email)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    finally:
        store.dispose()
    typer.echo(json.dumps(summary))


@app.command("reconcile")
def reconcile_command() -> None:
    """Exit non-zero when any item's stock disagrees with its ledger."""

    store = _store()
    try:
        summary = reconcile_all(store)
    finally:
        store.dispose()
    typer.echo(json.dumps(summary))
    if summary["drifted"]:
        raise typer.Exit(code=1)


@app.command("check-bookings")
def check_bookings_command() -> None:
    """Exit non-zero when any two active bookings overlap."""

    store = _store()
    try:
        summary = check_bookings(store)
    finally:
        store.dispose()
    typer.echo(json.dumps(summary))
    if summary["overlapping"]:
        raise typer.Exit(code=1)


@app.command("generate-alerts")
def generate_alerts_command() -> None:
    settings = Settings.from_env()
    store = _store(settings)
    try:
        alerts = AlertService(
            store,
            critical_days=settings.expiry_critical_days,
            warning_days=settings.expiry_warning_days,
        )
        created = alerts.generate_alerts()
    finally:
        store.dispose()
    typer.echo(json.dumps({"created": len(created)}))


@app.command("serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to listen on"),
) -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run("labdesk.main:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    app()
