from datetime import time, timedelta, date

from typer.testing import CliRunner

from labdesk import cli, models
from labdesk.database import Store
from .conftest import create_equipment, create_user

runner = CliRunner()


def test_promote_admin(store):
    user = create_user(store)
    summary = cli.promote_admin(store, user.email)
    assert summary["is_admin"] is True
    with store.session() as db:
        assert db.get(models.User, user.id).is_admin is True


def test_reconcile_all_reports_drift(store, catalog):
    actor = create_user(store, is_admin=True)
    item = catalog.create_item("LAB", {"item_name": "Drifting"}, opening_stock=4, actor_id=actor.id)
    assert all(row["item_id"] != str(item.id) for row in cli.reconcile_all(store)["drifted"])

    # a write that skipped the ledger
    with store.transaction() as db:
        db.get(models.LabInventoryItem, item.id).stock = 9
    drifted = [row for row in cli.reconcile_all(store)["drifted"] if row["item_id"] == str(item.id)]
    assert drifted == [{"inventory_type": "LAB", "item_id": str(item.id), "stock": 9, "ledger_total": 4}]


def test_check_bookings_reports_overlaps(store):
    user = create_user(store)
    eq = create_equipment(store)
    day = date.today() + timedelta(days=40)
    with store.transaction() as db:
        db.add_all(
            [
                models.Booking(equipment_id=eq.id, user_id=user.id, booking_date=day, start_time=time(9), end_time=time(10)),
                models.Booking(equipment_id=eq.id, user_id=user.id, booking_date=day, start_time=time(9, 45), end_time=time(11)),
            ]
        )
    report = cli.check_bookings(store)
    assert any(row["equipment_id"] == str(eq.id) for row in report["overlapping"])


def test_promote_admin_command_rejects_unknown_email(monkeypatch, store):
    monkeypatch.setattr(cli, "_store", lambda settings=None: store)
    result = runner.invoke(cli.app, ["promote-admin", "nobody@example.com"])
    assert result.exit_code != 0


def test_commands_release_their_store(monkeypatch, tmp_path):
    scratch = Store(f"sqlite:///{tmp_path / 'cli.db'}")
    disposed = []
    real_dispose = scratch.dispose

    def tracking_dispose():
        disposed.append(True)
        real_dispose()

    monkeypatch.setattr(scratch, "dispose", tracking_dispose)
    monkeypatch.setattr(cli, "_store", lambda settings=None: scratch)

    assert runner.invoke(cli.app, ["init-db"]).exit_code == 0
    assert runner.invoke(cli.app, ["check-bookings"]).exit_code == 0
    assert runner.invoke(cli.app, ["reconcile"]).exit_code == 0
    assert runner.invoke(cli.app, ["promote-admin", "ghost@example.com"]).exit_code != 0
    assert len(disposed) == 4
