import threading
import uuid

import pytest

from labdesk import models
from labdesk.errors import (
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from .conftest import create_user


def new_item(catalog, actor_id, stock, kind="LAB", name="Taq polymerase"):
    return catalog.create_item(kind, {"item_name": name, "unit": "vial"}, opening_stock=stock, actor_id=actor_id)


def ledger_rows(store, item_id):
    with store.session() as db:
        return (
            db.query(models.InventoryTransaction)
            .filter(models.InventoryTransaction.item_id == item_id)
            .order_by(models.InventoryTransaction.sequence)
            .all()
        )


def test_consume_until_insufficient(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 5)

    assert ledger.consume("LAB", item.id, 3, actor_id=actor.id, reason="PCR setup") == 2
    with pytest.raises(InsufficientStockError) as excinfo:
        ledger.consume("LAB", item.id, 3, actor_id=actor.id)
    assert excinfo.value.available == 2
    assert str(excinfo.value) == "Insufficient stock. Available: 2"

    assert catalog.get_item("LAB", item.id).stock == 2
    rows = ledger_rows(store, item.id)
    assert [(r.transaction_type, r.signed_quantity, r.balance_after) for r in rows] == [
        ("IN", 5, 5),
        ("OUT", -3, 2),
    ]
    assert rows[0].reference_type == "INITIAL_STOCK"
    assert rows[1].remarks == "PCR setup"


def test_consume_rejects_bad_input(ledger, store):
    actor = create_user(store)
    with pytest.raises(ValidationError):
        ledger.consume("LAB", uuid.uuid4(), 0, actor_id=actor.id)
    with pytest.raises(NotFoundError):
        ledger.consume("LAB", uuid.uuid4(), 1, actor_id=actor.id)
    with pytest.raises(ValidationError):
        ledger.consume("FREEZER", uuid.uuid4(), 1, actor_id=actor.id)


def test_concurrent_full_stock_consumes(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 5, name="dNTP mix")
    workers = 5
    barrier = threading.Barrier(workers)
    outcomes: list[object] = []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        try:
            result = ledger.consume("LAB", item.id, 5, actor_id=actor.id)
        except InsufficientStockError as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(0) == 1
    failures = [o for o in outcomes if isinstance(o, InsufficientStockError)]
    assert len(failures) == workers - 1
    assert all(f.available == 0 for f in failures)
    assert catalog.get_item("LAB", item.id).stock == 0
    assert ledger.reconcile("LAB", item.id).consistent


def test_concurrent_adjust_and_consume_serialize(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 50, name="Loading dye")
    jobs = [("consume", 2)] * 6 + [("adjust", 30), ("adjust", 40)]
    barrier = threading.Barrier(len(jobs))
    errors: list[Exception] = []
    lock = threading.Lock()

    def attempt(op, amount):
        barrier.wait()
        try:
            if op == "consume":
                ledger.consume("LAB", item.id, amount, actor_id=actor.id)
            else:
                ledger.adjust("LAB", item.id, amount, actor_id=actor.id, reason="recount")
        except Exception as exc:
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=attempt, args=job) for job in jobs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert ledger.reconcile("LAB", item.id).consistent
    rows = ledger_rows(store, item.id)
    assert [r.sequence for r in rows] == list(range(1, len(jobs) + 2))
    for previous, row in zip(rows, rows[1:]):
        assert row.balance_after == previous.balance_after + row.signed_quantity
    assert rows[-1].balance_after == catalog.get_item("LAB", item.id).stock
    assert sorted(r.transaction_type for r in rows[1:]) == ["ADJUSTMENT"] * 2 + ["OUT"] * 6


def test_adjust_twice_appends_two_rows(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 4, kind="NGS", name="Flow cell")

    first = ledger.adjust("NGS", item.id, 10, actor_id=actor.id, reason="stock count")
    assert (first.old_quantity, first.new_quantity, first.delta) == (4, 10, 6)
    second = ledger.adjust("NGS", item.id, 10, actor_id=actor.id, reason="stock count")
    assert (second.old_quantity, second.new_quantity, second.delta) == (10, 10, 0)

    rows = ledger_rows(store, item.id)
    assert [r.transaction_type for r in rows] == ["IN", "ADJUSTMENT", "ADJUSTMENT"]
    assert [r.sequence for r in rows] == [1, 2, 3]
    assert rows[1].quantity == 6 and rows[1].direction == "increase"
    assert rows[2].quantity == 0
    assert catalog.get_item("NGS", item.id).stock == 10

    down = ledger.adjust("NGS", item.id, 7, actor_id=actor.id)
    assert down.delta == -3
    assert ledger_rows(store, item.id)[-1].direction == "decrease"

    with pytest.raises(ValidationError):
        ledger.adjust("NGS", item.id, -1, actor_id=actor.id)


def test_ledger_sum_matches_stock(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 20, name="Agarose")
    ledger.consume("LAB", item.id, 4, actor_id=actor.id)
    ledger.restock("LAB", item.id, 10, actor_id=actor.id, reason="PO-1182")
    ledger.adjust("LAB", item.id, 25, actor_id=actor.id)
    ledger.consume("LAB", item.id, 1, actor_id=actor.id)

    result = ledger.reconcile("LAB", item.id)
    assert result.stock == 24
    assert result.ledger_total == 24
    assert result.transaction_count == 5
    assert result.consistent
    assert ledger_rows(store, item.id)[2].reference_type == "RESTOCK"


def test_initial_stock_only_once(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 0, name="Pipette tips")
    assert ledger_rows(store, item.id) == []
    assert ledger.initial_stock("LAB", item.id, 8, actor_id=actor.id) == 8
    with pytest.raises(InvalidTransitionError):
        ledger.initial_stock("LAB", item.id, 8, actor_id=actor.id)


def test_ledger_rows_are_immutable(catalog, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 3, name="Buffer")

    with pytest.raises(InvalidTransitionError):
        with store.transaction() as db:
            row = db.query(models.InventoryTransaction).filter_by(item_id=item.id).one()
            row.quantity = 300
            db.flush()

    with pytest.raises(InvalidTransitionError):
        with store.transaction() as db:
            row = db.query(models.InventoryTransaction).filter_by(item_id=item.id).one()
            db.delete(row)
            db.flush()

    assert ledger_rows(store, item.id)[0].quantity == 3


def test_list_transactions_newest_first(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 6, name="Ethanol")
    ledger.consume("LAB", item.id, 1, actor_id=actor.id)
    ledger.consume("LAB", item.id, 2, actor_id=actor.id)

    rows = ledger.list_transactions("lab", item.id)
    assert [r.balance_after for r in rows] == [3, 5, 6]
    assert len(ledger.list_transactions(item_id=item.id, limit=1)) == 1
    assert [r.balance_after for r in ledger.list_transactions(item_id=item.id, limit=2, offset=1)] == [5, 6]


def test_consumption_is_logged(catalog, ledger, store):
    actor = create_user(store, is_admin=True)
    item = new_item(catalog, actor.id, 2, name="Gloves")
    ledger.consume("LAB", item.id, 1, actor_id=actor.id, reason="prep")
    with store.session() as db:
        entry = (
            db.query(models.ActivityLog)
            .filter(models.ActivityLog.action == "stock_consumed")
            .filter(models.ActivityLog.target_id == item.id)
            .one()
        )
    assert entry.details == {"inventory_type": "LAB", "quantity": 1, "remaining": 1, "reason": "prep"}
