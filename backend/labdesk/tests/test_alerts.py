from datetime import date, timedelta

import pytest

from labdesk.errors import InvalidTransitionError
from .conftest import client, create_user, ensure_admin_headers

TODAY = date(2026, 3, 1)


def alerts_for(alerts, item_id):
    return sorted((a.alert_type, a.severity) for a in alerts if a.item_id == item_id)


def test_expiry_thresholds(alert_service):
    assert alert_service.expiry_alert(TODAY - timedelta(days=1), TODAY)[:2] == ("EXPIRED", "CRITICAL")
    assert alert_service.expiry_alert(TODAY + timedelta(days=30), TODAY)[:2] == ("EXPIRY_CRITICAL", "CRITICAL")
    assert alert_service.expiry_alert(TODAY + timedelta(days=31), TODAY)[:2] == ("EXPIRY_WARNING", "MEDIUM")
    assert alert_service.expiry_alert(TODAY + timedelta(days=91), TODAY) is None


def test_generate_alerts_once_per_condition(alert_service, catalog, store):
    actor = create_user(store, is_admin=True)
    low = catalog.create_item(
        "LAB", {"item_name": "Low primer", "reorder_point": 5}, opening_stock=2, actor_id=actor.id
    )
    expired = catalog.create_item(
        "LAB",
        {"item_name": "Old enzyme", "expiration_date": TODAY - timedelta(days=3)},
        opening_stock=10,
        actor_id=actor.id,
    )
    warning = catalog.create_item(
        "LAB",
        {"item_name": "Ladder", "expiration_date": TODAY + timedelta(days=60)},
        opening_stock=10,
        actor_id=actor.id,
    )
    ngs_low = catalog.create_item(
        "NGS", {"item_name": "Index kit", "reorder_point": 1}, opening_stock=1, actor_id=actor.id
    )

    created = alert_service.generate_alerts(today=TODAY)
    assert alerts_for(created, low.id) == [("LOW_STOCK", "HIGH")]
    assert alerts_for(created, expired.id) == [("EXPIRED", "CRITICAL")]
    assert alerts_for(created, warning.id) == [("EXPIRY_WARNING", "MEDIUM")]
    assert alerts_for(created, ngs_low.id) == [("LOW_STOCK", "HIGH")]

    again = alert_service.generate_alerts(today=TODAY)
    mine = {low.id, expired.id, warning.id, ngs_low.id}
    assert [a for a in again if a.item_id in mine] == []

    open_alerts = [a for a in alert_service.list_open_alerts() if a.item_id in mine]
    assert open_alerts[0].severity == "CRITICAL"
    assert open_alerts[-1].severity == "MEDIUM"


def test_resolved_alert_can_fire_again(alert_service, catalog, store):
    actor = create_user(store, is_admin=True)
    item = catalog.create_item(
        "LAB", {"item_name": "Low buffer", "reorder_point": 3}, opening_stock=1, actor_id=actor.id
    )
    [alert] = [a for a in alert_service.generate_alerts(today=TODAY) if a.item_id == item.id]

    resolved = alert_service.resolve_alert(alert.id, actor_id=actor.id)
    assert resolved.is_resolved and resolved.resolved_by == actor.id
    with pytest.raises(InvalidTransitionError):
        alert_service.resolve_alert(alert.id, actor_id=actor.id)

    refired = [a for a in alert_service.generate_alerts(today=TODAY) if a.item_id == item.id]
    assert [a.alert_type for a in refired] == ["LOW_STOCK"]


def test_alert_endpoints(client, store):
    admin, _ = ensure_admin_headers(client, store)
    item = client.post(
        "/api/inventory/lab/items",
        json={"item_name": "Alerting item", "quantity": 0, "reorder_point": 0},
        headers=admin,
    ).json()

    generated = client.post("/api/inventory/alerts/generate", headers=admin)
    assert generated.status_code == 200
    listed = client.get("/api/inventory/alerts", headers=admin).json()
    [alert] = [a for a in listed if a["item_id"] == item["id"]]
    assert alert["alert_type"] == "LOW_STOCK"

    resolved = client.put(f"/api/inventory/alerts/{alert['id']}/resolve", headers=admin)
    assert resolved.status_code == 200
    assert resolved.json()["is_resolved"] is True
    assert client.put(f"/api/inventory/alerts/{alert['id']}/resolve", headers=admin).status_code == 409
    remaining = client.get("/api/inventory/alerts", headers=admin).json()
    assert all(a["id"] != alert["id"] for a in remaining)
