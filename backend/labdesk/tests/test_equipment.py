from .conftest import client, ensure_admin_headers, ensure_auth_headers


def test_equipment_flow(client, store):
    admin, _ = ensure_admin_headers(client, store)
    eq = client.post(
        "/api/equipment/",
        json={"name": "Thermocycler", "eq_type": "pcr", "serial_number": "TC-1"},
        headers=admin,
    )
    assert eq.status_code == 200
    assert eq.json()["status"] == "available"
    eq_id = eq.json()["id"]

    upd = client.put(f"/api/equipment/{eq_id}", json={"status": "maintenance"}, headers=admin)
    assert upd.status_code == 200
    assert upd.json()["status"] == "maintenance"

    bad = client.put(f"/api/equipment/{eq_id}", json={"status": "online"}, headers=admin)
    assert bad.status_code == 422

    user, _ = ensure_auth_headers(client)
    listed = client.get("/api/equipment/", params={"status": "maintenance"}, headers=user)
    assert eq_id in [row["id"] for row in listed.json()]


def test_non_admin_cannot_create_equipment(client):
    user, _ = ensure_auth_headers(client)
    resp = client.post("/api/equipment/", json={"name": "Centrifuge", "eq_type": "spin"}, headers=user)
    assert resp.status_code == 403


def test_deleted_equipment_hidden(client, store):
    admin, _ = ensure_admin_headers(client, store)
    eq_id = client.post("/api/equipment/", json={"name": "Old scope", "eq_type": "scope"}, headers=admin).json()["id"]
    assert client.delete(f"/api/equipment/{eq_id}", headers=admin).status_code == 204
    assert client.get(f"/api/equipment/{eq_id}", headers=admin).status_code == 404
    assert eq_id not in [row["id"] for row in client.get("/api/equipment/", headers=admin).json()]
