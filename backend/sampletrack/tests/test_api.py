from fastapi.testclient import TestClient

from sampletrack import models
from sampletrack.main import app
from sampletrack.services import release
from sampletrack.storelight import get_store_client

from .conftest import (
    FakeStoreClient,
    auth_headers,
    make_labware,
    make_reference,
    make_user,
    seed_operation_types,
    unique,
)


def _release_payload(db, barcodes):
    return {
        "barcodes": barcodes,
        "destination": make_reference(db, models.ReleaseDestination, "name").name,
        "recipient": make_reference(db, models.ReleaseRecipient, "username").username,
    }


def test_health_and_metrics(client):
    assert client.get("/health").json() == {"status": "ok"}
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "request_count" in resp.text


def test_release_endpoint(client, db, store_client):
    seed_operation_types(db)
    user = make_user(db)
    lw = make_labware(db, filled=("A1", "B2"))

    resp = client.post("/api/operations/release", json=_release_payload(db, [lw.barcode]), headers=auth_headers(user))

    assert resp.status_code == 200
    data = resp.json()
    assert data["unstored"] is True
    assert data["warnings"] == []
    assert data["labware"][0]["barcode"] == lw.barcode
    assert data["labware"][0]["state"] == "released"
    assert data["operations"][0]["operation_type"] == "Release"
    assert data["operations"][0]["user"] == user.username
    assert len(data["operations"][0]["actions"]) == 2
    assert store_client.calls == [([lw.barcode], user.username)]


def test_release_endpoint_reports_storage_failure(client, db):
    seed_operation_types(db)
    user = make_user(db)
    lw = make_labware(db)
    failing = FakeStoreClient(fail=True)
    app.dependency_overrides[get_store_client] = lambda: failing
    try:
        resp = client.post("/api/operations/release", json=_release_payload(db, [lw.barcode]), headers=auth_headers(user))
    finally:
        app.dependency_overrides.pop(get_store_client, None)

    assert resp.status_code == 200
    data = resp.json()
    assert data["unstored"] is False
    assert data["warnings"][0].startswith("Failed to remove labware from storage")
    assert data["labware"][0]["state"] == "released"


def test_validation_errors_are_422(client, db, store_client):
    seed_operation_types(db)
    user = make_user(db)

    resp = client.post("/api/operations/destroy", json={"barcodes": ["STAN-NOPE"]}, headers=auth_headers(user))

    assert resp.status_code == 422
    assert resp.json() == {
        "message": "The destruction request could not be validated.",
        "errorType": "ValidationError",
        "extensions": {"problems": ["No reason id supplied.", 'Invalid labware barcode: ["STAN-NOPE"].']},
    }
    assert store_client.calls == []


def test_unknown_labware_is_404(client, db):
    user = make_user(db)
    resp = client.get("/api/labware/STAN-MISSING", headers=auth_headers(user))
    assert resp.status_code == 404
    assert resp.json() == {"message": 'No labware found with barcode "STAN-MISSING"', "errorType": "NotFound"}


def test_unexpected_errors_are_500(db, monkeypatch):
    user = make_user(db)

    def boom(*args, **kwargs):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(release, "perform_release", boom)
    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.post("/api/operations/release", json={"barcodes": ["X"]}, headers=auth_headers(user))
    assert resp.status_code == 500
    assert resp.json() == {"message": "Internal server error", "errorType": "InternalError"}


def test_authentication_and_roles(client, db):
    assert client.post("/api/operations/clean-out", json={}).status_code == 401
    assert client.post("/api/operations/clean-out", json={}, headers={"X-Username": "nobody-here"}).status_code == 401
    enduser = make_user(db, role="enduser")
    assert client.post("/api/operations/clean-out", json={}, headers=auth_headers(enduser)).status_code == 403


def test_labware_and_clean_out_endpoints(client, db):
    seed_operation_types(db)
    user = make_user(db)
    lw = make_labware(db, filled=("A1", "A2"))

    resp = client.post(
        "/api/operations/clean-out",
        json={"barcode": lw.barcode, "addresses": ["A2"]},
        headers=auth_headers(user),
    )
    assert resp.status_code == 200
    assert resp.json()["unstored"] is None

    resp = client.get(f"/api/labware/{lw.barcode.lower()}/cleaned-out", headers=auth_headers(user))
    assert resp.json() == {"barcode": lw.barcode, "addresses": ["A2"]}

    resp = client.get(f"/api/labware/{lw.barcode}", headers=auth_headers(user))
    slots = {slot["address"]: slot for slot in resp.json()["slots"]}
    assert len(slots["A1"]["samples"]) == 1
    assert slots["A2"]["samples"] == []


def test_next_section_endpoint(client, db):
    user = make_user(db)
    lw = make_labware(db, filled=("A1",))
    slot = lw.opt_slot("A1")
    slot.block_sample_id = slot.samples[0].id
    db.commit()

    first = client.post(f"/api/labware/slots/{slot.id}/next-section", headers=auth_headers(user))
    second = client.post(f"/api/labware/slots/{slot.id}/next-section", headers=auth_headers(user))
    assert first.json() == {"slot_id": slot.id, "section": 1}
    assert second.json() == {"slot_id": slot.id, "section": 2}


def test_reference_data_endpoints(client, db):
    user = make_user(db)
    admin = make_user(db, role="admin")
    name = unique("Dest-")

    resp = client.post("/api/admin/release-destinations", json={"value": name}, headers=auth_headers(user))
    assert resp.status_code == 201
    assert resp.json()["value"] == name

    resp = client.post("/api/admin/release-destinations", json={"value": name}, headers=auth_headers(user))
    assert resp.status_code == 422
    assert resp.json()["extensions"]["problems"] == [f"Release destination already exists: {name}"]

    payload = {"value": name, "enabled": False}
    assert client.put("/api/admin/release-destinations/enabled", json=payload, headers=auth_headers(user)).status_code == 403
    resp = client.put("/api/admin/release-destinations/enabled", json=payload, headers=auth_headers(admin))
    assert resp.json()["enabled"] is False

    listed = client.get("/api/admin/release-destinations", headers=auth_headers(user)).json()
    assert name not in [item["value"] for item in listed]
    listed = client.get(
        "/api/admin/release-destinations", params={"include_disabled": True}, headers=auth_headers(user)
    ).json()
    assert name in [item["value"] for item in listed]

    assert client.get("/api/admin/colours", headers=auth_headers(user)).status_code == 404
