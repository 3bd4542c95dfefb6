import pytest
from fakes import FakeDataSource, make_device, make_order
from fastapi.testclient import TestClient

from stockaudit import app
from stockaudit.core.security import issue_access_token
from stockaudit.db.session import Base, build_engine, build_session_factory, get_db
from stockaudit.routers.dependencies import get_clear_workflow, get_data_source, get_scanner
from stockaudit.services.audit_clear import AuditClearWorkflow
from stockaudit.services.inflight import InFlightRegistry
from stockaudit.services.matcher import AuditScanner
from stockaudit.services.retry import RetryPolicy


@pytest.fixture()
def source():
    inward = make_order(sales_order="SO-9", quantity=1, serial_numbers=["TAB-1"])
    outward = make_order(sales_order="SO-10", material_type="Outward", quantity=1, serial_numbers=["TAB-2"])
    devices = [
        make_device(serial_number="TAB-1", order_id=inward.id, warehouse="Trichy", asset_check="Matched"),
        make_device(serial_number="TAB-2", order_id=outward.id, warehouse="Trichy"),
        make_device(serial_number="TAB-3", warehouse="Indore"),
    ]
    return FakeDataSource(devices, [inward, outward])


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    try:
        yield build_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture()
def client(source, session_factory):
    policy = RetryPolicy(attempts=2, backoff=0)
    registry = InFlightRegistry()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_data_source] = lambda: source
    app.dependency_overrides[get_scanner] = lambda: AuditScanner(source, policy=policy, registry=registry)
    app.dependency_overrides[get_clear_workflow] = lambda: AuditClearWorkflow(
        source, policy=policy, registry=registry
    )
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _auth(role="Operator"):
    return {"Authorization": f"Bearer {issue_access_token('ops@example.com', role=role)}"}


def test_requests_without_token_are_rejected(client):
    response = client.get("/api/v1/orders/reconciliation")

    assert response.status_code == 401
    assert response.json()["code"] == "http_error"
    assert "X-Request-ID" in response.headers


def test_reconciliation_returns_verdicts(client):
    response = client.get("/api/v1/orders/reconciliation", headers=_auth())

    assert response.status_code == 200
    body = response.json()
    assert [row["status"] for row in body] == ["Success", "Success"]
    assert body[0]["details"] == "All 1 serial numbers present and valid"


def test_stock_summary(client):
    response = client.get("/api/v1/orders/summary", headers=_auth())

    assert response.status_code == 200
    (row,) = response.json()
    assert (row["inward"], row["outward"], row["stock"]) == (1, 1, 0)


def test_audit_devices_lists_in_stock_units_with_facets(client):
    response = client.post("/api/v1/audit/devices", json={"warehouse": ["Trichy"]}, headers=_auth("Viewer"))

    assert response.status_code == 200
    body = response.json()
    assert [device["serial_number"] for device in body["devices"]] == ["TAB-1"]
    assert body["counts"] == {"matched": 1, "unmatched": 0}
    assert body["facets"]["warehouse"] == ["Indore", "Trichy"]


def test_scan_records_found_elsewhere(client, source):
    response = client.post(
        "/api/v1/audit/scan",
        json={"token": "tab-3", "expected_warehouses": ["Trichy"]},
        headers=_auth(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Found in Indore"
    assert body["persisted"] is True
    assert len(source.single_calls) == 1


def test_scan_with_read_only_role_is_forbidden(client, source):
    response = client.post("/api/v1/audit/scan", json={"token": "TAB-3"}, headers=_auth("Viewer"))

    assert response.status_code == 403
    assert response.json()["code"] == "permission_denied"
    assert source.single_calls == []


def test_clear_reports_updated_ids(client, source):
    ids = sorted(source.devices)

    response = client.post("/api/v1/audit/clear", json={"ids": ids}, headers=_auth("Admin"))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert sorted(body["updated_ids"]) == ids
    assert {device.asset_check for device in source.devices.values()} == {"Unmatched"}


def test_register_order_and_fetch_it(client):
    payload = {
        "sales_order": "SO-42",
        "asset_type": "TV",
        "model": "Samsung 55",
        "warehouse": "Trichy",
        "quantity": 1,
        "serial_numbers": ["TV-1"],
    }

    created = client.post("/api/v1/orders", json=payload, headers=_auth())

    assert created.status_code == 201
    body = created.json()
    assert len(body["device_ids"]) == 1
    fetched = client.get(f"/api/v1/orders/{body['order']['id']}", headers=_auth("Viewer"))
    assert fetched.status_code == 200
    assert fetched.json()["serial_numbers"] == ["TV-1"]


def test_register_outward_order_for_missing_unit_conflicts(client):
    payload = {
        "asset_type": "TV",
        "model": "Samsung 55",
        "warehouse": "Trichy",
        "quantity": 1,
        "material_type": "Outward",
        "serial_numbers": ["NOPE"],
    }

    response = client.post("/api/v1/orders", json=payload, headers=_auth())

    assert response.status_code == 409
    assert response.json()["details"] == {"positions": {"1": "Not found in stock"}}


def test_register_order_needs_mutation_role(client):
    payload = {"asset_type": "TV", "model": "Samsung 55", "warehouse": "Trichy", "quantity": 0}

    response = client.post("/api/v1/orders", json=payload, headers=_auth("Viewer"))

    assert response.status_code == 403


def test_unknown_order_is_404(client):
    response = client.get("/api/v1/orders/999999", headers=_auth())

    assert response.status_code == 404
    assert response.json()["message"] == "Order not found"


def test_scanner_settings_advertise_debounce(client):
    response = client.get("/api/v1/audit/scanner", headers=_auth("Viewer"))

    assert response.status_code == 200
    assert response.json() == {"debounce_ms": 300}
