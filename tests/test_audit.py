from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from maintenance_hub import main as app_main
from maintenance_hub.domain.models import AuditLog, MaintenanceSchedule, Role
from maintenance_hub.domain.permissions import Actor
from maintenance_hub.infra import audit


@pytest.fixture()
def audit_client(test_engine: Engine) -> Generator[TestClient, None, None]:
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _admin_token(client: TestClient) -> str:
    client.post(
        "/api/auth/bootstrap-admin",
        json={"first_name": "Ada", "last_name": "Admin", "email": "admin@plant.test", "password": "admin-pass"},
    )
    login = client.post("/api/auth/login", json={"email": "admin@plant.test", "password": "admin-pass"})
    assert login.status_code == 200
    return login.json()["access_token"]


def _create_machine(client: TestClient, token: str) -> str:
    response = client.post(
        "/api/machines",
        json={"name": "Mixer", "reference": "MIX-01", "location": "Hall A", "department": "Batching"},
        headers=_auth_header(token),
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_mutations_are_audited_with_request_metadata(audit_client: TestClient) -> None:
    token = _admin_token(audit_client)
    machine_id = _create_machine(audit_client, token)
    status_resp = audit_client.patch(
        f"/api/machines/{machine_id}/status",
        json={"status": "breakdown"},
        headers={**_auth_header(token), "User-Agent": "plant-tablet/1.0"},
    )
    assert status_resp.status_code == 200

    response = audit_client.get(
        "/api/audit-logs",
        params={"entity": "Machine", "entity_id": machine_id},
        headers=_auth_header(token),
    )
    assert response.status_code == 200
    logs = response.json()
    assert [item["action"] for item in logs] == ["UPDATE_STATUS", "CREATE"]
    assert logs[0]["metadata"] == {"from_status": "operational", "to_status": "breakdown"}
    assert logs[0]["user_agent"] == "plant-tablet/1.0"
    assert logs[0]["ip_address"] is not None


def test_audit_failure_does_not_abort_schedule_creation(
    audit_client: TestClient,
    test_engine: Engine,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    token = _admin_token(audit_client)
    machine_id = _create_machine(audit_client, token)

    def broken_write(**_kwargs: object) -> None:
        raise RuntimeError("audit table unavailable")

    monkeypatch.setattr(audit, "write_audit_log", broken_write)

    with caplog.at_level(logging.WARNING, logger="maintenance_hub.infra.audit"):
        response = audit_client.post(
            "/api/maintenance-schedules",
            json={"title": "Blade sharpening", "machine_id": machine_id, "scheduled_date": "2024-06-01T00:00:00Z"},
            headers=_auth_header(token),
        )

    assert response.status_code == 201
    assert "audit log write failed" in caplog.text
    with Session(test_engine) as session:
        assert session.get(MaintenanceSchedule, response.json()["id"]) is not None
        actions = session.exec(select(AuditLog.action).where(AuditLog.entity == "MaintenanceSchedule")).all()
    assert actions == []


def test_audit_sink_reports_outcome(test_engine: Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    sink = audit.AuditSink()
    actor = Actor(id="user-1", role=Role.ADMIN, ip_address="10.0.0.5")

    assert sink.record(actor, "CREATE", "Machine", "machine-1", details="created") is True
    rows = sink.list_logs(entity="Machine")
    assert len(rows) == 1
    assert rows[0].user_id == "user-1"
    assert rows[0].meta == {}

    def full_disk(**_kwargs: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(audit, "write_audit_log", full_disk)
    assert sink.record(actor, "DELETE", "Machine", "machine-1") is False


def test_audit_logs_are_admin_only(audit_client: TestClient) -> None:
    token = _admin_token(audit_client)
    audit_client.post(
        "/api/users",
        json={
            "first_name": "Tess",
            "last_name": "Field",
            "email": "tech@plant.test",
            "password": "tech-pass",
            "role": "technician",
        },
        headers=_auth_header(token),
    )
    login = audit_client.post("/api/auth/login", json={"email": "tech@plant.test", "password": "tech-pass"})
    tech_token = login.json()["access_token"]

    assert audit_client.get("/api/audit-logs", headers=_auth_header(tech_token)).status_code == 403
