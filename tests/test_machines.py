from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from maintenance_hub import main as app_main

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64


@pytest.fixture()
def machine_client(test_engine: Engine) -> Generator[TestClient, None, None]:
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _tokens(client: TestClient) -> tuple[str, str]:
    client.post(
        "/api/auth/bootstrap-admin",
        json={"first_name": "Ada", "last_name": "Admin", "email": "admin@plant.test", "password": "admin-pass"},
    )
    admin = client.post("/api/auth/login", json={"email": "admin@plant.test", "password": "admin-pass"}).json()
    client.post(
        "/api/users",
        json={
            "first_name": "Cleo",
            "last_name": "Office",
            "email": "office@plant.test",
            "password": "office-pass",
            "role": "administration",
        },
        headers=_auth_header(admin["access_token"]),
    )
    office = client.post("/api/auth/login", json={"email": "office@plant.test", "password": "office-pass"}).json()
    return admin["access_token"], office["access_token"]


def _machine_payload(reference: str, **overrides: str) -> dict[str, str]:
    payload = {
        "name": f"Press {reference}",
        "reference": reference,
        "location": "Hall B",
        "department": "Stamping",
        "serial_number": f"SN-{reference}",
    }
    payload.update(overrides)
    return payload


def test_machine_crud_and_conflicts(machine_client: TestClient) -> None:
    admin, office = _tokens(machine_client)

    created = machine_client.post("/api/machines", json=_machine_payload("PRS-1"), headers=_auth_header(admin))
    assert created.status_code == 201
    machine_id = created.json()["id"]
    assert created.json()["status"] == "operational"

    duplicate = machine_client.post(
        "/api/machines",
        json=_machine_payload("PRS-1", serial_number="SN-OTHER"),
        headers=_auth_header(admin),
    )
    assert duplicate.status_code == 409

    updated = machine_client.put(
        f"/api/machines/{machine_id}",
        json={"location": "Hall D", "priority": "high"},
        headers=_auth_header(admin),
    )
    assert updated.status_code == 200
    assert updated.json()["location"] == "Hall D"
    assert updated.json()["priority"] == "high"

    assert machine_client.get(f"/api/machines/{machine_id}", headers=_auth_header(office)).status_code == 200
    office_write = machine_client.post("/api/machines", json=_machine_payload("PRS-2"), headers=_auth_header(office))
    assert office_write.status_code == 403

    assert machine_client.get("/api/machines/missing", headers=_auth_header(admin)).status_code == 404


def test_machine_list_filters(machine_client: TestClient) -> None:
    admin, _ = _tokens(machine_client)
    machine_client.post("/api/machines", json=_machine_payload("PRS-1"), headers=_auth_header(admin))
    machine_client.post(
        "/api/machines",
        json=_machine_payload("CNC-9", name="Milling center", department="Machining"),
        headers=_auth_header(admin),
    )

    everything = machine_client.get("/api/machines", headers=_auth_header(admin)).json()
    assert everything["pagination"]["total"] == 2
    assert [item["name"] for item in everything["machines"]] == ["Milling center", "Press PRS-1"]

    machining = machine_client.get(
        "/api/machines",
        params={"department": "Machining"},
        headers=_auth_header(admin),
    ).json()
    assert [item["reference"] for item in machining["machines"]] == ["CNC-9"]

    searched = machine_client.get("/api/machines", params={"search": "prs"}, headers=_auth_header(admin)).json()
    assert [item["reference"] for item in searched["machines"]] == ["PRS-1"]


def test_delete_blocked_while_schedules_reference_machine(machine_client: TestClient) -> None:
    admin, _ = _tokens(machine_client)
    machine_id = machine_client.post(
        "/api/machines",
        json=_machine_payload("PRS-1"),
        headers=_auth_header(admin),
    ).json()["id"]
    schedule = machine_client.post(
        "/api/maintenance-schedules",
        json={"title": "Hydraulic oil change", "machine_id": machine_id, "scheduled_date": "2024-07-01T00:00:00Z"},
        headers=_auth_header(admin),
    )
    assert schedule.status_code == 201

    blocked = machine_client.delete(f"/api/machines/{machine_id}", headers=_auth_header(admin))
    assert blocked.status_code == 409

    machine_client.delete(f"/api/maintenance-schedules/{schedule.json()['id']}", headers=_auth_header(admin))
    assert machine_client.delete(f"/api/machines/{machine_id}", headers=_auth_header(admin)).status_code == 204


def test_machine_image_replaces_previous_file(machine_client: TestClient, upload_dir: Path) -> None:
    admin, _ = _tokens(machine_client)
    machine_id = machine_client.post(
        "/api/machines",
        json=_machine_payload("PRS-1"),
        headers=_auth_header(admin),
    ).json()["id"]

    first = machine_client.post(
        f"/api/machines/{machine_id}/image",
        files={"image": ("front.jpg", JPEG_BYTES, "image/jpeg")},
        headers=_auth_header(admin),
    )
    assert first.status_code == 200
    second = machine_client.post(
        f"/api/machines/{machine_id}/image",
        files={"image": ("side.jpg", JPEG_BYTES, "image/jpeg")},
        headers=_auth_header(admin),
    )
    assert second.status_code == 200
    assert second.json()["image"] != first.json()["image"]
    assert second.json()["image"].startswith("machines/")

    stored = [path for path in upload_dir.rglob("*") if path.is_file()]
    assert len(stored) == 1

    rejected = machine_client.post(
        f"/api/machines/{machine_id}/image",
        files={"image": ("manual.pdf", b"%PDF-1.4", "application/pdf")},
        headers=_auth_header(admin),
    )
    assert rejected.status_code == 400

    assert machine_client.delete(f"/api/machines/{machine_id}", headers=_auth_header(admin)).status_code == 204
    assert [path for path in upload_dir.rglob("*") if path.is_file()] == []
