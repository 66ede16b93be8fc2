from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session
from starlette.requests import Request

from maintenance_hub import main as app_main
from maintenance_hub.api.routers import auth as auth_router
from maintenance_hub.domain.models import MaintenanceSchedule
from maintenance_hub.infra.auth import create_access_token, decode_access_token

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture()
def identity_client(test_engine: Engine) -> Generator[TestClient, None, None]:
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _bootstrap(client: TestClient) -> dict[str, str]:
    response = client.post(
        "/api/auth/bootstrap-admin",
        json={"first_name": "Ada", "last_name": "Admin", "email": "Admin@Plant.test", "password": "admin-pass"},
    )
    assert response.status_code == 201
    login = client.post("/api/auth/login", json={"email": "admin@plant.test", "password": "admin-pass"})
    assert login.status_code == 200
    return {"id": response.json()["id"], "token": login.json()["access_token"]}


def _create_technician(client: TestClient, token: str, email: str = "tech@plant.test") -> str:
    response = client.post(
        "/api/users",
        json={
            "first_name": "Tess",
            "last_name": "Field",
            "email": email,
            "password": "tech-pass",
            "role": "technician",
            "phone": "0612345678",
        },
        headers=_auth_header(token),
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_bootstrap_only_once_and_login_returns_profile(identity_client: TestClient) -> None:
    admin = _bootstrap(identity_client)

    again = identity_client.post(
        "/api/auth/bootstrap-admin",
        json={"first_name": "Eve", "last_name": "Other", "email": "eve@plant.test", "password": "eve-pass"},
    )
    assert again.status_code == 409

    login = identity_client.post("/api/auth/login", json={"email": "admin@plant.test", "password": "admin-pass"})
    body = login.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "admin"
    assert body["user"]["last_login"] is not None
    claims = decode_access_token(body["access_token"])
    assert claims["sub"] == admin["id"]
    assert claims["role"] == "admin"

    me = identity_client.get("/api/auth/me", headers=_auth_header(admin["token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "admin@plant.test"
    assert "password_hash" not in me.json()


def test_login_failures(identity_client: TestClient) -> None:
    admin = _bootstrap(identity_client)
    tech_id = _create_technician(identity_client, admin["token"])

    wrong = identity_client.post("/api/auth/login", json={"email": "admin@plant.test", "password": "not-it"})
    assert wrong.status_code == 401
    unknown = identity_client.post("/api/auth/login", json={"email": "ghost@plant.test", "password": "whatever"})
    assert unknown.status_code == 401

    toggled = identity_client.patch(f"/api/users/{tech_id}/toggle-status", headers=_auth_header(admin["token"]))
    assert toggled.status_code == 200
    assert toggled.json()["is_active"] is False
    disabled = identity_client.post("/api/auth/login", json={"email": "tech@plant.test", "password": "tech-pass"})
    assert disabled.status_code == 401

    assert identity_client.get("/api/auth/me", headers=_auth_header("garbage")).status_code == 401


def test_token_with_unknown_role_is_rejected(identity_client: TestClient) -> None:
    _bootstrap(identity_client)
    token = create_access_token(user_id="someone", role="superuser")
    assert identity_client.get("/api/machines", headers=_auth_header(token)).status_code == 401


def test_user_management_is_admin_only(identity_client: TestClient) -> None:
    admin = _bootstrap(identity_client)
    _create_technician(identity_client, admin["token"])
    tech_token = identity_client.post(
        "/api/auth/login",
        json={"email": "tech@plant.test", "password": "tech-pass"},
    ).json()["access_token"]

    assert identity_client.get("/api/users", headers=_auth_header(tech_token)).status_code == 403

    listed = identity_client.get("/api/users", params={"role": "technician"}, headers=_auth_header(admin["token"]))
    assert listed.status_code == 200
    assert [item["email"] for item in listed.json()["users"]] == ["tech@plant.test"]


def test_create_update_and_duplicate_email(identity_client: TestClient) -> None:
    admin = _bootstrap(identity_client)
    tech_id = _create_technician(identity_client, admin["token"])

    duplicate = identity_client.post(
        "/api/users",
        json={
            "first_name": "Dup",
            "last_name": "User",
            "email": "TECH@plant.test",
            "password": "dup-pass",
            "role": "administration",
        },
        headers=_auth_header(admin["token"]),
    )
    assert duplicate.status_code == 409

    updated = identity_client.put(
        f"/api/users/{tech_id}",
        json={"last_name": "Fieldwork", "role": "administration"},
        headers=_auth_header(admin["token"]),
    )
    assert updated.status_code == 200
    assert updated.json()["last_name"] == "Fieldwork"
    assert updated.json()["role"] == "administration"

    clash = identity_client.put(
        f"/api/users/{tech_id}",
        json={"email": "admin@plant.test"},
        headers=_auth_header(admin["token"]),
    )
    assert clash.status_code == 409


def test_admin_cannot_delete_or_disable_self(identity_client: TestClient) -> None:
    admin = _bootstrap(identity_client)
    delete_self = identity_client.delete(f"/api/users/{admin['id']}", headers=_auth_header(admin["token"]))
    assert delete_self.status_code == 400
    toggle_self = identity_client.patch(
        f"/api/users/{admin['id']}/toggle-status",
        headers=_auth_header(admin["token"]),
    )
    assert toggle_self.status_code == 400


def test_delete_user_unassigns_schedules_and_removes_avatar(
    identity_client: TestClient,
    test_engine: Engine,
    upload_dir: Path,
) -> None:
    admin = _bootstrap(identity_client)
    tech_id = _create_technician(identity_client, admin["token"])

    avatar = identity_client.post(
        f"/api/users/{tech_id}/avatar",
        files={"avatar": ("me.png", PNG_BYTES, "image/png")},
        headers=_auth_header(admin["token"]),
    )
    assert avatar.status_code == 200
    assert avatar.json()["avatar"].startswith("avatars/")

    machine_id = identity_client.post(
        "/api/machines",
        json={"name": "Boiler", "reference": "BLR-2", "location": "Basement", "department": "Utilities"},
        headers=_auth_header(admin["token"]),
    ).json()["id"]
    schedule = identity_client.post(
        "/api/maintenance-schedules",
        json={
            "title": "Burner inspection",
            "machine_id": machine_id,
            "technician_id": tech_id,
            "scheduled_date": "2024-09-01T00:00:00Z",
        },
        headers=_auth_header(admin["token"]),
    ).json()

    deleted = identity_client.delete(f"/api/users/{tech_id}", headers=_auth_header(admin["token"]))
    assert deleted.status_code == 204

    with Session(test_engine) as session:
        stored = session.get(MaintenanceSchedule, schedule["id"])
        assert stored is not None
        assert stored.technician_id is None
    assert [path for path in upload_dir.rglob("*") if path.is_file()] == []


def test_delete_user_with_reports_conflicts(identity_client: TestClient) -> None:
    admin = _bootstrap(identity_client)
    tech_id = _create_technician(identity_client, admin["token"])
    tech_token = identity_client.post(
        "/api/auth/login",
        json={"email": "tech@plant.test", "password": "tech-pass"},
    ).json()["access_token"]
    machine_id = identity_client.post(
        "/api/machines",
        json={"name": "Boiler", "reference": "BLR-2", "location": "Basement", "department": "Utilities"},
        headers=_auth_header(admin["token"]),
    ).json()["id"]
    report = identity_client.post(
        "/api/reports",
        json={
            "title": "Burner nozzle cleaning",
            "work_date": "2024-09-02",
            "start_time": "13:00",
            "end_time": "14:00",
            "machine_id": machine_id,
            "work_type": "maintenance",
            "problem_description": "Flame unstable on startup",
            "actions_taken": "Cleaned nozzle and checked ignition",
        },
        headers=_auth_header(tech_token),
    )
    assert report.status_code == 201

    blocked = identity_client.delete(f"/api/users/{tech_id}", headers=_auth_header(admin["token"]))
    assert blocked.status_code == 409


def test_delete_avatar(identity_client: TestClient, upload_dir: Path) -> None:
    admin = _bootstrap(identity_client)
    missing = identity_client.delete(f"/api/users/{admin['id']}/avatar", headers=_auth_header(admin["token"]))
    assert missing.status_code == 404

    identity_client.post(
        f"/api/users/{admin['id']}/avatar",
        files={"avatar": ("me.png", PNG_BYTES, "image/png")},
        headers=_auth_header(admin["token"]),
    )
    removed = identity_client.delete(f"/api/users/{admin['id']}/avatar", headers=_auth_header(admin["token"]))
    assert removed.status_code == 200
    assert removed.json()["avatar"] is None
    assert [path for path in upload_dir.rglob("*") if path.is_file()] == []


def _request_from(host: str) -> Request:
    return Request({"type": "http", "headers": [], "client": (host, 12345), "method": "POST", "path": "/api/auth/login"})


def test_login_is_throttled_per_client_after_repeated_attempts(identity_client: TestClient) -> None:
    _bootstrap(identity_client)

    for _ in range(auth_router._AUTH_RATE_LIMIT_MAX_ATTEMPTS - 1):
        wrong = identity_client.post("/api/auth/login", json={"email": "admin@plant.test", "password": "not-it"})
        assert wrong.status_code == 401

    blocked = identity_client.post("/api/auth/login", json={"email": "admin@plant.test", "password": "admin-pass"})
    assert blocked.status_code == 429
    assert int(blocked.headers["Retry-After"]) > 0


def test_rate_limit_is_keyed_by_ip_and_expires_with_the_window(monkeypatch: pytest.MonkeyPatch) -> None:
    clock = {"now": 1000.0}
    monkeypatch.setattr(auth_router.time, "monotonic", lambda: clock["now"])
    first = _request_from("10.0.0.1")

    for _ in range(auth_router._AUTH_RATE_LIMIT_MAX_ATTEMPTS):
        auth_router._enforce_auth_rate_limit(first, "login")
    with pytest.raises(HTTPException) as exc_info:
        auth_router._enforce_auth_rate_limit(first, "login")
    assert exc_info.value.status_code == 429

    auth_router._enforce_auth_rate_limit(_request_from("10.0.0.2"), "login")

    clock["now"] += auth_router._AUTH_RATE_LIMIT_WINDOW_SECONDS
    auth_router._enforce_auth_rate_limit(first, "login")
