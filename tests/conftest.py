from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("UPLOAD_DIR", str(Path(tempfile.gettempdir()) / "maintenance_hub_uploads"))

from maintenance_hub.api.routers import auth as auth_router  # noqa: E402
from maintenance_hub.infra import config, db  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_login_rate_limit() -> Generator[None, None, None]:
    auth_router._RATE_LIMIT_STATE.clear()
    yield
    auth_router._RATE_LIMIT_STATE.clear()


@pytest.fixture()
def test_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Engine, None, None]:
    db_path = tmp_path / "maintenance_hub_test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    config.get_settings.cache_clear()
    yield engine
    config.get_settings.cache_clear()
    engine.dispose()


@pytest.fixture()
def upload_dir(test_engine: Engine) -> Path:
    return config.get_settings().upload_dir
