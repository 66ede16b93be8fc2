from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_DEVELOPMENT = "development"
ENV_TEST = "test"
ENV_PRODUCTION = "production"


@dataclass(frozen=True)
class Settings:
    app_env: str
    database_url: str
    jwt_secret: str
    jwt_algorithm: str
    jwt_expires_min: int
    password_salt: str
    upload_dir: Path
    public_upload_prefix: str
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.app_env == ENV_PRODUCTION

    @classmethod
    def from_env(cls) -> Settings:
        app_env = os.getenv("APP_ENV", ENV_DEVELOPMENT).strip().lower()
        if app_env not in {ENV_DEVELOPMENT, ENV_TEST, ENV_PRODUCTION}:
            raise ValueError(f"unsupported APP_ENV: {app_env}")
        expires = os.getenv("JWT_EXPIRES_MIN", "480").strip()
        return cls(
            app_env=app_env,
            database_url=os.getenv(
                "DATABASE_URL",
                "postgresql+psycopg://maintenance:maintenance@db:5432/maintenance_hub",
            ),
            jwt_secret=os.getenv("JWT_SECRET", "dev-secret-change-me"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            jwt_expires_min=int(expires) if expires.isdigit() else 480,
            password_salt=os.getenv("PASSWORD_SALT", "maintenance-dev-salt"),
            upload_dir=Path(os.getenv("UPLOAD_DIR", "uploads")),
            public_upload_prefix="/" + os.getenv("PUBLIC_UPLOAD_PREFIX", "/uploads").strip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
