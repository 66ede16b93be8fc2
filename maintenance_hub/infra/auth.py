from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from maintenance_hub.infra.config import Settings, get_settings


def create_access_token(
    *,
    user_id: str,
    role: str,
    expires_minutes: int | None = None,
    settings: Settings | None = None,
) -> str:
    settings = settings or get_settings()
    now = datetime.now(UTC)
    expire_delta = timedelta(minutes=expires_minutes or settings.jwt_expires_min)
    payload: dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + expire_delta).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    settings = settings or get_settings()
    decoded = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    if not isinstance(decoded, dict):
        raise ValueError("Invalid token payload")
    return decoded
