from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from maintenance_hub.api.deps import CurrentActor
from maintenance_hub.api.errors import handle_service_error
from maintenance_hub.domain.models import BootstrapAdminRequest, LoginRequest, TokenResponse, UserRead
from maintenance_hub.services.errors import MaintenanceHubError
from maintenance_hub.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()

_AUTH_RATE_LIMIT_MAX_ATTEMPTS = 5
_AUTH_RATE_LIMIT_WINDOW_SECONDS = 15 * 60
# (client ip, endpoint) -> monotonic timestamps of attempts inside the window
_RATE_LIMIT_STATE: dict[tuple[str, str], deque[float]] = {}
_RATE_LIMIT_LOCK = threading.Lock()


def get_user_service() -> UserService:
    return UserService()


Service = Annotated[UserService, Depends(get_user_service)]


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _enforce_auth_rate_limit(request: Request, endpoint: str) -> None:
    key = (_client_ip(request) or "unknown", endpoint)
    now = time.monotonic()
    with _RATE_LIMIT_LOCK:
        attempts = _RATE_LIMIT_STATE.setdefault(key, deque())
        while attempts and now - attempts[0] >= _AUTH_RATE_LIMIT_WINDOW_SECONDS:
            attempts.popleft()
        if len(attempts) >= _AUTH_RATE_LIMIT_MAX_ATTEMPTS:
            retry_after = int(_AUTH_RATE_LIMIT_WINDOW_SECONDS - (now - attempts[0])) + 1
            logger.warning("auth rate limit hit ip=%s endpoint=%s", key[0], endpoint)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many login attempts, try again later",
                headers={"Retry-After": str(retry_after)},
            )
        attempts.append(now)


@router.post("/bootstrap-admin", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminRequest, service: Service) -> UserRead:
    try:
        user = service.bootstrap_admin(payload)
        return UserRead.model_validate(user)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, request: Request, service: Service) -> TokenResponse:
    _enforce_auth_rate_limit(request, "login")
    try:
        return service.login(payload.email, payload.password, ip_address=_client_ip(request))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.get("/me", response_model=UserRead)
def me(actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_profile(actor.id))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise
