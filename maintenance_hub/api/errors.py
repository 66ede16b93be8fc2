from __future__ import annotations

from fastapi import HTTPException, status

from maintenance_hub.services.errors import (
    AuthError,
    AuthorizationError,
    ConflictError,
    MaintenanceHubError,
    NotFoundError,
    ValidationError,
)

STATUS_BY_ERROR: tuple[tuple[type[MaintenanceHubError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
)


def handle_service_error(exc: MaintenanceHubError) -> None:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    raise exc
