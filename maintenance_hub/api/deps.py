from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, UploadFile, status
from fastapi.security import OAuth2PasswordBearer

from maintenance_hub.domain.models import Role
from maintenance_hub.domain.permissions import Actor, has_role
from maintenance_hub.infra.auth import decode_access_token
from maintenance_hub.services.attachment_service import UploadedFile

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    if not isinstance(claims.get("sub"), str) or not has_role(claims, *Role):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    request.state.claims = claims
    return claims


def get_current_actor(
    request: Request,
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
) -> Actor:
    try:
        role = Role(claims["role"])
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    return Actor(
        id=claims["sub"],
        role=role,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def require_role(*roles: Role) -> Callable[[dict[str, Any]], dict[str, Any]]:
    expected = [item for item in roles if item]

    def _checker(
        claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    ) -> dict[str, Any]:
        if not expected or has_role(claims, *expected):
            return claims
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing any role: {', '.join(str(item) for item in expected)}",
        )

    return _checker


def read_upload(upload: UploadFile) -> UploadedFile:
    return UploadedFile(
        original_name=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        content=upload.file.read(),
    )


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
