from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, UploadFile, status

from maintenance_hub.api.deps import CurrentActor, read_upload, require_role
from maintenance_hub.api.errors import handle_service_error
from maintenance_hub.domain.models import Role, UserCreate, UserListRead, UserRead, UserUpdate
from maintenance_hub.services.errors import MaintenanceHubError
from maintenance_hub.services.user_service import UserService

router = APIRouter(dependencies=[Depends(require_role(Role.ADMIN))])


def get_user_service() -> UserService:
    return UserService()


Service = Annotated[UserService, Depends(get_user_service)]


@router.get("", response_model=UserListRead)
def list_users(
    service: Service,
    role: Role | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> UserListRead:
    return service.list_users(role=role, is_active=is_active, search=search, page=page, limit=limit)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.create_user(actor, payload))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: str, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(user_id))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.put("/{user_id}", response_model=UserRead)
def update_user(user_id: str, payload: UserUpdate, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.update_user(actor, user_id, payload))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.patch("/{user_id}/toggle-status", response_model=UserRead)
def toggle_user_status(user_id: str, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.toggle_user_status(actor, user_id))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_user(actor, user_id)
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/avatar", response_model=UserRead)
def upload_avatar(user_id: str, avatar: UploadFile, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.set_avatar(actor, user_id, read_upload(avatar)))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise


@router.delete("/{user_id}/avatar", response_model=UserRead)
def delete_avatar(user_id: str, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.delete_avatar(actor, user_id))
    except MaintenanceHubError as exc:
        handle_service_error(exc)
        raise
