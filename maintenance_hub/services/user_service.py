from __future__ import annotations

import hashlib
import math

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from maintenance_hub.domain.models import (
    AttachmentFileType,
    AuditAction,
    BootstrapAdminRequest,
    MaintenanceSchedule,
    Pagination,
    Report,
    Role,
    TokenResponse,
    User,
    UserCreate,
    UserListRead,
    UserRead,
    UserUpdate,
    now_utc,
)
from maintenance_hub.domain.permissions import Actor
from maintenance_hub.infra.audit import AuditSink, audit_sink
from maintenance_hub.infra.auth import create_access_token
from maintenance_hub.infra.config import get_settings
from maintenance_hub.infra.db import get_engine
from maintenance_hub.services.attachment_service import AttachmentService, UploadedFile
from maintenance_hub.services.errors import AuthError, ConflictError, NotFoundError, ValidationError

ENTITY = "User"


def hash_password(raw_password: str) -> str:
    salt = get_settings().password_salt
    return hashlib.sha256(f"{salt}:{raw_password}".encode()).hexdigest()


class UserService:
    def __init__(
        self,
        attachments: AttachmentService | None = None,
        audit: AuditSink | None = None,
    ) -> None:
        self.attachments = attachments or AttachmentService()
        self.audit = audit or audit_sink

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_user(self, session: Session, user_id: str) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def _ensure_email_free(self, session: Session, email: str, exclude_id: str | None = None) -> None:
        statement = select(User).where(User.email == email)
        if exclude_id is not None:
            statement = statement.where(User.id != exclude_id)
        if session.exec(statement).first() is not None:
            raise ConflictError("email already in use")

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> User:
        with self._session() as session:
            if session.exec(select(User.id)).first() is not None:
                raise ConflictError("users already initialized")
            user = User(
                first_name=payload.first_name,
                last_name=payload.last_name,
                email=payload.email.lower(),
                password_hash=hash_password(payload.password),
                role=Role.ADMIN,
                is_active=True,
            )
            session.add(user)
            session.commit()
            session.refresh(user)

        self.audit.record(
            Actor(id=user.id, role=Role.ADMIN),
            AuditAction.CREATE,
            ENTITY,
            user.id,
            details=f"bootstrap admin created: {user.email}",
        )
        return user

    def login(self, email: str, password: str, *, ip_address: str | None = None) -> TokenResponse:
        with self._session() as session:
            user = session.exec(select(User).where(User.email == email.lower())).first()
            if user is None or user.password_hash != hash_password(password):
                raise AuthError("invalid credentials")
            if not user.is_active:
                raise AuthError("user disabled")
            user.last_login = now_utc()
            user.login_ip = ip_address
            session.add(user)
            session.commit()
            session.refresh(user)

        token = create_access_token(user_id=user.id, role=str(user.role))
        return TokenResponse(access_token=token, user=UserRead.model_validate(user))

    def get_profile(self, user_id: str) -> User:
        with self._session() as session:
            user = self._get_user(session, user_id)
            if not user.is_active:
                raise AuthError("user disabled")
            return user

    def get_user(self, user_id: str) -> User:
        with self._session() as session:
            return self._get_user(session, user_id)

    def list_users(
        self,
        *,
        role: Role | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> UserListRead:
        page = max(page, 1)
        limit = max(limit, 1)
        with self._session() as session:
            statement = select(User)
            if role is not None:
                statement = statement.where(User.role == role)
            if is_active is not None:
                statement = statement.where(User.is_active == is_active)
            if search:
                pattern = f"%{search.strip()}%"
                statement = statement.where(
                    or_(
                        col(User.first_name).ilike(pattern),
                        col(User.last_name).ilike(pattern),
                        col(User.email).ilike(pattern),
                    )
                )
            total = session.exec(select(func.count()).select_from(statement.subquery())).one()
            rows = session.exec(
                statement.order_by(col(User.created_at).desc()).offset((page - 1) * limit).limit(limit)
            ).all()
        return UserListRead(
            users=[UserRead.model_validate(row) for row in rows],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )

    def create_user(self, actor: Actor, payload: UserCreate) -> User:
        email = payload.email.lower()
        with self._session() as session:
            self._ensure_email_free(session, email)
            user = User(
                first_name=payload.first_name,
                last_name=payload.last_name,
                email=email,
                password_hash=hash_password(payload.password),
                role=payload.role,
                phone=payload.phone,
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("email already in use") from exc
            session.refresh(user)

        self.audit.record(
            actor,
            AuditAction.CREATE,
            ENTITY,
            user.id,
            details=f"user created: {user.email}",
            meta={"role": str(user.role)},
        )
        return user

    def update_user(self, actor: Actor, user_id: str, payload: UserUpdate) -> User:
        data = payload.model_dump(exclude_unset=True)
        for field in ("first_name", "last_name", "email", "role", "is_active"):
            if field in data and data[field] is None:
                raise ValidationError(f"{field} cannot be null")
        with self._session() as session:
            user = self._get_user(session, user_id)
            if "email" in data:
                data["email"] = data["email"].lower()
                self._ensure_email_free(session, data["email"], exclude_id=user.id)
            if user.id == actor.id and data.get("is_active") is False:
                raise ValidationError("cannot deactivate your own account")
            for field, value in data.items():
                setattr(user, field, value)
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)

        self.audit.record(actor, AuditAction.UPDATE, ENTITY, user.id, details=f"user updated: {user.email}")
        return user

    def toggle_user_status(self, actor: Actor, user_id: str) -> User:
        if user_id == actor.id:
            raise ValidationError("cannot deactivate your own account")
        with self._session() as session:
            user = self._get_user(session, user_id)
            user.is_active = not user.is_active
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)

        self.audit.record(
            actor,
            AuditAction.UPDATE_STATUS,
            ENTITY,
            user.id,
            details=f"user {'activated' if user.is_active else 'deactivated'}: {user.email}",
            meta={"is_active": user.is_active},
        )
        return user

    def set_avatar(self, actor: Actor, user_id: str, upload: UploadedFile) -> User:
        with self._session() as session:
            user = self._get_user(session, user_id)
            self.attachments.validate_files(AttachmentFileType.AVATAR, [upload])
            self.attachments.delete_for_owner(session, AttachmentFileType.AVATAR, user.id)
            rows = self.attachments.attach(
                session,
                file_type=AttachmentFileType.AVATAR,
                owner_id=user.id,
                files=[upload],
                uploaded_by=actor.id,
                description=f"avatar: {user.first_name} {user.last_name}",
            )
            user.avatar = rows[0].path
            user.updated_at = now_utc()
            session.add(user)
            self.attachments.commit_with_files(session, rows)
            session.refresh(user)

        self.audit.record(actor, AuditAction.UPDATE, ENTITY, user.id, details="avatar updated")
        return user

    def delete_avatar(self, actor: Actor, user_id: str) -> User:
        with self._session() as session:
            user = self._get_user(session, user_id)
            if user.avatar is None:
                raise NotFoundError("user has no avatar")
            removed = self.attachments.delete_for_owner(session, AttachmentFileType.AVATAR, user.id)
            if removed == 0:
                self.attachments.discard_file(user.avatar)
            user.avatar = None
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)

        self.audit.record(actor, AuditAction.UPDATE, ENTITY, user.id, details="avatar removed")
        return user

    def delete_user(self, actor: Actor, user_id: str) -> None:
        if user_id == actor.id:
            raise ValidationError("cannot delete your own account")
        with self._session() as session:
            user = self._get_user(session, user_id)
            if session.exec(select(Report.id).where(Report.technician_id == user.id)).first() is not None:
                raise ConflictError("user owns reports")
            assigned = session.exec(
                select(MaintenanceSchedule).where(MaintenanceSchedule.technician_id == user.id)
            ).all()
            for schedule in assigned:
                schedule.technician_id = None
                schedule.updated_at = now_utc()
                session.add(schedule)
            session.flush()
            email = user.email
            removed = self.attachments.delete_for_owner(session, AttachmentFileType.AVATAR, user.id)
            session.delete(user)
            session.commit()

        self.audit.record(
            actor,
            AuditAction.DELETE,
            ENTITY,
            user_id,
            details=f"user deleted: {email}",
            meta={"schedules_unassigned": len(assigned), "attachments_removed": removed},
        )
