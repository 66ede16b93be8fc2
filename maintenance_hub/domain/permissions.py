from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from maintenance_hub.domain.models import Role

ASSIGNABLE_TECHNICIAN_ROLES = frozenset({Role.TECHNICIAN, Role.ADMIN})
SCHEDULE_WRITE_ROLES = (Role.ADMIN, Role.TECHNICIAN)
MACHINE_WRITE_ROLES = (Role.ADMIN, Role.TECHNICIAN)
REPORT_DELETE_ROLES = (Role.ADMIN, Role.TECHNICIAN)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, as trusted by the services."""

    id: str
    role: Role
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def is_technician(self) -> bool:
        return self.role == Role.TECHNICIAN


def has_role(claims: dict[str, Any], *roles: Role) -> bool:
    role = claims.get("role")
    if not isinstance(role, str):
        return False
    return not roles or role in {item.value for item in roles}


def can_be_assigned_technician(role: Role | str) -> bool:
    return role in ASSIGNABLE_TECHNICIAN_ROLES
