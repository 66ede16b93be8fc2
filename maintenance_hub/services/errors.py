from __future__ import annotations


class MaintenanceHubError(Exception):
    pass


class ValidationError(MaintenanceHubError):
    pass


class NotFoundError(MaintenanceHubError):
    pass


class ConflictError(MaintenanceHubError):
    pass


class AuthorizationError(MaintenanceHubError):
    pass


class AuthError(MaintenanceHubError):
    pass
