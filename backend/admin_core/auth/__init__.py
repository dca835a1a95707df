from .evaluator import is_allowed, is_allowed_all, is_allowed_any
from .permissions import (
    SYSTEM_ROLES,
    Action,
    Resource,
    Role,
    RoleType,
    freeze_permissions,
)

__all__ = [
    "SYSTEM_ROLES",
    "Action",
    "Resource",
    "Role",
    "RoleType",
    "freeze_permissions",
    "is_allowed",
    "is_allowed_all",
    "is_allowed_any",
]
