"""
Permission Registry - role definitions and resource/action grants.

This module defines the RBAC model for admin operations:
- Resource and action vocabularies
- The Role value object
- Seeded system roles (super_admin, moderator, finance_admin, support)

SECURITY:
- No wildcard permissions
- No implication between actions (approve does not imply edit)
- System roles are fixed at import time and never mutated
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Final, Iterable, Mapping


class Resource(str, Enum):
    """Protected data categories of the admin console."""

    USERS = "users"
    EVENTS = "events"
    FINANCE = "finance"
    REPORTS = "reports"
    ROLES = "roles"
    SETTINGS = "settings"
    AUDIT_LOGS = "audit_logs"


class Action(str, Enum):
    """Operation classes checked against a role's grants."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    EXPORT = "export"


class RoleType(str, Enum):
    SUPER_ADMIN = "super_admin"
    MODERATOR = "moderator"
    FINANCE = "finance"
    SUPPORT = "support"
    CUSTOM = "custom"


PermissionGrants = Mapping[Resource, frozenset[Action]]

ALL_ACTIONS: Final[frozenset[Action]] = frozenset(Action)


def freeze_permissions(raw: Mapping[Any, Iterable[Any]] | None) -> PermissionGrants:
    """Normalize a resource -> actions mapping into an immutable grant table.

    Accepts enum members or their string values. Resources with no actions
    are dropped, since a missing resource already means "no access".

    Raises:
        ValueError: If a resource or action is not part of the vocabulary
    """
    frozen: dict[Resource, frozenset[Action]] = {}
    for resource, actions in (raw or {}).items():
        resource_key = Resource(resource)
        action_set = frozenset(Action(action) for action in actions)
        if action_set:
            frozen[resource_key] = frozen.get(resource_key, frozenset()) | action_set
    return MappingProxyType(frozen)


def permissions_to_dict(permissions: PermissionGrants) -> dict[str, list[str]]:
    """Plain JSON form used for persistence and audit snapshots."""
    return {
        resource.value: sorted(action.value for action in actions)
        for resource, actions in sorted(permissions.items(), key=lambda item: item[0].value)
    }


@dataclass(frozen=True)
class Role:
    id: str
    name: str
    type: RoleType
    permissions: PermissionGrants = field(default_factory=lambda: freeze_permissions({}))
    description: str = ""
    is_system: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def actions_for(self, resource: Resource) -> frozenset[Action]:
        return self.permissions.get(resource, frozenset())

    def snapshot(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "isSystem": self.is_system,
            "permissions": permissions_to_dict(self.permissions),
        }


SUPER_ADMIN_ROLE_ID: Final[str] = "super_admin"
MODERATOR_ROLE_ID: Final[str] = "moderator"
FINANCE_ADMIN_ROLE_ID: Final[str] = "finance_admin"
SUPPORT_ROLE_ID: Final[str] = "support"


def _system_role(
    role_id: str,
    name: str,
    role_type: RoleType,
    description: str,
    grants: Mapping[Resource, Iterable[Action]],
) -> Role:
    return Role(
        id=role_id,
        name=name,
        type=role_type,
        description=description,
        is_system=True,
        permissions=freeze_permissions(grants),
    )


_VIEW_ONLY = (Action.VIEW,)

SYSTEM_ROLES: Final[Mapping[str, Role]] = MappingProxyType({
    SUPER_ADMIN_ROLE_ID: _system_role(
        SUPER_ADMIN_ROLE_ID,
        "Super Admin",
        RoleType.SUPER_ADMIN,
        "Full access to every admin module.",
        {
            Resource.USERS: ALL_ACTIONS,
            Resource.EVENTS: ALL_ACTIONS,
            Resource.FINANCE: ALL_ACTIONS,
            Resource.REPORTS: (Action.VIEW, Action.CREATE, Action.EXPORT),
            Resource.ROLES: (Action.VIEW, Action.CREATE, Action.EDIT, Action.DELETE),
            Resource.SETTINGS: (Action.VIEW, Action.EDIT),
            Resource.AUDIT_LOGS: (Action.VIEW, Action.EXPORT),
        },
    ),
    MODERATOR_ROLE_ID: _system_role(
        MODERATOR_ROLE_ID,
        "Moderator",
        RoleType.MODERATOR,
        "Moderates users and events. Finance is read-only.",
        {
            Resource.USERS: (Action.VIEW, Action.EDIT, Action.APPROVE),
            Resource.EVENTS: (Action.VIEW, Action.EDIT, Action.DELETE, Action.APPROVE),
            Resource.FINANCE: _VIEW_ONLY,
            Resource.REPORTS: _VIEW_ONLY,
            Resource.ROLES: _VIEW_ONLY,
            Resource.SETTINGS: _VIEW_ONLY,
            Resource.AUDIT_LOGS: _VIEW_ONLY,
        },
    ),
    FINANCE_ADMIN_ROLE_ID: _system_role(
        FINANCE_ADMIN_ROLE_ID,
        "Finance Admin",
        RoleType.FINANCE,
        "Manages payouts. Other modules are read-only.",
        {
            Resource.USERS: _VIEW_ONLY,
            Resource.EVENTS: _VIEW_ONLY,
            Resource.FINANCE: (
                Action.VIEW,
                Action.CREATE,
                Action.EDIT,
                Action.APPROVE,
                Action.EXPORT,
            ),
            Resource.REPORTS: (Action.VIEW, Action.EXPORT),
            Resource.ROLES: _VIEW_ONLY,
            Resource.SETTINGS: _VIEW_ONLY,
            Resource.AUDIT_LOGS: _VIEW_ONLY,
        },
    ),
    SUPPORT_ROLE_ID: _system_role(
        SUPPORT_ROLE_ID,
        "Support",
        RoleType.SUPPORT,
        "Read-only access to every module.",
        {resource: _VIEW_ONLY for resource in Resource},
    ),
})

DEFAULT_ROLE_ID: Final[str] = SUPPORT_ROLE_ID

# Most to least privileged; custom roles always rank last.
ROLE_POWER_ORDER: Final[tuple[RoleType, ...]] = (
    RoleType.SUPER_ADMIN,
    RoleType.MODERATOR,
    RoleType.FINANCE,
    RoleType.SUPPORT,
    RoleType.CUSTOM,
)


def is_system_role_id(role_id: str) -> bool:
    return role_id in SYSTEM_ROLES


def get_default_role() -> Role:
    return SYSTEM_ROLES[DEFAULT_ROLE_ID]


def is_role_more_powerful(role_a: Role, role_b: Role) -> bool:
    return ROLE_POWER_ORDER.index(role_a.type) < ROLE_POWER_ORDER.index(role_b.type)


def roles_with_access(
    resource: Resource | str,
    action: Action | str,
    roles: Iterable[Role],
) -> list[Role]:
    """Return the roles among ``roles`` that grant ``action`` on ``resource``."""
    resource_key = Resource(resource)
    action_key = Action(action)
    return [role for role in roles if action_key in role.actions_for(resource_key)]
