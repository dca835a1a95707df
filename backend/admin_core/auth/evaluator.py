"""
Permission Evaluator - pure checks against a role's grant table.

No I/O, no caching, no shared mutable state: safe to call concurrently.
Role lookup happens in PermissionService; this module only answers questions
about a Role that is already resolved.
"""
from __future__ import annotations

from typing import Iterable

from .permissions import Action, Resource, Role

Grant = tuple[Resource, Action]


def _coerce(resource: Resource | str, action: Action | str) -> Grant | None:
    try:
        return Resource(resource), Action(action)
    except ValueError:
        return None


def is_allowed(role: Role | None, resource: Resource | str, action: Action | str) -> bool:
    """Check a single (resource, action) pair.

    Unknown resources or actions are denied rather than rejected, so a
    malformed request can never widen access.
    """
    if role is None:
        return False
    grant = _coerce(resource, action)
    if grant is None:
        return False
    resource_key, action_key = grant
    return action_key in role.actions_for(resource_key)


def is_allowed_any(role: Role | None, grants: Iterable[Grant]) -> bool:
    return any(is_allowed(role, resource, action) for resource, action in grants)


def is_allowed_all(role: Role | None, grants: Iterable[Grant]) -> bool:
    grants = list(grants)
    if not grants:
        return False
    return all(is_allowed(role, resource, action) for resource, action in grants)


def describe_grants(grants: Iterable[Grant]) -> str:
    return " or ".join(f"{resource.value}:{action.value}" for resource, action in grants)
