import logging
from dataclasses import dataclass
from typing import Iterable

from ...auth.evaluator import Grant, describe_grants, is_allowed, is_allowed_all, is_allowed_any
from ...auth.permissions import Action, Resource, Role, RoleType
from ...domain.entities import Actor, EntityKind, UserAccount, UserStatus
from ...domain.ports import ActorDirectory, EntityRepository, RoleStore
from ...errors import PermissionDeniedError

logger = logging.getLogger("admin_core.permissions")

_INACTIVE_STATUSES = frozenset({UserStatus.SUSPENDED, UserStatus.BANNED})


@dataclass(frozen=True)
class AuthorizedActor:
    actor: Actor
    role: Role


class PermissionService:
    """Resolves an actor's role and checks grants against it.

    SECURITY: fails closed. An unknown actor, a dangling role reference, or
    an unknown resource/action all read as "not allowed". Roles are looked up
    through the RoleStore on every call and never cached here.
    """

    def __init__(self, actors: ActorDirectory, roles: RoleStore):
        self.actors = actors
        self.roles = roles

    async def resolve(self, actor_id: str) -> AuthorizedActor | None:
        actor = await self.actors.get_actor(actor_id)
        if actor is None:
            return None
        role = await self.roles.get_role(actor.role_id)
        if role is None:
            logger.warning(
                "Actor references unknown role actor_id=%s role_id=%s",
                actor.id,
                actor.role_id,
            )
            return None
        return AuthorizedActor(actor=actor, role=role)

    async def has_permission(
        self,
        actor_id: str,
        resource: Resource | str,
        action: Action | str,
    ) -> bool:
        """Check a single grant for the actor.

        Args:
            actor_id: The admin to check
            resource: Resource name (e.g. 'events')
            action: Action name (e.g. 'approve')

        Returns:
            bool: True only if the actor's role grants the action
        """
        authorized = await self.resolve(actor_id)
        if authorized is None:
            return False
        return is_allowed(authorized.role, resource, action)

    async def has_any_permission(self, actor_id: str, grants: Iterable[Grant]) -> bool:
        authorized = await self.resolve(actor_id)
        if authorized is None:
            return False
        return is_allowed_any(authorized.role, grants)

    async def has_all_permissions(self, actor_id: str, grants: Iterable[Grant]) -> bool:
        authorized = await self.resolve(actor_id)
        if authorized is None:
            return False
        return is_allowed_all(authorized.role, grants)

    def _deny(self, actor_id: str, required: str, operation: str | None = None) -> PermissionDeniedError:
        logger.warning(
            "Permission denied actor_id=%s required=%s operation=%s",
            actor_id,
            required,
            operation,
        )
        details = {"required": required}
        if operation is not None:
            details["operation"] = operation
        return PermissionDeniedError(
            f"Permission denied: {required} required",
            details=details,
        )

    async def require_permission(
        self,
        actor_id: str,
        resource: Resource | str,
        action: Action | str,
    ) -> AuthorizedActor:
        """Return the resolved actor or raise.

        Raises:
            PermissionDeniedError: If the actor is unknown or lacks the grant
        """
        required = f"{getattr(resource, 'value', resource)}:{getattr(action, 'value', action)}"
        authorized = await self.resolve(actor_id)
        if authorized is None or not is_allowed(authorized.role, resource, action):
            raise self._deny(actor_id, required)
        return authorized

    async def require_any_permission(
        self,
        actor_id: str,
        grants: Iterable[Grant],
        operation: str | None = None,
    ) -> AuthorizedActor:
        """
        Raises:
            PermissionDeniedError: If none of ``grants`` is held
        """
        grants = list(grants)
        authorized = await self.resolve(actor_id)
        if authorized is None or not is_allowed_any(authorized.role, grants):
            raise self._deny(actor_id, describe_grants(grants), operation)
        return authorized

    async def require_elevated(self, actor_id: str, operation: str) -> AuthorizedActor:
        """Require the super_admin role type, for operations outside the grant table.

        Raises:
            PermissionDeniedError: If the actor's role is not super_admin
        """
        authorized = await self.resolve(actor_id)
        if authorized is None or authorized.role.type != RoleType.SUPER_ADMIN:
            raise self._deny(actor_id, RoleType.SUPER_ADMIN.value, operation)
        return authorized


class UserActorDirectory:
    """Admin identities backed by user records.

    A user acts as an admin only while flagged ``is_admin`` with a role
    reference and not suspended or banned.
    """

    def __init__(self, repository: EntityRepository):
        self.repository = repository

    async def get_actor(self, actor_id: str) -> Actor | None:
        user = await self.repository.load(EntityKind.USER, actor_id)
        if not isinstance(user, UserAccount):
            return None
        if not user.is_admin or not user.admin_role_id:
            return None
        if user.status in _INACTIVE_STATUSES:
            return None
        return Actor(id=user.id, name=user.name, email=user.email, role_id=user.admin_role_id)
