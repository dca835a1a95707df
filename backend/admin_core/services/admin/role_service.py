"""
Service layer for admin role administration.

- Permission checks via PermissionService (roles:view/create/edit/delete)
- System roles are immutable: update and delete fail before any permission
  check, whoever the caller is
- Every successful mutation is audited via AuditService
"""
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

from ...auth.permissions import (
    Action,
    Resource,
    Role,
    RoleType,
    freeze_permissions,
    is_system_role_id,
)
from ...domain.entities import EntityKind
from ...domain.ports import ActorDirectory, AuditSink, RoleStore
from ...errors import ConflictError, ImmutableRoleError, NotFoundError, ValidationError
from ..audit.audit_service import AuditOutcome, AuditService, new_audit_id, utc_now
from .permission_service import PermissionService
from .results import RoleResult

logger = logging.getLogger("admin_core.roles")

_ROLE = EntityKind.ROLE.value

RawPermissions = Mapping[Any, Iterable[Any]]


def new_custom_role_id() -> str:
    return f"custom_{uuid.uuid4().hex[:12]}"


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Role name must not be empty", details={"field": "name"})
    return cleaned


def _freeze(raw: RawPermissions | None):
    try:
        return freeze_permissions(raw)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": "permissions"}) from exc


def _result(role: Role | None, outcome: AuditOutcome) -> RoleResult:
    warnings = (outcome.warning,) if outcome.warning is not None else ()
    return RoleResult(role=role, audit_entry=outcome.entry, warnings=warnings)


class RoleService:
    def __init__(
        self,
        role_store: RoleStore,
        audit_sink: AuditSink,
        actors: ActorDirectory,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_audit_id,
        role_id_factory: Callable[[], str] = new_custom_role_id,
    ):
        self.role_store = role_store
        self.clock = clock
        self.role_id_factory = role_id_factory
        self.permission_service = PermissionService(actors, role_store)
        self.audit_service = AuditService(audit_sink, clock=clock, id_factory=id_factory)

    async def list_roles(self, actor_id: str) -> list[Role]:
        """System roles first, then custom roles by name."""
        await self.permission_service.require_permission(actor_id, Resource.ROLES, Action.VIEW)
        roles = await self.role_store.list_roles()
        return sorted(roles, key=lambda role: (not role.is_system, role.name.lower(), role.id))

    async def get_role(self, actor_id: str, role_id: str) -> Role:
        await self.permission_service.require_permission(actor_id, Resource.ROLES, Action.VIEW)
        return await self._load(role_id)

    async def _load(self, role_id: str) -> Role:
        role = await self.role_store.get_role(role_id)
        if role is None:
            raise NotFoundError(f"Role {role_id} not found", details={"roleId": role_id})
        return role

    async def _ensure_unique_name(self, name: str, exclude_id: str | None = None) -> None:
        for role in await self.role_store.list_roles():
            if role.id != exclude_id and role.name.strip().lower() == name.lower():
                raise ConflictError(
                    f"A role named '{name}' already exists",
                    details={"field": "name", "roleId": role.id},
                )

    def _reject_system_role(self, role_id: str, operation: str, role: Role | None = None) -> None:
        if is_system_role_id(role_id) or (role is not None and role.is_system):
            logger.warning("System role change rejected role_id=%s operation=%s", role_id, operation)
            raise ImmutableRoleError(
                f"System role {role_id} cannot be {operation}",
                details={"roleId": role_id, "operation": operation},
            )

    async def create_role(
        self,
        actor_id: str,
        name: str,
        permissions: RawPermissions | None = None,
        description: str = "",
    ) -> RoleResult:
        """
        Create a custom role.

        Raises:
            PermissionDeniedError: Without roles:create
            ValidationError: On a blank name or unknown resource/action
            ConflictError: If the name is taken (case-insensitive)
        """
        authorized = await self.permission_service.require_permission(
            actor_id, Resource.ROLES, Action.CREATE
        )
        name = _clean_name(name)
        grants = _freeze(permissions)
        await self._ensure_unique_name(name)

        now = self.clock()
        role = Role(
            id=self.role_id_factory(),
            name=name,
            type=RoleType.CUSTOM,
            permissions=grants,
            description=(description or "").strip(),
            is_system=False,
            created_at=now,
            updated_at=now,
        )
        saved = await self.role_store.save_role(role)
        outcome = await self.audit_service.log_create(
            _ROLE,
            saved.id,
            saved.snapshot(),
            authorized.actor,
            description=f"Role {saved.name} created",
        )
        logger.info("Role created role_id=%s actor_id=%s", saved.id, actor_id)
        return _result(saved, outcome)

    async def update_role(
        self,
        actor_id: str,
        role_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        permissions: RawPermissions | None = None,
    ) -> RoleResult:
        """
        Update a custom role. Omitted fields are left unchanged.

        Raises:
            ImmutableRoleError: For system roles, before any permission check
            PermissionDeniedError: Without roles:edit
            NotFoundError: If the role does not exist
        """
        self._reject_system_role(role_id, "updated")
        authorized = await self.permission_service.require_permission(
            actor_id, Resource.ROLES, Action.EDIT
        )
        existing = await self._load(role_id)
        self._reject_system_role(role_id, "updated", existing)

        changes: dict[str, Any] = {"updated_at": self.clock()}
        if name is not None:
            changes["name"] = _clean_name(name)
            await self._ensure_unique_name(changes["name"], exclude_id=role_id)
        if description is not None:
            changes["description"] = description.strip()
        if permissions is not None:
            changes["permissions"] = _freeze(permissions)

        updated = await self.role_store.save_role(replace(existing, **changes))
        outcome = await self.audit_service.log_update(
            _ROLE,
            role_id,
            existing.snapshot(),
            updated.snapshot(),
            authorized.actor,
            description=f"Role {existing.name} updated",
        )
        logger.info("Role updated role_id=%s actor_id=%s", role_id, actor_id)
        return _result(updated, outcome)

    async def delete_role(self, actor_id: str, role_id: str) -> RoleResult:
        """
        Raises:
            ImmutableRoleError: For system roles, before any permission check
            PermissionDeniedError: Without roles:delete
            NotFoundError: If the role does not exist
        """
        self._reject_system_role(role_id, "deleted")
        authorized = await self.permission_service.require_permission(
            actor_id, Resource.ROLES, Action.DELETE
        )
        existing = await self._load(role_id)
        self._reject_system_role(role_id, "deleted", existing)

        if not await self.role_store.delete_role(role_id):
            raise NotFoundError(f"Role {role_id} not found", details={"roleId": role_id})
        outcome = await self.audit_service.log_delete(
            _ROLE,
            role_id,
            existing.snapshot(),
            authorized.actor,
            description=f"Role {existing.name} deleted",
        )
        logger.info("Role deleted role_id=%s actor_id=%s", role_id, actor_id)
        return _result(None, outcome)

    async def duplicate_role(self, actor_id: str, source_role_id: str, name: str) -> RoleResult:
        """
        Copy any role, system roles included, into a new custom role.

        The copy takes a snapshot of the source's grants; later changes to
        either role do not affect the other.

        Raises:
            PermissionDeniedError: Without roles:create
            NotFoundError: If the source role does not exist
        """
        authorized = await self.permission_service.require_permission(
            actor_id, Resource.ROLES, Action.CREATE
        )
        source = await self._load(source_role_id)
        name = _clean_name(name)
        await self._ensure_unique_name(name)

        now = self.clock()
        role = Role(
            id=self.role_id_factory(),
            name=name,
            type=RoleType.CUSTOM,
            permissions=freeze_permissions(source.permissions),
            description=source.description,
            is_system=False,
            created_at=now,
            updated_at=now,
        )
        saved = await self.role_store.save_role(role)
        outcome = await self.audit_service.log(
            action="role.create",
            target_type=_ROLE,
            target_id=saved.id,
            actor=authorized.actor,
            new_value={**saved.snapshot(), "sourceRole": source.id},
            description=f"Role {saved.name} duplicated from {source.name}",
        )
        logger.info(
            "Role duplicated role_id=%s source_role_id=%s actor_id=%s",
            saved.id,
            source.id,
            actor_id,
        )
        return _result(saved, outcome)
