"""
Action Orchestrator - the only entry point that mutates moderated entities.

Each call runs these gates in order, and nothing is written before the
fourth:

1. Resolve the actor's role and check the transition's grants
2. Take the per-entity lock and load the current state
3. Run the pure transition (precondition and reason checks)
4. Persist against the loaded version, then append the audit entry

Once persistence has started the remaining work is shielded from
cancellation. Audit-write failures never undo a committed mutation; they come
back as warnings on the result.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from ...auth.permissions import Resource
from ...domain.entities import AuditLogEntry, Entity, EntityKind
from ...domain.ports import ActorDirectory, AuditSink, EntityLockProvider, EntityRepository, RoleStore
from ...domain.transitions import LIFECYCLES, LifecycleTable, TransitionContext, TransitionSpec
from ...errors import NotFoundError, ValidationError
from ..audit.audit_service import AuditService, new_audit_id, utc_now
from .lock_service import EntityLockRegistry, entity_lock_key
from .permission_service import AuthorizedActor, PermissionService
from .results import ExecutionResult

logger = logging.getLogger("admin_core.orchestrator")


def _lookup(resource: Resource | str) -> LifecycleTable | None:
    try:
        return LIFECYCLES.get(Resource(resource))
    except ValueError:
        return None


class ActionOrchestrator:
    def __init__(
        self,
        repository: EntityRepository,
        audit_sink: AuditSink,
        role_store: RoleStore,
        actors: ActorDirectory,
        locks: EntityLockProvider | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_audit_id,
    ):
        self.repository = repository
        self.role_store = role_store
        self.locks = locks if locks is not None else EntityLockRegistry()
        self.clock = clock
        self.permission_service = PermissionService(actors, role_store)
        self.audit_service = AuditService(audit_sink, clock=clock, id_factory=id_factory)

    async def execute(
        self,
        actor_id: str,
        resource: Resource | str,
        action: str,
        target_id: str,
        reason: str | None = None,
        *,
        role_id: str | None = None,
    ) -> ExecutionResult:
        """
        Run one lifecycle transition against one entity.

        Args:
            actor_id: Admin performing the action
            resource: 'users', 'events' or 'finance'
            action: Transition name (e.g. 'approve', 'suspend', 'process')
            target_id: Id of the entity to change
            reason: Free-text reason, mandatory for some transitions
            role_id: New admin role for 'change_role' (None removes it)

        Returns:
            ExecutionResult with the persisted entity (None after delete),
            the audit entry, and any audit-write warnings

        Raises:
            PermissionDeniedError: If the actor's role lacks the grant
            ValidationError: If the resource has no such transition
            NotFoundError: If the target (or the requested role) does not exist
            InvalidTransitionError: If the current state forbids the transition
            ReasonRequiredError: If a required reason is missing or blank
            ConcurrentModificationError: If the entity changed since it was loaded
        """
        lifecycle = _lookup(resource)
        spec = lifecycle.transitions.get(action) if lifecycle is not None else None

        authorized = await self._authorize(actor_id, resource, action, spec)
        if lifecycle is None or spec is None:
            raise ValidationError(
                f"Unsupported action '{action}' for resource '{getattr(resource, 'value', resource)}'",
                details={"resource": getattr(resource, "value", resource), "action": action},
            )

        if spec.name == "change_role" and role_id is not None:
            if await self.role_store.get_role(role_id) is None:
                raise NotFoundError(f"Role {role_id} not found", details={"roleId": role_id})

        kind = lifecycle.kind
        async with self.locks.lock(entity_lock_key(kind.value, target_id)):
            current = await self.repository.load(kind, target_id)
            if current is None:
                raise NotFoundError(
                    f"{kind.value.capitalize()} {target_id} not found",
                    details={"targetType": kind.value, "targetId": target_id},
                )

            ctx = TransitionContext(
                actor_id=authorized.actor.id,
                at=self.clock(),
                reason=reason,
                role_id=role_id,
            )
            updated = spec.apply(current, ctx)
            entry = self.audit_service.build_entry(
                action=spec.audit_action,
                target_type=kind.value,
                target_id=current.id,
                actor=authorized.actor,
                previous_value=current.lifecycle_snapshot(),
                new_value=None if spec.deletes else updated.lifecycle_snapshot(),
                description=spec.describe(updated, ctx),
                timestamp=ctx.at,
            )

            commit = asyncio.ensure_future(self._commit(kind, current, updated, spec, entry))
            try:
                return await asyncio.shield(commit)
            except asyncio.CancelledError:
                # Persistence already started: finish it, then honour the cancel.
                await commit
                raise

    async def _authorize(
        self,
        actor_id: str,
        resource: Resource | str,
        action: str,
        spec: TransitionSpec[Any] | None,
    ) -> AuthorizedActor:
        if spec is None:
            # Pairs the role does not hold are denied before they are reported
            # as unsupported.
            return await self.permission_service.require_permission(actor_id, resource, action)
        if spec.elevated:
            return await self.permission_service.require_elevated(actor_id, spec.audit_action)
        return await self.permission_service.require_any_permission(
            actor_id, spec.required, operation=spec.audit_action
        )

    async def _commit(
        self,
        kind: EntityKind,
        current: Entity,
        updated: Entity,
        spec: TransitionSpec[Any],
        entry: AuditLogEntry,
    ) -> ExecutionResult:
        if spec.deletes:
            await self.repository.delete(kind, current)
            saved = None
        else:
            saved = await self.repository.save(kind, updated)

        outcome = await self.audit_service.record(entry)
        logger.info(
            "Action executed action=%s target_type=%s target_id=%s actor_id=%s audited=%s",
            spec.audit_action,
            kind.value,
            current.id,
            entry.actor_id,
            outcome.recorded,
        )
        warnings = (outcome.warning,) if outcome.warning is not None else ()
        return ExecutionResult(entity=saved, audit_entry=entry, warnings=warnings)
