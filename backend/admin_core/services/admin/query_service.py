from dataclasses import replace
from datetime import datetime
from enum import Enum

from ...auth.permissions import Action, Resource
from ...domain.entities import (
    ApprovalStatus,
    AuditLogEntry,
    Entity,
    EntityKind,
    PayoutStatus,
    UserStatus,
    VerificationStatus,
    ensure_utc,
)
from ...domain.ports import ActorDirectory, AuditLogReader, EntityRepository, RoleStore
from ...domain.projections import (
    EVENT_FILTERS,
    PAYOUT_FILTERS,
    USER_FILTERS,
    DashboardStats,
    EntityFilter,
    ModerationQueueItem,
    build_moderation_queue,
    dashboard_stats,
    filter_events,
    filter_payouts,
    filter_users,
)
from ...domain.transitions import LIFECYCLES
from ...errors import NotFoundError, ValidationError
from .permission_service import PermissionService

_FILTERS = {
    EntityKind.USER: (USER_FILTERS, filter_users),
    EntityKind.EVENT: (EVENT_FILTERS, filter_events),
    EntityKind.PAYOUT: (PAYOUT_FILTERS, filter_payouts),
}

_ENUM_FILTERS: dict[EntityKind, dict[str, type[Enum]]] = {
    EntityKind.USER: {"status": UserStatus, "verification_status": VerificationStatus},
    EntityKind.EVENT: {"approval_status": ApprovalStatus},
    EntityKind.PAYOUT: {"status": PayoutStatus},
}


def _date_range(
    from_date: datetime | None, to_date: datetime | None
) -> tuple[datetime | None, datetime | None]:
    from_date = ensure_utc(from_date) if from_date is not None else None
    to_date = ensure_utc(to_date) if to_date is not None else None
    if from_date is not None and to_date is not None and from_date > to_date:
        raise ValidationError(
            "fromDate must not be after toDate",
            details={"fromDate": from_date.isoformat(), "toDate": to_date.isoformat()},
        )
    return from_date, to_date


class AdminQueryService:
    """Read side of the admin console.

    Nothing here is cached: every call recomputes from the repository, so
    lists, counts and the moderation queue always match persisted state.
    """

    def __init__(
        self,
        repository: EntityRepository,
        audit_reader: AuditLogReader,
        role_store: RoleStore,
        actors: ActorDirectory,
    ):
        self.repository = repository
        self.audit_reader = audit_reader
        self.permission_service = PermissionService(actors, role_store)

    def _kind(self, resource: Resource | str) -> EntityKind:
        try:
            lifecycle = LIFECYCLES.get(Resource(resource))
        except ValueError:
            lifecycle = None
        if lifecycle is None:
            raise ValidationError(
                f"Resource '{getattr(resource, 'value', resource)}' has no entities",
                details={"resource": getattr(resource, "value", resource)},
            )
        return lifecycle.kind

    def _check_filter(self, kind: EntityKind, criteria: EntityFilter) -> EntityFilter:
        supported, _ = _FILTERS[kind]
        unsupported = criteria.active_fields() - supported
        if unsupported:
            raise ValidationError(
                f"Unsupported filters for {kind.value}: {', '.join(sorted(unsupported))}",
                details={"filters": sorted(unsupported)},
            )
        values = {}
        for name, enum_type in _ENUM_FILTERS[kind].items():
            raw = getattr(criteria, name)
            if raw is None:
                continue
            try:
                values[name] = enum_type(raw)
            except ValueError:
                raise ValidationError(
                    f"Unknown {name} '{raw}'",
                    details={name: raw, "allowed": [member.value for member in enum_type]},
                ) from None
        if (
            criteria.min_amount is not None
            and criteria.max_amount is not None
            and criteria.min_amount > criteria.max_amount
        ):
            raise ValidationError("minAmount must not exceed maxAmount")
        values["from_date"], values["to_date"] = _date_range(criteria.from_date, criteria.to_date)
        return replace(criteria, **values)

    async def list_entities(
        self,
        actor_id: str,
        resource: Resource | str,
        criteria: EntityFilter | None = None,
    ) -> list[Entity]:
        """Every entity of the resource's kind, narrowed by ``criteria`` when given."""
        await self.permission_service.require_permission(actor_id, resource, Action.VIEW)
        kind = self._kind(resource)
        entities = await self.repository.list(kind)
        if criteria is None:
            return entities
        criteria = self._check_filter(kind, criteria)
        _, apply_filter = _FILTERS[kind]
        return apply_filter(entities, criteria)

    async def get_entity(self, actor_id: str, resource: Resource | str, entity_id: str) -> Entity:
        await self.permission_service.require_permission(actor_id, resource, Action.VIEW)
        kind = self._kind(resource)
        entity = await self.repository.load(kind, entity_id)
        if entity is None:
            raise NotFoundError(
                f"{kind.value.capitalize()} {entity_id} not found",
                details={"targetType": kind.value, "targetId": entity_id},
            )
        return entity

    async def moderation_queue(self, actor_id: str) -> list[ModerationQueueItem]:
        await self.permission_service.require_permission(actor_id, Resource.EVENTS, Action.VIEW)
        events = await self.repository.list(EntityKind.EVENT)
        return build_moderation_queue(events)

    async def dashboard_stats(self, actor_id: str) -> DashboardStats:
        await self.permission_service.require_permission(actor_id, Resource.REPORTS, Action.VIEW)
        return dashboard_stats(
            await self.repository.list(EntityKind.USER),
            await self.repository.list(EntityKind.EVENT),
            await self.repository.list(EntityKind.PAYOUT),
        )

    async def audit_logs(
        self,
        actor_id: str,
        *,
        actor_filter: str | None = None,
        action: str | None = None,
        target_type: str | None = None,
        target_id: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLogEntry]:
        """Newest first. ``actor_filter`` narrows to one acting admin."""
        await self.permission_service.require_permission(actor_id, Resource.AUDIT_LOGS, Action.VIEW)
        if limit <= 0 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        from_date, to_date = _date_range(from_date, to_date)
        return await self.audit_reader.query(
            actor_id=actor_filter,
            action=action,
            target_type=target_type,
            target_id=target_id,
            from_date=from_date,
            to_date=to_date,
            limit=limit,
            offset=offset,
        )
