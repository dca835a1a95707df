"""
In-memory adapters for the core's ports.

Used by tests and for embedding the core without a database. They enforce
the same contracts as the SQLAlchemy repositories: optimistic ``version``
checks on save/delete, append-only audit storage, and system roles that can
be read but never stored or removed.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable

from ..auth.permissions import SYSTEM_ROLES, Role
from ..domain.entities import ENTITY_TYPES, AuditLogEntry, Entity, EntityKind, ensure_utc
from ..errors import ConcurrentModificationError, ImmutableRoleError, NotFoundError


def _check_kind(kind: EntityKind, entity: Entity) -> None:
    expected = ENTITY_TYPES.get(kind)
    if expected is None or not isinstance(entity, expected):
        raise TypeError(f"{type(entity).__name__} is not a {kind.value}")


class InMemoryEntityRepository:
    def __init__(self, entities: Iterable[Entity] = ()):
        self._store: dict[EntityKind, dict[str, Entity]] = {kind: {} for kind in ENTITY_TYPES}
        for entity in entities:
            self.add(entity)

    def add(self, entity: Entity) -> Entity:
        """Seed an entity as-is, bypassing version checks."""
        for kind, entity_type in ENTITY_TYPES.items():
            if isinstance(entity, entity_type):
                self._store[kind][entity.id] = entity
                return entity
        raise TypeError(f"Unsupported entity {type(entity).__name__}")

    async def load(self, kind: EntityKind, entity_id: str) -> Entity | None:
        return self._store.get(kind, {}).get(entity_id)

    def _check_version(self, kind: EntityKind, entity: Entity) -> Entity:
        stored = self._store[kind].get(entity.id)
        if stored is None:
            raise NotFoundError(
                f"{kind.value.capitalize()} {entity.id} not found",
                details={"targetType": kind.value, "targetId": entity.id},
            )
        if stored.version != entity.version:
            raise ConcurrentModificationError(
                f"{kind.value.capitalize()} {entity.id} was modified concurrently",
                details={
                    "targetType": kind.value,
                    "targetId": entity.id,
                    "expectedVersion": entity.version,
                    "currentVersion": stored.version,
                },
            )
        return stored

    async def save(self, kind: EntityKind, entity: Entity) -> Entity:
        _check_kind(kind, entity)
        self._check_version(kind, entity)
        saved = replace(entity, version=entity.version + 1)
        self._store[kind][entity.id] = saved
        return saved

    async def delete(self, kind: EntityKind, entity: Entity) -> None:
        _check_kind(kind, entity)
        self._check_version(kind, entity)
        del self._store[kind][entity.id]

    async def list(self, kind: EntityKind) -> list[Entity]:
        return list(self._store.get(kind, {}).values())


class InMemoryAuditLog:
    """Append-only audit storage that also answers audit queries."""

    def __init__(self):
        self._entries: list[AuditLogEntry] = []

    async def append(self, entry: AuditLogEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[AuditLogEntry, ...]:
        return tuple(self._entries)

    async def query(
        self,
        *,
        actor_id: str | None = None,
        action: str | None = None,
        target_type: str | None = None,
        target_id: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLogEntry]:
        matches = [
            entry
            for entry in self._entries
            if (actor_id is None or entry.actor_id == actor_id)
            and (action is None or entry.action == action)
            and (target_type is None or entry.target_type == target_type)
            and (target_id is None or entry.target_id == target_id)
            and (from_date is None or entry.timestamp >= ensure_utc(from_date))
            and (to_date is None or entry.timestamp <= ensure_utc(to_date))
        ]
        # Stable sort keeps append order among equal timestamps, reversed.
        ordered = sorted(reversed(matches), key=lambda entry: entry.timestamp, reverse=True)
        return ordered[offset:offset + limit]


class InMemoryRoleStore:
    """Custom roles in a dict; system roles are served from the registry."""

    def __init__(self, roles: Iterable[Role] = ()):
        self._custom: dict[str, Role] = {}
        for role in roles:
            self._custom[role.id] = role

    async def get_role(self, role_id: str) -> Role | None:
        return SYSTEM_ROLES.get(role_id) or self._custom.get(role_id)

    async def list_roles(self) -> list[Role]:
        return [*SYSTEM_ROLES.values(), *self._custom.values()]

    async def save_role(self, role: Role) -> Role:
        if role.is_system or role.id in SYSTEM_ROLES:
            raise ImmutableRoleError(f"System role {role.id} cannot be stored")
        self._custom[role.id] = role
        return role

    async def delete_role(self, role_id: str) -> bool:
        if role_id in SYSTEM_ROLES:
            raise ImmutableRoleError(f"System role {role_id} cannot be deleted")
        return self._custom.pop(role_id, None) is not None
