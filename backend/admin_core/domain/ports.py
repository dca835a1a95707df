from __future__ import annotations

from datetime import datetime
from typing import AsyncContextManager, Protocol

from ..auth.permissions import Role
from .entities import Actor, AuditLogEntry, Entity, EntityKind


class EntityRepository(Protocol):
    """Persistence collaborator for moderated entities.

    ``save`` and ``delete`` compare the entity's ``version`` with the stored
    one and raise ConcurrentModificationError on mismatch.
    """

    async def load(self, kind: EntityKind, entity_id: str) -> Entity | None:
        ...

    async def save(self, kind: EntityKind, entity: Entity) -> Entity:
        ...

    async def delete(self, kind: EntityKind, entity: Entity) -> None:
        ...

    async def list(self, kind: EntityKind) -> list[Entity]:
        ...


class AuditSink(Protocol):
    async def append(self, entry: AuditLogEntry) -> None:
        ...


class AuditLogReader(Protocol):
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
        ...


class RoleStore(Protocol):
    async def get_role(self, role_id: str) -> Role | None:
        ...

    async def list_roles(self) -> list[Role]:
        ...

    async def save_role(self, role: Role) -> Role:
        ...

    async def delete_role(self, role_id: str) -> bool:
        ...


class ActorDirectory(Protocol):
    async def get_actor(self, actor_id: str) -> Actor | None:
        ...


class EntityLockProvider(Protocol):
    def lock(self, key: str) -> AsyncContextManager[None]:
        ...
