from dataclasses import fields
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.entities import (
    ENTITY_TYPES,
    ApprovalStatus,
    Entity,
    EntityKind,
    PayoutStatus,
    UserStatus,
    VerificationStatus,
    ensure_utc,
)
from ..errors import ConcurrentModificationError, NotFoundError
from ..models import EventModel, PayoutModel, UserModel

MODELS = {
    EntityKind.USER: UserModel,
    EntityKind.EVENT: EventModel,
    EntityKind.PAYOUT: PayoutModel,
}

_ENUM_FIELDS: dict[EntityKind, dict[str, type[Enum]]] = {
    EntityKind.USER: {"status": UserStatus, "verification_status": VerificationStatus},
    EntityKind.EVENT: {"approval_status": ApprovalStatus},
    EntityKind.PAYOUT: {"status": PayoutStatus},
}


def _as_utc(value: Any) -> Any:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def to_entity(kind: EntityKind, row: Any) -> Entity:
    enum_fields = _ENUM_FIELDS[kind]
    values: dict[str, Any] = {}
    for f in fields(ENTITY_TYPES[kind]):
        value = _as_utc(getattr(row, f.name))
        if f.name in enum_fields and value is not None:
            value = enum_fields[f.name](value)
        values[f.name] = value
    return ENTITY_TYPES[kind](**values)


def to_columns(entity: Entity) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for f in fields(entity):
        value = getattr(entity, f.name)
        values[f.name] = value.value if isinstance(value, Enum) else value
    return values


class EntityRepository:
    """SQLAlchemy store for users, events and payouts.

    Every call runs in its own transaction. ``save`` and ``delete`` are
    conditional on the caller's ``version``; a stale version never
    overwrites newer state.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    def _model(self, kind: EntityKind):
        model = MODELS.get(kind)
        if model is None:
            raise ValueError(f"No table for entity kind '{kind.value}'")
        return model

    async def create(self, kind: EntityKind, entity: Entity) -> Entity:
        model = self._model(kind)
        async with self.session_factory() as session:
            row = model(**to_columns(entity))
            session.add(row)
            await session.commit()
            return to_entity(kind, row)

    async def load(self, kind: EntityKind, entity_id: str) -> Entity | None:
        model = self._model(kind)
        async with self.session_factory() as session:
            row = await session.get(model, entity_id)
            return to_entity(kind, row) if row is not None else None

    async def list(self, kind: EntityKind) -> list[Entity]:
        model = self._model(kind)
        async with self.session_factory() as session:
            result = await session.execute(select(model).order_by(model.id))
            return [to_entity(kind, row) for row in result.scalars().all()]

    async def _raise_conflict(self, session: AsyncSession, kind: EntityKind, entity: Entity) -> None:
        model = self._model(kind)
        current = await session.scalar(select(model.version).where(model.id == entity.id))
        if current is None:
            raise NotFoundError(
                f"{kind.value.capitalize()} {entity.id} not found",
                details={"targetType": kind.value, "targetId": entity.id},
            )
        raise ConcurrentModificationError(
            f"{kind.value.capitalize()} {entity.id} was modified concurrently",
            details={
                "targetType": kind.value,
                "targetId": entity.id,
                "expectedVersion": entity.version,
                "currentVersion": current,
            },
        )

    async def save(self, kind: EntityKind, entity: Entity) -> Entity:
        model = self._model(kind)
        values = to_columns(entity)
        values.pop("id")
        values["version"] = entity.version + 1
        async with self.session_factory() as session:
            result = await session.execute(
                update(model)
                .where(model.id == entity.id, model.version == entity.version)
                .values(**values)
            )
            if result.rowcount == 0:
                await session.rollback()
                await self._raise_conflict(session, kind, entity)
            await session.commit()
            row = await session.get(model, entity.id, populate_existing=True)
            return to_entity(kind, row)

    async def delete(self, kind: EntityKind, entity: Entity) -> None:
        model = self._model(kind)
        async with self.session_factory() as session:
            result = await session.execute(
                delete(model).where(model.id == entity.id, model.version == entity.version)
            )
            if result.rowcount == 0:
                await session.rollback()
                await self._raise_conflict(session, kind, entity)
            await session.commit()
