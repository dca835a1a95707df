from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.entities import AuditLogEntry, ensure_utc
from ..models.audit_log import AuditLog


def to_entry(row: AuditLog) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        actor_id=row.actor_id,
        actor_name=row.actor_name,
        actor_email=row.actor_email,
        action=row.action,
        target_type=row.target_type,
        target_id=row.target_id,
        timestamp=ensure_utc(row.timestamp),
        previous_value=row.previous_value,
        new_value=row.new_value,
        description=row.description,
    )


class AuditLogRepository:
    """Insert and read only; there is no update or delete path."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(self, entry: AuditLogEntry) -> None:
        async with self.session_factory() as session:
            session.add(
                AuditLog(
                    id=entry.id,
                    actor_id=entry.actor_id,
                    actor_name=entry.actor_name,
                    actor_email=entry.actor_email,
                    action=entry.action,
                    target_type=entry.target_type,
                    target_id=entry.target_id,
                    previous_value=entry.previous_value,
                    new_value=entry.new_value,
                    description=entry.description,
                    timestamp=ensure_utc(entry.timestamp),
                )
            )
            await session.commit()

    async def get_by_id(self, entry_id: str) -> AuditLogEntry | None:
        async with self.session_factory() as session:
            row = await session.get(AuditLog, entry_id)
            return to_entry(row) if row is not None else None

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
        query = select(AuditLog)

        conditions = []
        if actor_id is not None:
            conditions.append(AuditLog.actor_id == actor_id)
        if action is not None:
            conditions.append(AuditLog.action == action)
        if target_type is not None:
            conditions.append(AuditLog.target_type == target_type)
        if target_id is not None:
            conditions.append(AuditLog.target_id == target_id)
        # SQLite compares stored UTC wall time, so bounds must be UTC as well.
        if from_date is not None:
            conditions.append(AuditLog.timestamp >= ensure_utc(from_date))
        if to_date is not None:
            conditions.append(AuditLog.timestamp <= ensure_utc(to_date))

        if conditions:
            query = query.where(and_(*conditions))

        query = query.order_by(AuditLog.timestamp.desc()).limit(limit).offset(offset)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [to_entry(row) for row in result.scalars().all()]
