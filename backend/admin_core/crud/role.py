from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..auth.permissions import SYSTEM_ROLES, Role, RoleType, freeze_permissions, permissions_to_dict
from ..errors import ImmutableRoleError
from ..models.role import AdminRoleModel


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_role(row: AdminRoleModel) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        type=RoleType(row.type),
        permissions=freeze_permissions(row.permissions),
        description=row.description or "",
        is_system=False,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


class RoleRepository:
    """Custom roles in ``admin_roles``; system roles come from the registry."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_role(self, role_id: str) -> Role | None:
        system_role = SYSTEM_ROLES.get(role_id)
        if system_role is not None:
            return system_role
        async with self.session_factory() as session:
            row = await session.get(AdminRoleModel, role_id)
            return to_role(row) if row is not None else None

    async def list_roles(self) -> list[Role]:
        async with self.session_factory() as session:
            result = await session.execute(select(AdminRoleModel).order_by(AdminRoleModel.name))
            custom = [to_role(row) for row in result.scalars().all()]
        return [*SYSTEM_ROLES.values(), *custom]

    async def save_role(self, role: Role) -> Role:
        if role.is_system or role.id in SYSTEM_ROLES:
            raise ImmutableRoleError(f"System role {role.id} cannot be stored")
        async with self.session_factory() as session:
            row = await session.get(AdminRoleModel, role.id)
            if row is None:
                row = AdminRoleModel(id=role.id)
                session.add(row)
            row.name = role.name
            row.type = role.type.value
            row.description = role.description
            row.permissions = permissions_to_dict(role.permissions)
            row.is_system = False
            if role.created_at is not None:
                row.created_at = role.created_at
            if role.updated_at is not None:
                row.updated_at = role.updated_at
            await session.commit()
            await session.refresh(row)
            return to_role(row)

    async def delete_role(self, role_id: str) -> bool:
        if role_id in SYSTEM_ROLES:
            raise ImmutableRoleError(f"System role {role_id} cannot be deleted")
        async with self.session_factory() as session:
            result = await session.execute(
                delete(AdminRoleModel).where(AdminRoleModel.id == role_id)
            )
            await session.commit()
            return result.rowcount > 0
