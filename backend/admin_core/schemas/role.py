from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..auth.permissions import Role, permissions_to_dict
from .audit_log import AuditLogRead, WarningRead

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoleRead(BaseModel):
    id: str
    name: str
    type: str
    description: str = ""
    is_system: bool
    permissions: dict[str, list[str]]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = _CAMEL

    @classmethod
    def from_role(cls, role: Role) -> "RoleRead":
        return cls(
            id=role.id,
            name=role.name,
            type=role.type.value,
            description=role.description,
            is_system=role.is_system,
            permissions=permissions_to_dict(role.permissions),
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    permissions: dict[str, list[str]] = Field(default_factory=dict)


class RoleUpdate(BaseModel):
    """Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    permissions: dict[str, list[str]] | None = None


class RoleDuplicate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class RoleMutationResponse(BaseModel):
    role: RoleRead | None
    audit_entry: AuditLogRead
    warnings: list[WarningRead] = Field(default_factory=list)

    model_config = _CAMEL
