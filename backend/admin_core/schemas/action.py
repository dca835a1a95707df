from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .audit_log import AuditLogRead, WarningRead


class ActionRequest(BaseModel):
    reason: str | None = None
    role_id: str | None = None  # change_role only; null removes the admin role

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionResponse(BaseModel):
    """Authoritative post-action state. ``entity`` is null after a delete."""

    entity: dict[str, Any] | None
    audit_entry: AuditLogRead
    warnings: list[WarningRead] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
