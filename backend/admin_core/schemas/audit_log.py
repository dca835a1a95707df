from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AuditLogRead(BaseModel):
    """Persisted audit record shape; field names are part of the wire contract."""

    id: str
    actor_id: str
    actor_name: str
    actor_email: str
    action: str
    target_type: str
    target_id: str
    previous_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    description: str | None = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class WarningRead(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None
