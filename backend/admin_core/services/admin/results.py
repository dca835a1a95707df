from dataclasses import dataclass, field
from typing import Any

from ...auth.permissions import Role
from ...domain.entities import AuditLogEntry, Entity
from ...errors import AuditWriteFailed


@dataclass(frozen=True)
class ExecutionResult:
    """Authoritative post-call state of a lifecycle action.

    ``entity`` is None after a delete. ``warnings`` is non-empty only when
    the mutation committed but its audit entry could not be written.
    """

    entity: Entity | None
    audit_entry: AuditLogEntry
    warnings: tuple[AuditWriteFailed, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity.to_dict() if self.entity is not None else None,
            "auditEntry": self.audit_entry.to_record(),
            "warnings": [warning.as_dict() for warning in self.warnings],
        }


@dataclass(frozen=True)
class RoleResult:
    role: Role | None
    audit_entry: AuditLogEntry
    warnings: tuple[AuditWriteFailed, ...] = field(default_factory=tuple)
