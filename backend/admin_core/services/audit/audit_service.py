import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from ...domain.entities import Actor, AuditLogEntry, EntityKind
from ...domain.ports import AuditSink
from ...errors import AuditWriteFailed

logger = logging.getLogger("admin_core.audit")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_audit_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class AuditOutcome:
    """Result of an append attempt. ``warning`` is set only when the write failed."""

    entry: AuditLogEntry
    warning: AuditWriteFailed | None = None

    @property
    def recorded(self) -> bool:
        return self.warning is None


class AuditService:
    """Builds and appends audit entries.

    Entries are built before the mutation is persisted, so a malformed entry
    aborts the operation while nothing has changed yet. Appending happens
    after persistence and never raises: a failed write is logged for
    operators and handed back as an AuditWriteFailed warning.
    """

    ALLOWED_TARGET_TYPES = frozenset(kind.value for kind in EntityKind)

    def __init__(
        self,
        sink: AuditSink,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_audit_id,
    ):
        self.sink = sink
        self.clock = clock
        self.id_factory = id_factory

    def _validate_target_type(self, target_type: str) -> None:
        """
        Raises:
            ValueError: If target_type is not an audited entity kind
        """
        if target_type not in self.ALLOWED_TARGET_TYPES:
            raise ValueError(
                f"Invalid target_type '{target_type}'. "
                f"Must be one of: {', '.join(sorted(self.ALLOWED_TARGET_TYPES))}"
            )

    def build_entry(
        self,
        action: str,
        target_type: str,
        target_id: str,
        actor: Actor,
        previous_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        description: str | None = None,
        timestamp: datetime | None = None,
    ) -> AuditLogEntry:
        """Create an entry without writing it.

        Args:
            action: Dotted action name (e.g. 'event.approve')
            target_type: Audited entity kind (e.g. 'event')
            target_id: Id of the affected entity
            actor: Admin performing the action
            previous_value: Snapshot before the change
            new_value: Snapshot after the change (None for deletions)
            description: Human-readable summary
            timestamp: Defaults to the service clock

        Raises:
            ValueError: If target_type is invalid
        """
        self._validate_target_type(target_type)
        return AuditLogEntry(
            id=self.id_factory(),
            actor_id=actor.id,
            actor_name=actor.name,
            actor_email=actor.email,
            action=action,
            target_type=target_type,
            target_id=str(target_id),
            timestamp=timestamp or self.clock(),
            previous_value=previous_value,
            new_value=new_value,
            description=description,
        )

    async def record(self, entry: AuditLogEntry) -> AuditOutcome:
        """Append an entry. Failures are reported, not raised."""
        try:
            await self.sink.append(entry)
        except Exception as exc:
            logger.error(
                "Audit write failed operator_alert=audit_write_failed "
                "audit_id=%s action=%s target_type=%s target_id=%s actor_id=%s error=%s",
                entry.id,
                entry.action,
                entry.target_type,
                entry.target_id,
                entry.actor_id,
                exc,
                exc_info=True,
            )
            return AuditOutcome(
                entry=entry,
                warning=AuditWriteFailed(
                    audit_entry_id=entry.id,
                    action=entry.action,
                    target_id=entry.target_id,
                    message=f"Audit entry for {entry.action} on {entry.target_id} was not recorded",
                ),
            )
        return AuditOutcome(entry=entry)

    async def log(
        self,
        action: str,
        target_type: str,
        target_id: str,
        actor: Actor,
        previous_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> AuditOutcome:
        """Build and append in one step."""
        entry = self.build_entry(
            action=action,
            target_type=target_type,
            target_id=target_id,
            actor=actor,
            previous_value=previous_value,
            new_value=new_value,
            description=description,
        )
        return await self.record(entry)

    async def log_create(
        self,
        target_type: str,
        target_id: str,
        data: dict[str, Any],
        actor: Actor,
        description: str | None = None,
    ) -> AuditOutcome:
        """Log a create event."""
        return await self.log(
            action=f"{target_type}.create",
            target_type=target_type,
            target_id=target_id,
            actor=actor,
            new_value=data,
            description=description,
        )

    async def log_update(
        self,
        target_type: str,
        target_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        actor: Actor,
        description: str | None = None,
    ) -> AuditOutcome:
        """Log an update event."""
        return await self.log(
            action=f"{target_type}.update",
            target_type=target_type,
            target_id=target_id,
            actor=actor,
            previous_value=before,
            new_value=after,
            description=description,
        )

    async def log_delete(
        self,
        target_type: str,
        target_id: str,
        data: dict[str, Any],
        actor: Actor,
        description: str | None = None,
    ) -> AuditOutcome:
        """Log a delete event."""
        return await self.log(
            action=f"{target_type}.delete",
            target_type=target_type,
            target_id=target_id,
            actor=actor,
            previous_value=data,
            description=description,
        )
