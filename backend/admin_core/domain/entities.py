"""
Domain entities moderated by the admin core.

Entities are frozen dataclasses: transitions return new instances through
``dataclasses.replace`` and never mutate the loaded snapshot. ``version`` is
the optimistic-concurrency token owned by the repository.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union


class EntityKind(str, Enum):
    """Target types recorded in the audit trail."""

    USER = "user"
    EVENT = "event"
    PAYOUT = "payout"
    ROLE = "role"
    SETTINGS = "settings"


class UserStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    # No transition reaches BANNED yet; it exists for records created elsewhere.
    BANNED = "banned"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_PAYOUT_STATUSES = frozenset(
    {PayoutStatus.COMPLETED, PayoutStatus.FAILED, PayoutStatus.CANCELLED}
)


def serialize_value(value: Any) -> Any:
    """JSON-friendly form of a field value for audit snapshots."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def ensure_utc(value: datetime) -> datetime:
    """Same instant in UTC; a datetime without tzinfo is taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class _Snapshottable:
    LIFECYCLE_FIELDS: ClassVar[tuple[str, ...]] = ()

    def lifecycle_snapshot(self) -> dict[str, Any]:
        """Lifecycle fields only, camelCased, as stored in audit entries."""
        return {
            _camel(name): serialize_value(getattr(self, name))
            for name in self.LIFECYCLE_FIELDS
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            _camel(f.name): serialize_value(getattr(self, f.name))
            for f in fields(self)  # type: ignore[arg-type]
        }


@dataclass(frozen=True)
class UserAccount(_Snapshottable):
    id: str
    name: str
    email: str
    status: UserStatus = UserStatus.PENDING
    verification_status: VerificationStatus = VerificationStatus.PENDING
    is_admin: bool = False
    admin_role_id: str | None = None
    verified_at: datetime | None = None
    verified_by: str | None = None
    verification_rejected_at: datetime | None = None
    verification_rejected_by: str | None = None
    verification_rejection_reason: str | None = None
    suspended_at: datetime | None = None
    suspended_by: str | None = None
    suspend_reason: str | None = None
    created_at: datetime | None = None
    version: int = 0

    LIFECYCLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "status",
        "verification_status",
        "is_admin",
        "admin_role_id",
        "verified_at",
        "verified_by",
        "verification_rejected_at",
        "verification_rejected_by",
        "verification_rejection_reason",
        "suspended_at",
        "suspended_by",
        "suspend_reason",
    )

    @property
    def label(self) -> str:
        return self.name or self.email or self.id


@dataclass(frozen=True)
class Event(_Snapshottable):
    id: str
    title: str
    organizer_id: str | None = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    is_flagged: bool = False
    flag_reason: str | None = None
    flagged_at: datetime | None = None
    flagged_by: str | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    version: int = 0

    LIFECYCLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "approval_status",
        "is_flagged",
        "flag_reason",
        "flagged_at",
        "flagged_by",
        "approved_at",
        "approved_by",
        "rejected_at",
        "rejected_by",
        "rejection_reason",
    )

    @property
    def label(self) -> str:
        return self.title or self.id


@dataclass(frozen=True)
class Payout(_Snapshottable):
    id: str
    provider_id: str
    provider_name: str
    amount: float
    currency: str = "TRY"
    status: PayoutStatus = PayoutStatus.PENDING
    requested_at: datetime | None = None
    processed_at: datetime | None = None
    processed_by: str | None = None
    completed_at: datetime | None = None
    completed_by: str | None = None
    failed_at: datetime | None = None
    failure_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    version: int = 0

    LIFECYCLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "status",
        "processed_at",
        "processed_by",
        "completed_at",
        "completed_by",
        "failed_at",
        "failure_reason",
        "cancelled_at",
        "cancelled_by",
    )

    @property
    def label(self) -> str:
        return self.provider_name or self.id


Entity = Union[UserAccount, Event, Payout]

ENTITY_TYPES: dict[EntityKind, type] = {
    EntityKind.USER: UserAccount,
    EntityKind.EVENT: Event,
    EntityKind.PAYOUT: Payout,
}


@dataclass(frozen=True)
class Actor:
    """Authenticated admin identity. The role is referenced, never embedded."""

    id: str
    name: str
    email: str
    role_id: str


@dataclass(frozen=True)
class AuditLogEntry:
    id: str
    actor_id: str
    actor_name: str
    actor_email: str
    action: str
    target_type: str
    target_id: str
    timestamp: datetime
    previous_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    description: str | None = None

    def to_record(self) -> dict[str, Any]:
        """Persisted wire shape; keys are part of the storage contract."""
        record: dict[str, Any] = {
            "id": self.id,
            "actorId": self.actor_id,
            "actorName": self.actor_name,
            "actorEmail": self.actor_email,
            "action": self.action,
            "targetType": self.target_type,
            "targetId": self.target_id,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.previous_value is not None:
            record["previousValue"] = self.previous_value
        if self.new_value is not None:
            record["newValue"] = self.new_value
        if self.description is not None:
            record["description"] = self.description
        return record
