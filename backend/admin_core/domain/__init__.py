from .entities import (
    Actor,
    ApprovalStatus,
    AuditLogEntry,
    Entity,
    EntityKind,
    Event,
    Payout,
    PayoutStatus,
    UserAccount,
    UserStatus,
    VerificationStatus,
)

__all__ = [
    "Actor",
    "ApprovalStatus",
    "AuditLogEntry",
    "Entity",
    "EntityKind",
    "Event",
    "Payout",
    "PayoutStatus",
    "UserAccount",
    "UserStatus",
    "VerificationStatus",
]
