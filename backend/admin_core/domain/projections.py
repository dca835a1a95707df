"""
Read-side projections over entity snapshots.

Everything here is recomputed from authoritative state on each read; nothing
is stored or patched incrementally, so a projection cannot drift from the
entities it is derived from.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Iterable

from .entities import (
    ApprovalStatus,
    Event,
    Payout,
    PayoutStatus,
    UserAccount,
    UserStatus,
    VerificationStatus,
    ensure_utc,
)


class ModerationPriority(str, Enum):
    MEDIUM = "medium"
    HIGH = "high"


_PRIORITY_RANK = {ModerationPriority.HIGH: 0, ModerationPriority.MEDIUM: 1}


@dataclass(frozen=True)
class ModerationQueueItem:
    id: str
    target_type: str
    target_id: str
    target_name: str
    reason: str
    description: str
    priority: ModerationPriority
    reported_at: datetime | None


def needs_moderation(event: Event) -> bool:
    return event.approval_status == ApprovalStatus.PENDING or event.is_flagged


def _queue_item(event: Event) -> ModerationQueueItem:
    if event.is_flagged:
        reason = event.flag_reason or "Flagged"
        return ModerationQueueItem(
            id=f"mod_{event.id}",
            target_type="event",
            target_id=event.id,
            target_name=event.label,
            reason=reason,
            description=f"Event flagged: {reason}",
            priority=ModerationPriority.HIGH,
            reported_at=event.flagged_at or event.created_at,
        )
    return ModerationQueueItem(
        id=f"mod_{event.id}",
        target_type="event",
        target_id=event.id,
        target_name=event.label,
        reason="Awaiting approval",
        description="New event awaiting approval",
        priority=ModerationPriority.MEDIUM,
        reported_at=event.created_at,
    )


def build_moderation_queue(events: Iterable[Event]) -> list[ModerationQueueItem]:
    """Pending or flagged events, high priority first, then oldest first."""
    items = [_queue_item(event) for event in events if needs_moderation(event)]
    items.sort(
        key=lambda item: (
            _PRIORITY_RANK[item.priority],
            item.reported_at is None,
            item.reported_at.timestamp() if item.reported_at else 0.0,
            item.target_id,
        )
    )
    return items


@dataclass(frozen=True)
class UserStats:
    total: int
    active: int
    pending_verification: int
    suspended: int
    banned: int
    admins: int


@dataclass(frozen=True)
class EventStats:
    total: int
    pending: int
    approved: int
    rejected: int
    flagged: int


@dataclass(frozen=True)
class PayoutStats:
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    cancelled: int
    total_amount: float
    pending_amount: float


@dataclass(frozen=True)
class DashboardStats:
    users: UserStats
    events: EventStats
    payouts: PayoutStats
    moderation_queue_size: int


def user_stats(users: Iterable[UserAccount]) -> UserStats:
    users = list(users)
    return UserStats(
        total=len(users),
        active=sum(1 for u in users if u.status == UserStatus.ACTIVE),
        pending_verification=sum(
            1 for u in users if u.verification_status == VerificationStatus.PENDING
        ),
        suspended=sum(1 for u in users if u.status == UserStatus.SUSPENDED),
        banned=sum(1 for u in users if u.status == UserStatus.BANNED),
        admins=sum(1 for u in users if u.is_admin),
    )


def event_stats(events: Iterable[Event]) -> EventStats:
    events = list(events)
    return EventStats(
        total=len(events),
        pending=sum(1 for e in events if e.approval_status == ApprovalStatus.PENDING),
        approved=sum(1 for e in events if e.approval_status == ApprovalStatus.APPROVED),
        rejected=sum(1 for e in events if e.approval_status == ApprovalStatus.REJECTED),
        flagged=sum(1 for e in events if e.is_flagged),
    )


def payout_stats(payouts: Iterable[Payout]) -> PayoutStats:
    payouts = list(payouts)
    open_statuses = {PayoutStatus.PENDING, PayoutStatus.PROCESSING}
    return PayoutStats(
        total=len(payouts),
        pending=sum(1 for p in payouts if p.status == PayoutStatus.PENDING),
        processing=sum(1 for p in payouts if p.status == PayoutStatus.PROCESSING),
        completed=sum(1 for p in payouts if p.status == PayoutStatus.COMPLETED),
        failed=sum(1 for p in payouts if p.status == PayoutStatus.FAILED),
        cancelled=sum(1 for p in payouts if p.status == PayoutStatus.CANCELLED),
        total_amount=sum(p.amount for p in payouts),
        pending_amount=sum(p.amount for p in payouts if p.status in open_statuses),
    )


def dashboard_stats(
    users: Iterable[UserAccount],
    events: Iterable[Event],
    payouts: Iterable[Payout],
) -> DashboardStats:
    events = list(events)
    return DashboardStats(
        users=user_stats(users),
        events=event_stats(events),
        payouts=payout_stats(payouts),
        moderation_queue_size=sum(1 for e in events if needs_moderation(e)),
    )


@dataclass(frozen=True)
class EntityFilter:
    """List criteria for one entity kind. ``None`` leaves a field unconstrained.

    ``search`` is a case-insensitive substring match over the kind's display
    fields. The date range is inclusive and applies to ``created_at`` for
    events and ``requested_at`` for payouts; the amount range is inclusive.
    """

    search: str | None = None
    status: str | None = None
    verification_status: str | None = None
    is_admin: bool | None = None
    approval_status: str | None = None
    is_flagged: bool | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    min_amount: float | None = None
    max_amount: float | None = None

    def active_fields(self) -> set[str]:
        return {f.name for f in fields(self) if getattr(self, f.name) is not None}


USER_FILTERS = frozenset({"search", "status", "verification_status", "is_admin"})
EVENT_FILTERS = frozenset({"search", "approval_status", "is_flagged", "from_date", "to_date"})
PAYOUT_FILTERS = frozenset(
    {"search", "status", "from_date", "to_date", "min_amount", "max_amount"}
)


def _matches_search(search: str | None, *values: str | None) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(needle in value.lower() for value in values if value)


def _within(value: datetime | None, from_date: datetime | None, to_date: datetime | None) -> bool:
    if from_date is None and to_date is None:
        return True
    if value is None:
        return False
    value = ensure_utc(value)
    if from_date is not None and value < ensure_utc(from_date):
        return False
    if to_date is not None and value > ensure_utc(to_date):
        return False
    return True


def filter_users(users: Iterable[UserAccount], criteria: EntityFilter) -> list[UserAccount]:
    return [
        u
        for u in users
        if _matches_search(criteria.search, u.name, u.email)
        and (criteria.status is None or u.status == criteria.status)
        and (
            criteria.verification_status is None
            or u.verification_status == criteria.verification_status
        )
        and (criteria.is_admin is None or u.is_admin == criteria.is_admin)
    ]


def filter_events(events: Iterable[Event], criteria: EntityFilter) -> list[Event]:
    return [
        e
        for e in events
        if _matches_search(criteria.search, e.title)
        and (criteria.approval_status is None or e.approval_status == criteria.approval_status)
        and (criteria.is_flagged is None or e.is_flagged == criteria.is_flagged)
        and _within(e.created_at, criteria.from_date, criteria.to_date)
    ]


def filter_payouts(payouts: Iterable[Payout], criteria: EntityFilter) -> list[Payout]:
    return [
        p
        for p in payouts
        if _matches_search(criteria.search, p.provider_name)
        and (criteria.status is None or p.status == criteria.status)
        and _within(p.requested_at, criteria.from_date, criteria.to_date)
        and (criteria.min_amount is None or p.amount >= criteria.min_amount)
        and (criteria.max_amount is None or p.amount <= criteria.max_amount)
    ]
