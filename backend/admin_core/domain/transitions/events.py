"""
Event moderation transitions.

``approval_status`` and ``is_flagged`` are independent: an approved event can
be flagged later and stays flagged until unflagged. Approval is the one
transition that touches both, always clearing the flag.
"""
from __future__ import annotations

from dataclasses import replace

from ...auth.permissions import Action, Resource
from ..entities import ApprovalStatus, EntityKind, Event
from ..invariants import require_reason, require_state
from .base import TransitionContext, TransitionSpec

_TYPE = EntityKind.EVENT.value
_MODERATE = ((Resource.EVENTS, Action.APPROVE),)


def _cleared_flag(event: Event) -> Event:
    return replace(event, is_flagged=False, flag_reason=None, flagged_at=None, flagged_by=None)


def approve(event: Event, ctx: TransitionContext) -> Event:
    require_state(
        event.approval_status,
        {ApprovalStatus.PENDING},
        field="approvalStatus",
        transition="approve",
        entity_type=_TYPE,
        entity_id=event.id,
    )
    return replace(
        _cleared_flag(event),
        approval_status=ApprovalStatus.APPROVED,
        approved_at=ctx.at,
        approved_by=ctx.actor_id,
    )


def reject(event: Event, ctx: TransitionContext) -> Event:
    require_state(
        event.approval_status,
        {ApprovalStatus.PENDING},
        field="approvalStatus",
        transition="reject",
        entity_type=_TYPE,
        entity_id=event.id,
    )
    reason = require_reason(ctx.reason, transition="reject", entity_type=_TYPE, entity_id=event.id)
    return replace(
        event,
        approval_status=ApprovalStatus.REJECTED,
        rejected_at=ctx.at,
        rejected_by=ctx.actor_id,
        rejection_reason=reason,
    )


def flag(event: Event, ctx: TransitionContext) -> Event:
    require_state(
        event.is_flagged,
        {False},
        field="isFlagged",
        transition="flag",
        entity_type=_TYPE,
        entity_id=event.id,
    )
    reason = require_reason(ctx.reason, transition="flag", entity_type=_TYPE, entity_id=event.id)
    return replace(
        event,
        is_flagged=True,
        flag_reason=reason,
        flagged_at=ctx.at,
        flagged_by=ctx.actor_id,
    )


def unflag(event: Event, ctx: TransitionContext) -> Event:
    require_state(
        event.is_flagged,
        {True},
        field="isFlagged",
        transition="unflag",
        entity_type=_TYPE,
        entity_id=event.id,
    )
    return _cleared_flag(event)


def delete(event: Event, ctx: TransitionContext) -> Event:
    return event


EVENT_TRANSITIONS: dict[str, TransitionSpec[Event]] = {
    "approve": TransitionSpec(
        name="approve",
        audit_action="event.approve",
        apply=approve,
        describe=lambda event, ctx: f"{event.label} approved",
        required=_MODERATE,
    ),
    "reject": TransitionSpec(
        name="reject",
        audit_action="event.reject",
        apply=reject,
        describe=lambda event, ctx: f"{event.label} rejected: {(ctx.reason or '').strip()}",
        required=_MODERATE,
    ),
    "flag": TransitionSpec(
        name="flag",
        audit_action="event.flag",
        apply=flag,
        describe=lambda event, ctx: f"{event.label} flagged: {(ctx.reason or '').strip()}",
        required=_MODERATE,
    ),
    "unflag": TransitionSpec(
        name="unflag",
        audit_action="event.unflag",
        apply=unflag,
        describe=lambda event, ctx: f"{event.label} unflagged",
        required=_MODERATE,
    ),
    "delete": TransitionSpec(
        name="delete",
        audit_action="event.delete",
        apply=delete,
        describe=lambda event, ctx: f"{event.label} deleted",
        required=((Resource.EVENTS, Action.DELETE),),
        deletes=True,
    ),
}
