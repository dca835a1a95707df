"""
Payout transitions.

    pending -> processing -> completed
    pending | processing -> failed     (reason required)
    pending | processing -> cancelled

completed, failed and cancelled are terminal.
"""
from __future__ import annotations

from dataclasses import replace

from ...auth.permissions import Action, Resource
from ..entities import EntityKind, Payout, PayoutStatus
from ..invariants import require_reason, require_state
from .base import TransitionContext, TransitionSpec

_TYPE = EntityKind.PAYOUT.value
_OPEN = frozenset({PayoutStatus.PENDING, PayoutStatus.PROCESSING})
_FINANCE = ((Resource.FINANCE, Action.APPROVE), (Resource.FINANCE, Action.EDIT))


def _require(payout: Payout, allowed: frozenset[PayoutStatus], transition: str) -> None:
    require_state(
        payout.status,
        allowed,
        field="status",
        transition=transition,
        entity_type=_TYPE,
        entity_id=payout.id,
    )


def process(payout: Payout, ctx: TransitionContext) -> Payout:
    _require(payout, frozenset({PayoutStatus.PENDING}), "process")
    return replace(
        payout,
        status=PayoutStatus.PROCESSING,
        processed_at=ctx.at,
        processed_by=ctx.actor_id,
    )


def complete(payout: Payout, ctx: TransitionContext) -> Payout:
    _require(payout, frozenset({PayoutStatus.PROCESSING}), "complete")
    return replace(
        payout,
        status=PayoutStatus.COMPLETED,
        completed_at=ctx.at,
        completed_by=ctx.actor_id,
    )


def fail(payout: Payout, ctx: TransitionContext) -> Payout:
    _require(payout, _OPEN, "fail")
    reason = require_reason(ctx.reason, transition="fail", entity_type=_TYPE, entity_id=payout.id)
    return replace(
        payout,
        status=PayoutStatus.FAILED,
        failed_at=ctx.at,
        failure_reason=reason,
    )


def cancel(payout: Payout, ctx: TransitionContext) -> Payout:
    _require(payout, _OPEN, "cancel")
    return replace(
        payout,
        status=PayoutStatus.CANCELLED,
        cancelled_at=ctx.at,
        cancelled_by=ctx.actor_id,
    )


PAYOUT_TRANSITIONS: dict[str, TransitionSpec[Payout]] = {
    "process": TransitionSpec(
        name="process",
        audit_action="payout.process",
        apply=process,
        describe=lambda payout, ctx: f"{payout.label} payout moved to processing",
        required=_FINANCE,
    ),
    "complete": TransitionSpec(
        name="complete",
        audit_action="payout.complete",
        apply=complete,
        describe=lambda payout, ctx: f"{payout.label} payout completed",
        required=_FINANCE,
    ),
    "fail": TransitionSpec(
        name="fail",
        audit_action="payout.fail",
        apply=fail,
        describe=lambda payout, ctx: f"{payout.label} payout failed: {(ctx.reason or '').strip()}",
        required=_FINANCE,
    ),
    "cancel": TransitionSpec(
        name="cancel",
        audit_action="payout.cancel",
        apply=cancel,
        describe=lambda payout, ctx: f"{payout.label} payout cancelled",
        required=_FINANCE,
    ),
}
