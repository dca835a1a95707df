"""
User lifecycle transitions.

    pending  --verify-->    active (verification_status: verified)
    pending  --suspend-->   suspended
    active  <--suspend/unsuspend-->  suspended

Verification is tracked separately and may be approved or rejected once,
while it is pending. ``banned`` is a defined status with no incoming
transition.
"""
from __future__ import annotations

from dataclasses import replace

from ...auth.permissions import Action, Resource
from ..entities import EntityKind, UserAccount, UserStatus, VerificationStatus
from ..invariants import require_reason, require_state
from .base import TransitionContext, TransitionSpec

_TYPE = EntityKind.USER.value


def verify(user: UserAccount, ctx: TransitionContext) -> UserAccount:
    require_state(
        user.verification_status,
        {VerificationStatus.PENDING},
        field="verificationStatus",
        transition="verify",
        entity_type=_TYPE,
        entity_id=user.id,
    )
    status = UserStatus.ACTIVE if user.status == UserStatus.PENDING else user.status
    return replace(
        user,
        verification_status=VerificationStatus.VERIFIED,
        status=status,
        verified_at=ctx.at,
        verified_by=ctx.actor_id,
    )


def reject_verification(user: UserAccount, ctx: TransitionContext) -> UserAccount:
    require_state(
        user.verification_status,
        {VerificationStatus.PENDING},
        field="verificationStatus",
        transition="reject",
        entity_type=_TYPE,
        entity_id=user.id,
    )
    reason = require_reason(ctx.reason, transition="reject", entity_type=_TYPE, entity_id=user.id)
    return replace(
        user,
        verification_status=VerificationStatus.REJECTED,
        verification_rejected_at=ctx.at,
        verification_rejected_by=ctx.actor_id,
        verification_rejection_reason=reason,
    )


def suspend(user: UserAccount, ctx: TransitionContext) -> UserAccount:
    require_state(
        user.status,
        {UserStatus.PENDING, UserStatus.ACTIVE},
        field="status",
        transition="suspend",
        entity_type=_TYPE,
        entity_id=user.id,
    )
    reason = require_reason(ctx.reason, transition="suspend", entity_type=_TYPE, entity_id=user.id)
    return replace(
        user,
        status=UserStatus.SUSPENDED,
        suspended_at=ctx.at,
        suspended_by=ctx.actor_id,
        suspend_reason=reason,
    )


def unsuspend(user: UserAccount, ctx: TransitionContext) -> UserAccount:
    require_state(
        user.status,
        {UserStatus.SUSPENDED},
        field="status",
        transition="unsuspend",
        entity_type=_TYPE,
        entity_id=user.id,
    )
    return replace(
        user,
        status=UserStatus.ACTIVE,
        suspended_at=None,
        suspended_by=None,
        suspend_reason=None,
    )


def delete(user: UserAccount, ctx: TransitionContext) -> UserAccount:
    return user


def change_admin_role(user: UserAccount, ctx: TransitionContext) -> UserAccount:
    return replace(
        user,
        is_admin=ctx.role_id is not None,
        admin_role_id=ctx.role_id,
    )


def _describe_role_change(user: UserAccount, ctx: TransitionContext) -> str:
    if ctx.role_id is None:
        return f"{user.label} admin role removed"
    return f"{user.label} admin role set to {ctx.role_id}"


USER_TRANSITIONS: dict[str, TransitionSpec[UserAccount]] = {
    "verify": TransitionSpec(
        name="verify",
        audit_action="user.verify",
        apply=verify,
        describe=lambda user, ctx: f"{user.label} verified",
        required=((Resource.USERS, Action.APPROVE),),
    ),
    "reject": TransitionSpec(
        name="reject",
        audit_action="user.reject",
        apply=reject_verification,
        describe=lambda user, ctx: f"{user.label} verification rejected: {(ctx.reason or '').strip()}",
        required=((Resource.USERS, Action.APPROVE),),
    ),
    "suspend": TransitionSpec(
        name="suspend",
        audit_action="user.suspend",
        apply=suspend,
        describe=lambda user, ctx: f"{user.label} suspended: {(ctx.reason or '').strip()}",
        required=((Resource.USERS, Action.EDIT),),
    ),
    "unsuspend": TransitionSpec(
        name="unsuspend",
        audit_action="user.unsuspend",
        apply=unsuspend,
        describe=lambda user, ctx: f"{user.label} unsuspended",
        required=((Resource.USERS, Action.EDIT),),
    ),
    "delete": TransitionSpec(
        name="delete",
        audit_action="user.delete",
        apply=delete,
        describe=lambda user, ctx: f"{user.label} deleted",
        required=((Resource.USERS, Action.DELETE),),
        deletes=True,
    ),
    "change_role": TransitionSpec(
        name="change_role",
        audit_action="user.role_change",
        apply=change_admin_role,
        describe=_describe_role_change,
        elevated=True,
    ),
}
