"""
Tests for the ActionOrchestrator.

Covers the gate order (permission, load, transition, persist, audit), the
one-audit-entry-per-success guarantee, per-entity serialization and the
non-fatal handling of audit-write failures.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace

import pytest

from admin_core.auth.permissions import Role, RoleType, freeze_permissions
from admin_core.domain.entities import (
    ApprovalStatus,
    EntityKind,
    Event,
    Payout,
    PayoutStatus,
    UserAccount,
    UserStatus,
)
from admin_core.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ReasonRequiredError,
    ValidationError,
)
from admin_core.infra.memory import InMemoryEntityRepository, InMemoryRoleStore
from admin_core.services.admin.orchestrator import ActionOrchestrator
from admin_core.services.admin.permission_service import UserActorDirectory

from conftest import FINANCE, MODERATOR, SUPER_ADMIN, SUPPORT, admin_user


class FailingAuditSink:
    def __init__(self):
        self.calls = 0

    async def append(self, entry):
        self.calls += 1
        raise RuntimeError("audit store unavailable")


class NoLocks:
    """Lock provider that does not serialize anything."""

    @asynccontextmanager
    async def lock(self, key):
        yield


class SlowLoadRepository(InMemoryEntityRepository):
    """Yields to the event loop between read and write."""

    async def load(self, kind, entity_id):
        entity = await super().load(kind, entity_id)
        await asyncio.sleep(0.01)
        return entity


class SlowSaveRepository(InMemoryEntityRepository):
    def __init__(self, entities=()):
        super().__init__(entities)
        self.save_started = asyncio.Event()

    async def save(self, kind, entity):
        self.save_started.set()
        await asyncio.sleep(0.05)
        return await super().save(kind, entity)


def build(repository, audit_sink, role_store, clock, locks=None):
    return ActionOrchestrator(
        repository,
        audit_sink,
        role_store,
        UserActorDirectory(repository),
        locks,
        clock=clock,
    )


@pytest.fixture
def pending_event(repository):
    return repository.add(Event(id="e1", title="Jazz Night", organizer_id="org-1"))


@pytest.fixture
def active_user(repository):
    return repository.add(
        UserAccount(id="u1", name="Pat", email="pat@example.com", status=UserStatus.ACTIVE)
    )


class TestPermissionGate:
    @pytest.mark.anyio
    async def test_moderator_without_delete_grant_cannot_delete_event(
        self, repository, audit_log, clock, pending_event
    ):
        """A moderator whose events grant is {view, approve} is denied delete."""
        restricted = Role(
            id="restricted_moderator",
            name="Restricted Moderator",
            type=RoleType.MODERATOR,
            permissions=freeze_permissions({"events": ["view", "approve"]}),
        )
        repository.add(admin_user("admin-restricted", restricted.id, "Rita Stricted"))
        orchestrator = build(repository, audit_log, InMemoryRoleStore([restricted]), clock)

        with pytest.raises(PermissionDeniedError) as exc_info:
            await orchestrator.execute("admin-restricted", "events", "delete", "e1")

        assert exc_info.value.details["required"] == "events:delete"
        assert await repository.load(EntityKind.EVENT, "e1") == pending_event
        assert audit_log.entries == ()

    @pytest.mark.anyio
    async def test_support_cannot_approve(self, orchestrator, audit_log, pending_event):
        with pytest.raises(PermissionDeniedError) as exc_info:
            await orchestrator.execute(SUPPORT, "events", "approve", "e1")
        assert exc_info.value.status_code == 403
        assert exc_info.value.details["required"] == "events:approve"
        assert audit_log.entries == ()

    @pytest.mark.anyio
    async def test_permission_checked_before_load(self, orchestrator):
        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute(SUPPORT, "events", "approve", "missing")

    @pytest.mark.anyio
    async def test_unknown_actor_is_denied(self, orchestrator, pending_event):
        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute("nobody", "events", "approve", "e1")

    @pytest.mark.anyio
    async def test_non_admin_user_is_denied(self, orchestrator, active_user, pending_event):
        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute(active_user.id, "events", "approve", "e1")

    @pytest.mark.anyio
    async def test_dangling_role_reference_is_denied(self, orchestrator, repository, pending_event):
        repository.add(admin_user("admin-ghost", "custom_deleted", "Gus Host"))
        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute("admin-ghost", "events", "approve", "e1")

    @pytest.mark.anyio
    async def test_suspended_admin_is_denied(self, orchestrator, repository, pending_event):
        admin = admin_user("admin-off", "super_admin", "Off Duty")
        repository.add(replace(admin, status=UserStatus.SUSPENDED))
        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute("admin-off", "events", "approve", "e1")

    @pytest.mark.anyio
    async def test_moderator_cannot_move_payouts(self, orchestrator, repository):
        repository.add(Payout(id="p1", provider_id="prov", provider_name="Cafe", amount=10.0))
        with pytest.raises(PermissionDeniedError) as exc_info:
            await orchestrator.execute(MODERATOR, "finance", "process", "p1")
        assert exc_info.value.details["required"] == "finance:approve or finance:edit"

    @pytest.mark.anyio
    async def test_unheld_pair_without_transition_is_denied(self, orchestrator, pending_event):
        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute(SUPPORT, "events", "export", "e1")

    @pytest.mark.anyio
    async def test_held_pair_without_transition_is_unsupported(self, orchestrator, pending_event):
        with pytest.raises(ValidationError):
            await orchestrator.execute(SUPER_ADMIN, "events", "view", "e1")

    @pytest.mark.anyio
    async def test_unknown_resource_is_denied(self, orchestrator):
        with pytest.raises(PermissionDeniedError):
            await orchestrator.execute(SUPER_ADMIN, "galaxies", "approve", "x")


class TestEventActions:
    @pytest.mark.anyio
    async def test_approve_pending_event(self, orchestrator, audit_log, pending_event):
        result = await orchestrator.execute(MODERATOR, "events", "approve", "e1")

        assert result.entity.approval_status == ApprovalStatus.APPROVED
        assert result.entity.is_flagged is False
        assert result.entity.version == pending_event.version + 1
        assert result.warnings == ()

        assert len(audit_log.entries) == 1
        entry = audit_log.entries[0]
        assert entry is result.audit_entry
        assert entry.action == "event.approve"
        assert entry.target_type == "event"
        assert entry.target_id == "e1"
        assert entry.actor_id == MODERATOR
        assert entry.actor_name == "Mo Derator"
        assert entry.actor_email == f"{MODERATOR}@example.com"
        assert entry.new_value == result.entity.lifecycle_snapshot()
        assert entry.previous_value["approvalStatus"] == "pending"
        assert entry.description == "Jazz Night approved"

    @pytest.mark.anyio
    async def test_approve_clears_flag(self, orchestrator, audit_log, pending_event):
        await orchestrator.execute(MODERATOR, "events", "flag", "e1", "Spam")
        result = await orchestrator.execute(MODERATOR, "events", "approve", "e1")

        assert result.entity.is_flagged is False
        assert result.entity.flag_reason is None
        assert [entry.action for entry in audit_log.entries] == ["event.flag", "event.approve"]

    @pytest.mark.anyio
    async def test_unflag_unflagged_event_fails(self, orchestrator, audit_log, pending_event):
        with pytest.raises(InvalidTransitionError):
            await orchestrator.execute(MODERATOR, "events", "unflag", "e1")
        assert audit_log.entries == ()

    @pytest.mark.anyio
    async def test_reason_required_leaves_entity_untouched(
        self, orchestrator, repository, audit_log, pending_event
    ):
        with pytest.raises(ReasonRequiredError):
            await orchestrator.execute(MODERATOR, "events", "reject", "e1", "  ")
        assert await repository.load(EntityKind.EVENT, "e1") == pending_event
        assert audit_log.entries == ()

    @pytest.mark.anyio
    async def test_delete_removes_entity(self, orchestrator, repository, audit_log, pending_event):
        result = await orchestrator.execute(MODERATOR, "events", "delete", "e1")

        assert result.entity is None
        assert await repository.load(EntityKind.EVENT, "e1") is None
        entry = audit_log.entries[0]
        assert entry.action == "event.delete"
        assert entry.new_value is None
        assert entry.previous_value == pending_event.lifecycle_snapshot()

    @pytest.mark.anyio
    async def test_missing_target(self, orchestrator):
        with pytest.raises(NotFoundError) as exc_info:
            await orchestrator.execute(MODERATOR, "events", "approve", "missing")
        assert exc_info.value.details == {"targetType": "event", "targetId": "missing"}


class TestUserActions:
    @pytest.mark.anyio
    async def test_resuspend_is_invalid(self, orchestrator, repository, audit_log):
        repository.add(
            UserAccount(id="u1", name="Pat", email="p@example.com", status=UserStatus.SUSPENDED)
        )
        with pytest.raises(InvalidTransitionError):
            await orchestrator.execute(MODERATOR, "users", "suspend", "u1", "x")
        assert audit_log.entries == ()

    @pytest.mark.anyio
    async def test_suspend_records_reason(self, orchestrator, audit_log, active_user):
        result = await orchestrator.execute(MODERATOR, "users", "suspend", "u1", "Chargebacks")
        assert result.entity.status == UserStatus.SUSPENDED
        assert result.entity.suspend_reason == "Chargebacks"
        assert result.entity.suspended_by == MODERATOR
        assert audit_log.entries[0].description == "Pat suspended: Chargebacks"

    @pytest.mark.anyio
    async def test_change_role_by_super_admin(self, orchestrator, audit_log, active_user):
        result = await orchestrator.execute(
            SUPER_ADMIN, "users", "change_role", "u1", role_id="moderator"
        )
        assert result.entity.is_admin is True
        assert result.entity.admin_role_id == "moderator"
        assert audit_log.entries[0].action == "user.role_change"
        assert audit_log.entries[0].new_value["adminRoleId"] == "moderator"

    @pytest.mark.anyio
    async def test_change_role_requires_super_admin(self, orchestrator, active_user):
        with pytest.raises(PermissionDeniedError) as exc_info:
            await orchestrator.execute(MODERATOR, "users", "change_role", "u1", role_id="support")
        assert exc_info.value.details["required"] == "super_admin"

    @pytest.mark.anyio
    async def test_change_role_to_unknown_role(self, orchestrator, active_user):
        with pytest.raises(NotFoundError):
            await orchestrator.execute(SUPER_ADMIN, "users", "change_role", "u1", role_id="ghost")

    @pytest.mark.anyio
    async def test_new_admin_can_act_immediately(self, orchestrator, active_user, pending_event):
        await orchestrator.execute(SUPER_ADMIN, "users", "change_role", "u1", role_id="moderator")
        result = await orchestrator.execute("u1", "events", "approve", "e1")
        assert result.audit_entry.actor_id == "u1"


class TestPayoutActions:
    @pytest.mark.anyio
    async def test_finance_admin_runs_payout_to_completion(self, orchestrator, repository, audit_log):
        repository.add(Payout(id="p1", provider_id="prov", provider_name="Cafe", amount=99.5))

        await orchestrator.execute(FINANCE, "finance", "process", "p1")
        result = await orchestrator.execute(FINANCE, "finance", "complete", "p1")

        assert result.entity.status == PayoutStatus.COMPLETED
        assert [entry.action for entry in audit_log.entries] == ["payout.process", "payout.complete"]

        with pytest.raises(InvalidTransitionError):
            await orchestrator.execute(FINANCE, "finance", "cancel", "p1")


class TestAuditFailure:
    @pytest.mark.anyio
    async def test_audit_failure_is_a_warning(self, repository, role_store, clock, pending_event, caplog):
        sink = FailingAuditSink()
        orchestrator = build(repository, sink, role_store, clock)

        with caplog.at_level(logging.ERROR, logger="admin_core.audit"):
            result = await orchestrator.execute(MODERATOR, "events", "approve", "e1")

        assert sink.calls == 1
        assert result.entity.approval_status == ApprovalStatus.APPROVED
        stored = await repository.load(EntityKind.EVENT, "e1")
        assert stored.approval_status == ApprovalStatus.APPROVED

        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.code == "AUDIT_WRITE_FAILED"
        assert warning.audit_entry_id == result.audit_entry.id
        assert warning.target_id == "e1"
        assert "operator_alert=audit_write_failed" in caplog.text


class TestConcurrency:
    @pytest.mark.anyio
    async def test_racing_suspends_serialize(self, audit_log, role_store, clock, repository):
        slow = SlowLoadRepository(await repository.list(EntityKind.USER))
        slow.add(UserAccount(id="u1", name="Pat", email="p@example.com", status=UserStatus.ACTIVE))
        orchestrator = build(slow, audit_log, role_store, clock)

        results = await asyncio.gather(
            orchestrator.execute(MODERATOR, "users", "suspend", "u1", "first"),
            orchestrator.execute(MODERATOR, "users", "suspend", "u1", "second"),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidTransitionError)
        assert len(audit_log.entries) == 1

    @pytest.mark.anyio
    async def test_suspend_and_unsuspend_apply_in_order(self, audit_log, role_store, clock, repository):
        slow = SlowLoadRepository(await repository.list(EntityKind.USER))
        slow.add(UserAccount(id="u1", name="Pat", email="p@example.com", status=UserStatus.ACTIVE))
        orchestrator = build(slow, audit_log, role_store, clock)

        results = await asyncio.gather(
            orchestrator.execute(MODERATOR, "users", "suspend", "u1", "spam"),
            orchestrator.execute(MODERATOR, "users", "unsuspend", "u1"),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        # Serialized on the entity lock, suspend applies whichever runs first.
        assert len(successes) >= 1
        assert all(isinstance(failure, InvalidTransitionError) for failure in failures)

        # One audit entry per success, appended in commit order.
        committed = [entry.action for entry in audit_log.entries]
        assert committed in (["user.suspend", "user.unsuspend"], ["user.suspend"])
        assert len(committed) == len(successes)

        final = await slow.load(EntityKind.USER, "u1")
        expected = UserStatus.SUSPENDED if committed[-1] == "user.suspend" else UserStatus.ACTIVE
        assert final.status == expected
        assert final.version == len(successes)
        assert audit_log.entries[-1].new_value == final.lifecycle_snapshot()

    @pytest.mark.anyio
    async def test_version_check_rejects_stale_write(self, audit_log, role_store, clock, repository):
        slow = SlowLoadRepository(await repository.list(EntityKind.USER))
        slow.add(UserAccount(id="u1", name="Pat", email="p@example.com", status=UserStatus.ACTIVE))
        orchestrator = build(slow, audit_log, role_store, clock, locks=NoLocks())

        results = await asyncio.gather(
            orchestrator.execute(MODERATOR, "users", "suspend", "u1", "first"),
            orchestrator.execute(MODERATOR, "users", "suspend", "u1", "second"),
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert any(isinstance(r, ConcurrentModificationError) for r in results)
        assert len(audit_log.entries) == 1

    @pytest.mark.anyio
    async def test_different_targets_run_in_parallel(self, orchestrator, repository, audit_log):
        for index in range(5):
            repository.add(Event(id=f"e{index}", title=f"Event {index}"))

        results = await asyncio.gather(
            *(orchestrator.execute(MODERATOR, "events", "approve", f"e{index}") for index in range(5))
        )

        assert all(r.entity.approval_status == ApprovalStatus.APPROVED for r in results)
        assert sorted(entry.target_id for entry in audit_log.entries) == [f"e{i}" for i in range(5)]
        assert len(orchestrator.locks) == 0

    @pytest.mark.anyio
    async def test_cancel_after_persist_completes_the_commit(self, audit_log, role_store, clock, repository):
        slow = SlowSaveRepository(await repository.list(EntityKind.USER))
        slow.add(Event(id="e1", title="Jazz Night"))
        orchestrator = build(slow, audit_log, role_store, clock)

        task = asyncio.ensure_future(orchestrator.execute(MODERATOR, "events", "approve", "e1"))
        await slow.save_started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        stored = await slow.load(EntityKind.EVENT, "e1")
        assert stored.approval_status == ApprovalStatus.APPROVED
        assert [entry.action for entry in audit_log.entries] == ["event.approve"]
