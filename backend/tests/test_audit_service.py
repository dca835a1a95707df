"""Tests for AuditService."""
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from admin_core.domain.entities import Actor
from admin_core.infra.memory import InMemoryAuditLog
from admin_core.services.audit.audit_service import AuditService

FIXED_TIME = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

ACTOR = Actor(id="admin-1", name="Ada", email="ada@example.com", role_id="super_admin")


@pytest.fixture
def service():
    return AuditService(InMemoryAuditLog(), clock=lambda: FIXED_TIME, id_factory=lambda: "audit-1")


class TestBuildEntry:
    def test_entry_carries_actor_identity(self, service):
        entry = service.build_entry("event.approve", "event", "e1", ACTOR, new_value={"a": 1})

        assert entry.id == "audit-1"
        assert entry.actor_id == "admin-1"
        assert entry.actor_name == "Ada"
        assert entry.actor_email == "ada@example.com"
        assert entry.timestamp == FIXED_TIME
        assert entry.previous_value is None

    def test_invalid_target_type(self, service):
        with pytest.raises(ValueError) as exc_info:
            service.build_entry("x.y", "invalid_type", "1", ACTOR)
        assert "Invalid target_type" in str(exc_info.value)

    def test_record_shape_omits_empty_values(self, service):
        entry = service.build_entry("role.delete", "role", "r1", ACTOR, previous_value={"name": "R"})
        record = entry.to_record()

        assert record["previousValue"] == {"name": "R"}
        assert "newValue" not in record
        assert record["timestamp"] == FIXED_TIME.isoformat()


class TestRecord:
    @pytest.mark.anyio
    async def test_log_create_appends(self, service):
        outcome = await service.log_create("role", "r1", {"name": "R"}, ACTOR)

        assert outcome.recorded is True
        assert outcome.entry.action == "role.create"
        assert service.sink.entries == (outcome.entry,)

    @pytest.mark.anyio
    async def test_log_update_keeps_both_snapshots(self, service):
        outcome = await service.log_update("role", "r1", {"name": "A"}, {"name": "B"}, ACTOR)
        assert outcome.entry.action == "role.update"
        assert outcome.entry.previous_value == {"name": "A"}
        assert outcome.entry.new_value == {"name": "B"}

    @pytest.mark.anyio
    async def test_failed_write_returns_warning(self, caplog):
        sink = AsyncMock()
        sink.append.side_effect = ConnectionError("db down")
        service = AuditService(sink, clock=lambda: FIXED_TIME, id_factory=lambda: "audit-9")

        with caplog.at_level(logging.ERROR, logger="admin_core.audit"):
            outcome = await service.log_delete("event", "e1", {"title": "T"}, ACTOR)

        sink.append.assert_awaited_once()
        assert outcome.recorded is False
        assert outcome.warning.audit_entry_id == "audit-9"
        assert outcome.warning.as_dict()["details"] == {
            "auditEntryId": "audit-9",
            "action": "event.delete",
            "targetId": "e1",
        }
        assert "operator_alert=audit_write_failed" in caplog.text
