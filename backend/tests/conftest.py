"""Shared test fixtures and configuration."""
import os
from datetime import datetime, timedelta, timezone

import pytest

# Importing admin_core.main builds the module-level app from the environment.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENTITY_LOCK_BACKEND", "memory")

from admin_core.auth.permissions import (  # noqa: E402
    FINANCE_ADMIN_ROLE_ID,
    MODERATOR_ROLE_ID,
    SUPER_ADMIN_ROLE_ID,
    SUPPORT_ROLE_ID,
)
from admin_core.domain.entities import UserAccount, UserStatus, VerificationStatus  # noqa: E402
from admin_core.infra.memory import (  # noqa: E402
    InMemoryAuditLog,
    InMemoryEntityRepository,
    InMemoryRoleStore,
)
from admin_core.services.admin.lock_service import EntityLockRegistry  # noqa: E402
from admin_core.services.admin.orchestrator import ActionOrchestrator  # noqa: E402
from admin_core.services.admin.permission_service import UserActorDirectory  # noqa: E402
from admin_core.services.admin.role_service import RoleService  # noqa: E402

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

SUPER_ADMIN = "admin-super"
MODERATOR = "admin-mod"
FINANCE = "admin-finance"
SUPPORT = "admin-support"


class Ticker:
    """Deterministic clock: each call is one second after the previous one."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


def admin_user(user_id: str, role_id: str, name: str) -> UserAccount:
    return UserAccount(
        id=user_id,
        name=name,
        email=f"{user_id}@example.com",
        status=UserStatus.ACTIVE,
        verification_status=VerificationStatus.VERIFIED,
        is_admin=True,
        admin_role_id=role_id,
    )


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return Ticker()


@pytest.fixture
def repository():
    return InMemoryEntityRepository(
        [
            admin_user(SUPER_ADMIN, SUPER_ADMIN_ROLE_ID, "Ada Super"),
            admin_user(MODERATOR, MODERATOR_ROLE_ID, "Mo Derator"),
            admin_user(FINANCE, FINANCE_ADMIN_ROLE_ID, "Fin Ance"),
            admin_user(SUPPORT, SUPPORT_ROLE_ID, "Sup Port"),
        ]
    )


@pytest.fixture
def audit_log():
    return InMemoryAuditLog()


@pytest.fixture
def role_store():
    return InMemoryRoleStore()


@pytest.fixture
def orchestrator(repository, audit_log, role_store, clock):
    return ActionOrchestrator(
        repository,
        audit_log,
        role_store,
        UserActorDirectory(repository),
        EntityLockRegistry(),
        clock=clock,
    )


@pytest.fixture
def role_service(repository, audit_log, role_store, clock):
    return RoleService(role_store, audit_log, UserActorDirectory(repository), clock=clock)
