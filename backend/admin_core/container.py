"""
Explicit wiring of the core's collaborators.

The orchestrator and services receive their ports through constructors;
this module is the one place that decides which adapters back them.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings
from .crud.audit_log import AuditLogRepository
from .crud.entity import EntityRepository
from .crud.role import RoleRepository
from .domain.ports import AuditLogReader, AuditSink, EntityLockProvider, RoleStore
from .domain.ports import EntityRepository as EntityRepositoryPort
from .infra.memory import InMemoryAuditLog, InMemoryEntityRepository, InMemoryRoleStore
from .infra.redis import RedisEntityLocks, get_async_redis_client
from .services.admin.lock_service import EntityLockRegistry
from .services.admin.orchestrator import ActionOrchestrator
from .services.admin.permission_service import UserActorDirectory
from .services.admin.query_service import AdminQueryService
from .services.admin.role_service import RoleService

logger = logging.getLogger("admin_core.container")


@dataclass
class Container:
    repository: EntityRepositoryPort
    audit_sink: AuditSink
    audit_reader: AuditLogReader
    role_store: RoleStore
    locks: EntityLockProvider
    orchestrator: ActionOrchestrator
    roles: RoleService
    queries: AdminQueryService


def build_container(
    repository: EntityRepositoryPort,
    audit_log: AuditSink,
    audit_reader: AuditLogReader,
    role_store: RoleStore,
    locks: EntityLockProvider | None = None,
) -> Container:
    locks = locks if locks is not None else EntityLockRegistry()
    actors = UserActorDirectory(repository)
    return Container(
        repository=repository,
        audit_sink=audit_log,
        audit_reader=audit_reader,
        role_store=role_store,
        locks=locks,
        orchestrator=ActionOrchestrator(repository, audit_log, role_store, actors, locks),
        roles=RoleService(role_store, audit_log, actors),
        queries=AdminQueryService(repository, audit_reader, role_store, actors),
    )


def build_memory_container(
    repository: InMemoryEntityRepository | None = None,
    audit_log: InMemoryAuditLog | None = None,
    role_store: InMemoryRoleStore | None = None,
) -> Container:
    repository = repository if repository is not None else InMemoryEntityRepository()
    audit_log = audit_log if audit_log is not None else InMemoryAuditLog()
    role_store = role_store if role_store is not None else InMemoryRoleStore()
    return build_container(repository, audit_log, audit_log, role_store)


def build_lock_provider(settings: Settings) -> EntityLockProvider:
    if settings.entity_lock_backend == "redis":
        logger.info("Using Redis entity locks ttl_seconds=%s", settings.entity_lock_ttl_seconds)
        return RedisEntityLocks(
            get_async_redis_client(settings.redis_url),
            ttl_seconds=settings.entity_lock_ttl_seconds,
            wait_seconds=settings.entity_lock_wait_seconds,
        )
    return EntityLockRegistry()


def build_sql_container(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> Container:
    audit_log = AuditLogRepository(session_factory)
    return build_container(
        EntityRepository(session_factory),
        audit_log,
        audit_log,
        RoleRepository(session_factory),
        build_lock_provider(settings),
    )
