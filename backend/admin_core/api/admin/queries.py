from datetime import datetime

from fastapi import APIRouter, Depends, Query

from ...container import Container
from ...dependencies import get_actor_id, get_container
from ...schemas.audit_log import AuditLogRead
from ...schemas.moderation import DashboardStatsRead, ModerationQueueItemRead

router = APIRouter(prefix="/admin", tags=["admin-queries"])


@router.get("/moderation-queue", response_model=list[ModerationQueueItemRead])
async def moderation_queue(
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: events:view"""
    items = await container.queries.moderation_queue(actor_id)
    return [ModerationQueueItemRead.model_validate(item) for item in items]


@router.get("/stats", response_model=DashboardStatsRead)
async def dashboard_stats(
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: reports:view"""
    return DashboardStatsRead.model_validate(await container.queries.dashboard_stats(actor_id))


@router.get("/audit-logs", response_model=list[AuditLogRead])
async def audit_logs(
    actor: str | None = Query(None, description="Filter by acting admin id"),
    action: str | None = Query(None, description="Filter by action, e.g. event.approve"),
    target_type: str | None = Query(None, alias="targetType"),
    target_id: str | None = Query(None, alias="targetId"),
    from_date: datetime | None = Query(None, alias="fromDate"),
    to_date: datetime | None = Query(None, alias="toDate"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: audit_logs:view. Newest first."""
    entries = await container.queries.audit_logs(
        actor_id,
        actor_filter=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return [AuditLogRead.model_validate(entry) for entry in entries]
