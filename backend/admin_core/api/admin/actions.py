"""
Admin API endpoints for lifecycle actions on users, events and payouts.

Every mutation goes through the ActionOrchestrator; the handlers only
translate HTTP to an ``execute`` call and the result back to JSON.
"""
from datetime import datetime

from fastapi import APIRouter, Body, Depends, Query

from ...container import Container
from ...dependencies import get_actor_id, get_container
from ...domain.projections import EntityFilter
from ...schemas.action import ActionRequest, ActionResponse
from ...schemas.audit_log import AuditLogRead, WarningRead

router = APIRouter(prefix="/admin", tags=["admin-actions"])


@router.get("/{resource}", response_model=list[dict])
async def list_entities(
    resource: str,
    search: str | None = Query(None, description="Case-insensitive match on name, email, title or provider"),
    status: str | None = Query(None, description="User or payout status"),
    verification_status: str | None = Query(None, alias="verificationStatus"),
    is_admin: bool | None = Query(None, alias="isAdmin"),
    approval_status: str | None = Query(None, alias="approvalStatus"),
    is_flagged: bool | None = Query(None, alias="isFlagged"),
    from_date: datetime | None = Query(None, alias="fromDate"),
    to_date: datetime | None = Query(None, alias="toDate"),
    min_amount: float | None = Query(None, alias="minAmount", ge=0),
    max_amount: float | None = Query(None, alias="maxAmount", ge=0),
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """
    Requires: {resource}:view

    Filters a resource does not have (e.g. minAmount on users) are rejected
    with 400 rather than ignored.
    """
    criteria = EntityFilter(
        search=search,
        status=status,
        verification_status=verification_status,
        is_admin=is_admin,
        approval_status=approval_status,
        is_flagged=is_flagged,
        from_date=from_date,
        to_date=to_date,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    entities = await container.queries.list_entities(actor_id, resource, criteria)
    return [entity.to_dict() for entity in entities]


@router.get("/{resource}/{target_id}", response_model=dict)
async def get_entity(
    resource: str,
    target_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: {resource}:view"""
    entity = await container.queries.get_entity(actor_id, resource, target_id)
    return entity.to_dict()


@router.post("/{resource}/{target_id}/{action}", response_model=ActionResponse)
async def execute_action(
    resource: str,
    target_id: str,
    action: str,
    payload: ActionRequest | None = Body(default=None),
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """
    Run one lifecycle transition.

    Requires the grant of the transition (e.g. events:approve). A committed
    action whose audit entry could not be written still returns 200, with
    the failure listed in ``warnings``.
    """
    payload = payload or ActionRequest()
    result = await container.orchestrator.execute(
        actor_id,
        resource,
        action,
        target_id,
        payload.reason,
        role_id=payload.role_id,
    )
    return ActionResponse(
        entity=result.entity.to_dict() if result.entity is not None else None,
        audit_entry=AuditLogRead.model_validate(result.audit_entry),
        warnings=[WarningRead(**warning.as_dict()) for warning in result.warnings],
    )
