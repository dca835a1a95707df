"""
Admin API endpoints for role administration.

System roles are listed and readable but reject updates and deletes with
IMMUTABLE_ROLE.
"""
from fastapi import APIRouter, Depends, status

from ...container import Container
from ...dependencies import get_actor_id, get_container
from ...schemas.audit_log import AuditLogRead, WarningRead
from ...schemas.role import RoleCreate, RoleDuplicate, RoleMutationResponse, RoleRead, RoleUpdate
from ...services.admin.results import RoleResult

router = APIRouter(prefix="/admin/roles", tags=["admin-roles"])


def _mutation_response(result: RoleResult) -> RoleMutationResponse:
    return RoleMutationResponse(
        role=RoleRead.from_role(result.role) if result.role is not None else None,
        audit_entry=AuditLogRead.model_validate(result.audit_entry),
        warnings=[WarningRead(**warning.as_dict()) for warning in result.warnings],
    )


@router.get("", response_model=list[RoleRead])
async def list_roles(
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: roles:view"""
    roles = await container.roles.list_roles(actor_id)
    return [RoleRead.from_role(role) for role in roles]


@router.post("", response_model=RoleMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: roles:create"""
    result = await container.roles.create_role(
        actor_id,
        payload.name,
        payload.permissions,
        payload.description,
    )
    return _mutation_response(result)


@router.get("/{role_id}", response_model=RoleRead)
async def get_role(
    role_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: roles:view"""
    return RoleRead.from_role(await container.roles.get_role(actor_id, role_id))


@router.patch("/{role_id}", response_model=RoleMutationResponse)
async def update_role(
    role_id: str,
    payload: RoleUpdate,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: roles:edit"""
    result = await container.roles.update_role(
        actor_id,
        role_id,
        name=payload.name,
        description=payload.description,
        permissions=payload.permissions,
    )
    return _mutation_response(result)


@router.delete("/{role_id}", response_model=RoleMutationResponse)
async def delete_role(
    role_id: str,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: roles:delete"""
    return _mutation_response(await container.roles.delete_role(actor_id, role_id))


@router.post(
    "/{role_id}/duplicate",
    response_model=RoleMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_role(
    role_id: str,
    payload: RoleDuplicate,
    actor_id: str = Depends(get_actor_id),
    container: Container = Depends(get_container),
):
    """Requires: roles:create"""
    result = await container.roles.duplicate_role(actor_id, role_id, payload.name)
    return _mutation_response(result)
