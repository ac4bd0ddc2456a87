"""Org tree API routes. Reading is open to every user, editing is admin only."""

from uuid import UUID

from fastapi import APIRouter, status

from ..core.dependencies import AdminDep, CurrentUserDep, OrganizationServiceDep
from ..schemas import (
    OrgTreeNode,
    OrgUnitCreate,
    OrgUnitDeleteResponse,
    OrgUnitRename,
    OrgUnitResponse,
)
from ..services import OrgNode

router = APIRouter(prefix="/organizations", tags=["organizations"])


def to_tree_node(node: OrgNode) -> OrgTreeNode:
    return OrgTreeNode(
        id=node.unit.id,
        type=node.unit.type,
        name=node.unit.name,
        parent_id=node.unit.parent_id,
        children=[to_tree_node(c) for c in node.children],
    )


@router.get("", response_model=list[OrgTreeNode])
async def get_tree(current_user: CurrentUserDep, service: OrganizationServiceDep):
    return [to_tree_node(root) for root in await service.get_tree()]


@router.post("", response_model=OrgUnitResponse, status_code=status.HTTP_201_CREATED)
async def create_unit(request: OrgUnitCreate, admin: AdminDep, service: OrganizationServiceDep):
    return await service.create_unit(admin, request.type, request.name, request.parent_id)


@router.patch("/{unit_id}", response_model=OrgUnitResponse)
async def rename_unit(
    unit_id: UUID,
    request: OrgUnitRename,
    admin: AdminDep,
    service: OrganizationServiceDep,
):
    return await service.rename_unit(admin, unit_id, request.name)


@router.delete("/{unit_id}", response_model=OrgUnitDeleteResponse)
async def delete_unit(unit_id: UUID, admin: AdminDep, service: OrganizationServiceDep):
    """Delete a unit with its whole subtree. Refused while users are placed in it."""
    return OrgUnitDeleteResponse(deleted=await service.delete_unit(admin, unit_id))
