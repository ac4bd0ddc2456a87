"""Pydantic schemas for the org tree and users."""

from uuid import UUID

from pydantic import Field

from ..models import OrgUnitType, UserRole
from .base import NavetBaseModel


# =============================================================================
# ORG TREE
# =============================================================================


class OrgUnitResponse(NavetBaseModel):
    id: UUID
    type: OrgUnitType
    name: str
    parent_id: UUID | None = None


class OrgTreeNode(OrgUnitResponse):
    children: list["OrgTreeNode"] = []


class OrgUnitCreate(NavetBaseModel):
    type: OrgUnitType
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: UUID | None = None


class OrgUnitRename(NavetBaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class OrgUnitDeleteResponse(NavetBaseModel):
    deleted: list[UUID]


# =============================================================================
# USERS
# =============================================================================


class UserResponse(NavetBaseModel):
    """A user with the names of their station, area and region."""

    id: UUID
    name: str
    role: UserRole
    station: str | None = None
    area: str | None = None
    region: str | None = None


class StationSelect(NavetBaseModel):
    station: str = Field(..., min_length=1, max_length=255)


class RoleUpdate(NavetBaseModel):
    role: UserRole
    area: str | None = Field(default=None, description="Override area for area managers")
    region: str | None = Field(default=None, description="Override region for region managers")

OrgTreeNode.model_rebuild()
