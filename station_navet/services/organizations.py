"""Organization service: the region -> area -> station tree and its admin edits."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from ..models import OrgUnit, OrgUnitType, User
from ..repositories.base import Repositories
from .exceptions import ValidationError
from .org_hierarchy import OrgHierarchy
from .users import require_admin


logger = logging.getLogger(__name__)


@dataclass
class OrgNode:
    unit: OrgUnit
    children: list["OrgNode"] = field(default_factory=list)


class OrganizationService:

    def __init__(self, repos: Repositories):
        self._repos = repos

    async def _hierarchy(self) -> OrgHierarchy:
        return await OrgHierarchy.load(self._repos.org_units)

    async def get_tree(self) -> list[OrgNode]:
        """Regions with their areas and stations, sorted by name at every level."""
        hierarchy = await self._hierarchy()
        roots = [OrgNode(unit=r) for r in hierarchy.units(OrgUnitType.REGION)]

        # Iterative fill, the tree has a fixed depth of three
        pending = list(roots)
        while pending:
            node = pending.pop()
            node.children = [OrgNode(unit=c) for c in hierarchy.children(node.unit.id)]
            pending.extend(node.children)
        return roots

    async def create_unit(
        self,
        admin: User,
        unit_type: OrgUnitType,
        name: str,
        parent_id: UUID | None = None,
    ) -> OrgUnit:
        """
        Add a unit. Areas must hang under a region, stations under an area
        and only regions may lack a parent.
        """
        require_admin(admin)
        unit_type = OrgUnitType(unit_type)
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")

        hierarchy = await self._hierarchy()
        if hierarchy.exists(name):
            raise ValidationError(f"An org unit named {name} already exists")

        if parent_id is not None:
            parent = hierarchy.get_by_id(parent_id)
            if unit_type == OrgUnitType.AREA and parent.type != OrgUnitType.REGION:
                raise ValidationError("Areas must belong to a region")
            if unit_type == OrgUnitType.STATION and parent.type != OrgUnitType.AREA:
                raise ValidationError("Stations must belong to an area")
            if unit_type == OrgUnitType.REGION:
                raise ValidationError("Regions cannot have a parent")
        elif unit_type != OrgUnitType.REGION:
            raise ValidationError("Only regions can lack a parent")

        unit = await self._repos.org_units.add(OrgUnit(
            type=unit_type,
            name=name,
            parent_id=parent_id,
        ))
        await self._repos.commit()
        logger.info(f"Admin {admin.id} created {unit_type.value} {name}")
        return unit

    async def rename_unit(self, admin: User, unit_id: UUID, name: str) -> OrgUnit:
        """Rename a unit. Existing posts keep the audience name they were sent to."""
        require_admin(admin)
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required")

        hierarchy = await self._hierarchy()
        unit = hierarchy.get_by_id(unit_id)
        if name != unit.name and hierarchy.exists(name):
            raise ValidationError(f"An org unit named {name} already exists")

        unit.name = name
        await self._repos.commit()
        return unit

    async def delete_unit(self, admin: User, unit_id: UUID) -> list[UUID]:
        """
        Delete a unit and everything below it, children first.

        Refuses while any user is placed anywhere in the subtree.

        Returns:
            The deleted ids in deletion order.
        """
        require_admin(admin)
        hierarchy = await self._hierarchy()
        unit = hierarchy.get_by_id(unit_id)
        subtree = hierarchy.subtree_post_order(unit_id)

        assigned = await self._repos.users.list_in_units(subtree)
        if assigned:
            raise ValidationError(
                f"Cannot delete {unit.name}: {len(assigned)} user(s) are still assigned. "
                "Move them first."
            )

        await self._repos.org_units.delete_many(subtree)
        await self._repos.commit()
        logger.info(f"Admin {admin.id} deleted {unit.name} ({len(subtree)} units)")
        return subtree
