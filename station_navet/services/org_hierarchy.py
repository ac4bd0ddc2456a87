"""
Org Hierarchy: read-only snapshot of the region -> area -> station tree.

The tree is rebuilt from the flat OrgUnit list for every request. It is tiny
(tens of units), so lookups are dictionary hits and descendant queries are
linear scans over a children index.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence
from uuid import UUID

from ..models import OrgUnit, OrgUnitType, Scope
from ..repositories.base import OrgUnitRepository
from .exceptions import NotFound, ValidationError


# Parent type each unit type must hang under
_PARENT_TYPE = {
    OrgUnitType.REGION: None,
    OrgUnitType.AREA: OrgUnitType.REGION,
    OrgUnitType.STATION: OrgUnitType.AREA,
}


@dataclass(frozen=True)
class Ancestors:
    """The area and region above a station."""
    area: str
    region: str


class OrgHierarchy:
    """Immutable index over a well-formed org tree."""

    def __init__(self, units: Sequence[OrgUnit]):
        self._by_id: dict[UUID, OrgUnit] = {u.id: u for u in units}
        self._by_name: dict[str, OrgUnit] = {u.name: u for u in units}
        self._children: dict[UUID, list[OrgUnit]] = defaultdict(list)
        for unit in units:
            if unit.parent_id is not None:
                self._children[unit.parent_id].append(unit)
        for siblings in self._children.values():
            siblings.sort(key=lambda u: u.name)

    @classmethod
    def from_units(cls, units: Iterable[OrgUnit]) -> "OrgHierarchy":
        """
        Validate a flat unit list and build the snapshot.

        Raises:
            ValidationError: duplicate name, dangling parent or wrong parent type.
                With the parent types fixed per level a cycle cannot pass.
        """
        units = list(units)
        by_id = {u.id: u for u in units}
        seen: set[str] = set()

        for unit in units:
            if unit.name in seen:
                raise ValidationError(f"Duplicate org unit name: {unit.name}")
            seen.add(unit.name)

            expected = _PARENT_TYPE[OrgUnitType(unit.type)]
            if expected is None:
                if unit.parent_id is not None:
                    raise ValidationError(f"Region {unit.name} cannot have a parent")
                continue

            parent = by_id.get(unit.parent_id) if unit.parent_id else None
            if parent is None:
                raise ValidationError(f"{unit.type.value.capitalize()} {unit.name} has no parent")
            if parent.type != expected:
                raise ValidationError(
                    f"{unit.type.value.capitalize()} {unit.name} must belong to "
                    f"a {expected.value}, not a {parent.type.value}"
                )

        return cls(units)

    @classmethod
    async def load(cls, org_units: OrgUnitRepository) -> "OrgHierarchy":
        return cls.from_units(await org_units.list_all())

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get(self, name: str) -> OrgUnit:
        unit = self._by_name.get(name)
        if unit is None:
            raise NotFound(f"Org unit {name} not found")
        return unit

    def get_by_id(self, unit_id: UUID) -> OrgUnit:
        unit = self._by_id.get(unit_id)
        if unit is None:
            raise NotFound(f"Org unit {unit_id} not found")
        return unit

    def exists(self, name: str) -> bool:
        return name in self._by_name

    def names(self) -> set[str]:
        return set(self._by_name)

    def units(self, unit_type: OrgUnitType | None = None) -> list[OrgUnit]:
        units = sorted(self._by_id.values(), key=lambda u: u.name)
        if unit_type is None:
            return units
        return [u for u in units if u.type == unit_type]

    def children(self, unit_id: UUID) -> list[OrgUnit]:
        return list(self._children.get(unit_id, []))

    def scope_of(self, name: str) -> Scope:
        return Scope(self.get(name).type.value)

    # -------------------------------------------------------------------------
    # Ancestors / descendants
    # -------------------------------------------------------------------------

    def ancestors(self, station_name: str) -> Ancestors:
        station = self.get(station_name)
        if station.type != OrgUnitType.STATION:
            raise ValidationError(f"{station_name} is not a station")
        area = self._by_id[station.parent_id]
        region = self._by_id[area.parent_id]
        return Ancestors(area=area.name, region=region.name)

    def region_of_area(self, area_name: str) -> str:
        area = self.get(area_name)
        if area.type != OrgUnitType.AREA:
            raise ValidationError(f"{area_name} is not an area")
        return self._by_id[area.parent_id].name

    def chain_for_station(self, station_name: str) -> list[str]:
        """[station, area, region] for a station."""
        up = self.ancestors(station_name)
        return [station_name, up.area, up.region]

    def descendant_areas(self, region_name: str) -> list[str]:
        region = self.get(region_name)
        if region.type != OrgUnitType.REGION:
            return []
        return [u.name for u in self._children.get(region.id, []) if u.type == OrgUnitType.AREA]

    def descendant_stations(self, name: str) -> list[str]:
        """Stations under an area or a region. A station has none."""
        unit = self.get(name)
        if unit.type == OrgUnitType.AREA:
            areas = [unit]
        elif unit.type == OrgUnitType.REGION:
            areas = [u for u in self._children.get(unit.id, []) if u.type == OrgUnitType.AREA]
        else:
            return []

        stations: list[str] = []
        for area in areas:
            stations.extend(
                u.name for u in self._children.get(area.id, [])
                if u.type == OrgUnitType.STATION
            )
        return stations

    def subtree_post_order(self, unit_id: UUID) -> list[UUID]:
        """Ids of the unit and everything below it, children before parents."""
        self.get_by_id(unit_id)
        order: list[UUID] = []
        stack: list[tuple[UUID, bool]] = [(unit_id, False)]
        while stack:
            current, expanded = stack.pop()
            if expanded:
                order.append(current)
                continue
            stack.append((current, True))
            for child in self._children.get(current, []):
                stack.append((child.id, False))
        return order
