"""
Scope Resolver: which org units a user belongs to, may read and may target.

All answers are sets of unit names, because posts address their audience by
name.
"""

from dataclasses import dataclass

from ..models import User, UserRole
from .org_hierarchy import OrgHierarchy


@dataclass(frozen=True)
class HomeChain:
    """Where a user sits in the tree. Managers without a station may lack one."""
    station: str | None
    area: str | None
    region: str | None

    def names(self) -> set[str]:
        return {n for n in (self.station, self.area, self.region) if n}


class ScopeResolver:
    """Role-based scope rules evaluated against one hierarchy snapshot."""

    def __init__(self, hierarchy: OrgHierarchy):
        self._hierarchy = hierarchy

    @property
    def hierarchy(self) -> OrgHierarchy:
        return self._hierarchy

    def is_onboarded(self, user: User) -> bool:
        """Has the user passed the station gate (or hold a manager override)?"""
        if user.station_id is not None:
            return True
        if user.role == UserRole.AREA_MANAGER:
            return user.area_id is not None
        if user.role == UserRole.REGION_MANAGER:
            return user.region_id is not None
        return False

    def home_chain(self, user: User) -> HomeChain:
        """
        Resolve the user's station, area and region names.

        An area or region override wins over what the station implies, so an
        area manager placed at a station elsewhere still manages their own area.
        """
        h = self._hierarchy
        station = area = region = None

        if user.station_id is not None:
            station = h.get_by_id(user.station_id).name
            up = h.ancestors(station)
            area, region = up.area, up.region

        if user.area_id is not None:
            area = h.get_by_id(user.area_id).name
            region = h.region_of_area(area)

        if user.region_id is not None:
            region = h.get_by_id(user.region_id).name

        return HomeChain(station=station, area=area, region=region)

    def allowed_targets(self, user: User) -> set[str]:
        """
        Unit names whose posts the user may read.

        Admins get an empty set: callers apply the admin bypass themselves.
        """
        role = UserRole(user.role)
        if role == UserRole.ADMIN:
            return set()

        home = self.home_chain(user)
        allowed = home.names()

        if role == UserRole.AREA_MANAGER:
            if home.area:
                allowed.update(self._hierarchy.descendant_stations(home.area))
        elif role == UserRole.REGION_MANAGER:
            if home.region:
                allowed.update(self._hierarchy.descendant_areas(home.region))
                allowed.update(self._hierarchy.descendant_stations(home.region))
        elif role in (UserRole.MEMBER, UserRole.STATION_MANAGER):
            pass
        else:
            raise ValueError(f"Unhandled role: {role}")

        return allowed

    def can_see_target(self, user: User, target: str) -> bool:
        if user.role == UserRole.ADMIN:
            return True
        return target in self.allowed_targets(user)

    def relevant_chain(self, station_name: str) -> set[str]:
        """{station, its area, its region}."""
        return set(self._hierarchy.chain_for_station(station_name))

    def valid_submission_targets(self, user: User) -> set[str] | None:
        """
        Unit names the user may address a new post to. None means unrestricted.

        - member: own station
        - station manager: own station or its area
        - area manager: own area or any station inside it
        - region manager: own region only
        """
        role = UserRole(user.role)
        if role == UserRole.ADMIN:
            return None

        home = self.home_chain(user)
        if role == UserRole.MEMBER:
            return {home.station} if home.station else set()
        elif role == UserRole.STATION_MANAGER:
            return {n for n in (home.station, home.area) if n}
        elif role == UserRole.AREA_MANAGER:
            if not home.area:
                return set()
            return {home.area, *self._hierarchy.descendant_stations(home.area)}
        elif role == UserRole.REGION_MANAGER:
            return {home.region} if home.region else set()
        raise ValueError(f"Unhandled role: {role}")
