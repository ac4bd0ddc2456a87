"""User service: first contact, station onboarding and admin user management."""

import logging
from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from ..models import OrgUnitType, User, UserRole
from ..repositories.base import Repositories
from .exceptions import AuthorizationDenied, InvalidTransition, NotFound, ValidationError
from .org_hierarchy import OrgHierarchy
from .scope_resolver import HomeChain, ScopeResolver


logger = logging.getLogger(__name__)


@dataclass
class UserWithOrg:
    """A user together with the names of their station, area and region."""
    user: User
    home: HomeChain


def require_admin(user: User) -> None:
    if user.role != UserRole.ADMIN:
        raise AuthorizationDenied("Only administrators can do this")


class UserService:

    def __init__(self, repos: Repositories):
        self._repos = repos

    async def ensure_user(self, identity: str, name: str | None = None) -> User:
        """Return the user for an identity, creating a stationless member on first contact."""
        user = await self._repos.users.get_by_identity(identity)
        if user is not None:
            if name and user.name != name:
                user.name = name
                await self._repos.commit()
            return user

        user = await self._repos.users.add(User(
            identity=identity,
            name=name or f"User {identity[-8:]}",
            role=UserRole.MEMBER,
        ))
        await self._repos.commit()
        logger.info(f"Created user {user.id} on first contact")
        return user

    async def _station(self, station_name: str):
        hierarchy = await OrgHierarchy.load(self._repos.org_units)
        unit = hierarchy.get(station_name)
        if unit.type != OrgUnitType.STATION:
            raise ValidationError(f"{station_name} is not a station")
        return unit

    async def select_station(self, user: User, station_name: str) -> User:
        """One-time onboarding. Later moves go through an admin."""
        if user.station_id is not None:
            raise InvalidTransition("Your station is already set")
        station = await self._station(station_name)
        user.station_id = station.id
        await self._repos.commit()
        logger.info(f"User {user.id} onboarded at {station_name}")
        return user

    async def describe(self, user: User) -> UserWithOrg:
        resolver = ScopeResolver(await OrgHierarchy.load(self._repos.org_units))
        return UserWithOrg(user=user, home=resolver.home_chain(user))

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    async def list_users(self, admin: User) -> list[UserWithOrg]:
        require_admin(admin)
        resolver = ScopeResolver(await OrgHierarchy.load(self._repos.org_units))
        users: Sequence[User] = await self._repos.users.list_all()
        return [UserWithOrg(user=u, home=resolver.home_chain(u)) for u in users]

    async def _get_user(self, user_id: UUID) -> User:
        user = await self._repos.users.get(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    async def update_role(
        self,
        admin: User,
        user_id: UUID,
        role: UserRole,
        area_name: str | None = None,
        region_name: str | None = None,
    ) -> User:
        """
        Change a user's role. Area and region managers may be given an
        override unit; other roles lose any override they had.
        """
        require_admin(admin)
        user = await self._get_user(user_id)
        role = UserRole(role)
        hierarchy = await OrgHierarchy.load(self._repos.org_units)

        area_id = region_id = None
        if role == UserRole.AREA_MANAGER and area_name:
            area = hierarchy.get(area_name)
            if area.type != OrgUnitType.AREA:
                raise ValidationError(f"{area_name} is not an area")
            area_id = area.id
        elif role == UserRole.REGION_MANAGER and region_name:
            region = hierarchy.get(region_name)
            if region.type != OrgUnitType.REGION:
                raise ValidationError(f"{region_name} is not a region")
            region_id = region.id

        user.role = role
        user.area_id = area_id
        user.region_id = region_id
        await self._repos.commit()
        logger.info(f"Admin {admin.id} set role of {user.id} to {role.value}")
        return user

    async def assign_station(self, admin: User, user_id: UUID, station_name: str) -> User:
        require_admin(admin)
        user = await self._get_user(user_id)
        station = await self._station(station_name)
        user.station_id = station.id
        await self._repos.commit()
        logger.info(f"Admin {admin.id} moved {user.id} to {station_name}")
        return user
