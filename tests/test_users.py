"""Tests for onboarding and admin user management."""

from uuid import uuid4

import pytest

from station_navet.models import UserRole
from station_navet.services import (
    AuthorizationDenied,
    InvalidTransition,
    NotFound,
    OrgHierarchy,
    ScopeResolver,
    UserService,
    ValidationError,
)

from .conftest import World


@pytest.fixture
def service(repos) -> UserService:
    return UserService(repos)


class TestFirstContact:

    async def test_creates_stationless_member(self, world: World, service: UserService):
        user = await service.ensure_user("idp|new-person", "Greta")

        assert user.role == UserRole.MEMBER
        assert user.station_id is None
        assert user.name == "Greta"
        assert (await service.ensure_user("idp|new-person")).id == user.id

    async def test_name_follows_identity_provider(self, world: World, service: UserService):
        user = await service.ensure_user("idp|anna", "Anna Andersson")
        assert user.id == world.users["anna"].id
        assert user.name == "Anna Andersson"

    async def test_fallback_name(self, world: World, service: UserService):
        user = await service.ensure_user("idp|abcdefgh12345678")
        assert user.name == "User 12345678"


class TestSelectStation:

    async def test_one_time_selection(self, world: World, service: UserService):
        newbie = world.users["newbie"]
        await service.select_station(newbie, "Rimbo")

        described = await service.describe(newbie)
        assert (described.home.station, described.home.area, described.home.region) == (
            "Rimbo", "Roslagen", "Nord",
        )

        with pytest.raises(InvalidTransition):
            await service.select_station(newbie, "Solna")

    async def test_must_pick_a_station(self, world: World, service: UserService):
        with pytest.raises(ValidationError):
            await service.select_station(world.users["newbie"], "Roslagen")
        with pytest.raises(NotFound):
            await service.select_station(world.users["newbie"], "Atlantis")


class TestAdmin:

    async def test_only_admins(self, world: World, service: UserService):
        with pytest.raises(AuthorizationDenied):
            await service.list_users(world.users["rm_nord"])
        with pytest.raises(AuthorizationDenied):
            await service.update_role(world.users["anna"], world.users["bo"].id, UserRole.ADMIN)

    async def test_list_users_with_org_names(self, world: World, service: UserService):
        listed = {u.user.name: u.home for u in await service.list_users(world.users["admin"])}
        assert listed["Am Roslagen"].area == "Roslagen"
        assert listed["Am Roslagen"].region == "Nord"
        assert listed["Newbie"].station is None

    async def test_promote_to_area_manager(self, world: World, service: UserService):
        bo = world.users["bo"]
        await service.update_role(world.users["admin"], bo.id, UserRole.AREA_MANAGER, area_name="City")

        resolver = ScopeResolver(await OrgHierarchy.load(world.repos.org_units))
        assert bo.role == UserRole.AREA_MANAGER
        assert resolver.home_chain(bo).area == "City"
        assert "Solna" in resolver.allowed_targets(bo)

    async def test_demotion_clears_override(self, world: World, service: UserService):
        manager = world.users["am_roslagen"]
        await service.update_role(world.users["admin"], manager.id, UserRole.MEMBER)

        assert manager.role == UserRole.MEMBER
        assert manager.area_id is None

    async def test_override_must_match_role(self, world: World, service: UserService):
        with pytest.raises(ValidationError):
            await service.update_role(
                world.users["admin"], world.users["bo"].id, UserRole.REGION_MANAGER, region_name="City"
            )

    async def test_assign_station(self, world: World, service: UserService):
        anna = world.users["anna"]
        await service.assign_station(world.users["admin"], anna.id, "Ystad")
        assert anna.station_id == world.unit_id("Ystad")

    async def test_unknown_user(self, world: World, service: UserService):
        with pytest.raises(NotFound):
            await service.assign_station(world.users["admin"], uuid4(), "Ystad")
