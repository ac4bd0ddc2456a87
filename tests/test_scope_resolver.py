"""Tests for role-based read and targeting scopes."""

import pytest

from station_navet.models import UserRole
from station_navet.services import OrgHierarchy, ScopeResolver

from .conftest import World


@pytest.fixture
async def resolver(world: World) -> ScopeResolver:
    return ScopeResolver(await OrgHierarchy.load(world.repos.org_units))


class TestAllowedTargets:

    async def test_member_sees_own_chain(self, world: World, resolver: ScopeResolver):
        assert resolver.allowed_targets(world.users["anna"]) == {"Norrtälje", "Roslagen", "Nord"}

    async def test_station_manager_sees_own_chain(self, world: World, resolver: ScopeResolver):
        assert resolver.allowed_targets(world.users["sm_sodermalm"]) == {"Södermalm", "City", "Nord"}

    async def test_area_manager_adds_stations_of_area(self, world: World, resolver: ScopeResolver):
        assert resolver.allowed_targets(world.users["am_roslagen"]) == {
            "Roslagen", "Nord", "Norrtälje", "Rimbo", "Hallstavik",
        }

    async def test_region_manager_adds_whole_region(self, world: World, resolver: ScopeResolver):
        assert resolver.allowed_targets(world.users["rm_nord"]) == {
            "Nord", "Roslagen", "City",
            "Norrtälje", "Rimbo", "Hallstavik", "Södermalm", "Solna",
        }

    async def test_admin_has_no_default_scope(self, world: World, resolver: ScopeResolver):
        assert resolver.allowed_targets(world.users["admin"]) == set()
        assert resolver.can_see_target(world.users["admin"], "Ystad")

    async def test_area_override_wins_over_station(self, world: World, resolver: ScopeResolver):
        # An area manager seated at a City station who manages Roslagen
        manager = await world.add_user(
            "am_moved", UserRole.AREA_MANAGER, station="Solna", area="Roslagen"
        )
        home = resolver.home_chain(manager)
        assert (home.station, home.area, home.region) == ("Solna", "Roslagen", "Nord")
        assert "Rimbo" in resolver.allowed_targets(manager)


class TestRelevantChain:

    async def test_relevant_chain(self, resolver: ScopeResolver):
        assert resolver.relevant_chain("Rimbo") == {"Rimbo", "Roslagen", "Nord"}


class TestSubmissionTargets:

    async def test_member_only_own_station(self, world: World, resolver: ScopeResolver):
        assert resolver.valid_submission_targets(world.users["anna"]) == {"Norrtälje"}

    async def test_station_manager_station_or_area(self, world: World, resolver: ScopeResolver):
        assert resolver.valid_submission_targets(world.users["sm_norrtalje"]) == {
            "Norrtälje", "Roslagen",
        }

    async def test_area_manager_area_or_its_stations(self, world: World, resolver: ScopeResolver):
        assert resolver.valid_submission_targets(world.users["am_roslagen"]) == {
            "Roslagen", "Norrtälje", "Rimbo", "Hallstavik",
        }

    async def test_region_manager_only_region(self, world: World, resolver: ScopeResolver):
        assert resolver.valid_submission_targets(world.users["rm_nord"]) == {"Nord"}

    async def test_admin_unrestricted(self, world: World, resolver: ScopeResolver):
        assert resolver.valid_submission_targets(world.users["admin"]) is None

    async def test_onboarding(self, world: World, resolver: ScopeResolver):
        assert resolver.is_onboarded(world.users["anna"])
        assert resolver.is_onboarded(world.users["am_roslagen"])
        assert not resolver.is_onboarded(world.users["newbie"])
