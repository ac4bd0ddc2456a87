"""
Pytest Configuration and Fixtures.

The org tree used throughout:

    Nord (region)
      Roslagen (area): Norrtälje, Rimbo, Hallstavik
      City (area): Södermalm, Solna
    Syd (region)
      Skåne (area): Ystad
"""

import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from uuid import UUID, uuid4

# Set testing mode before importing the app
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PUSH_ENABLED"] = "false"

import pytest

from station_navet.models import (
    OrgUnit,
    OrgUnitType,
    Post,
    PostKind,
    PostStatus,
    PushSubscription,
    Scope,
    User,
    UserRole,
)
from station_navet.repositories import InMemoryRepositories
from station_navet.services import (
    LifecycleEngine,
    NotificationDispatcher,
    PushResult,
    PushTransport,
)


# =============================================================================
# BUILDERS
# =============================================================================


ORG_TREE = {
    "Nord": {
        "Roslagen": ["Norrtälje", "Rimbo", "Hallstavik"],
        "City": ["Södermalm", "Solna"],
    },
    "Syd": {
        "Skåne": ["Ystad"],
    },
}


def build_units(tree: dict = ORG_TREE) -> list[OrgUnit]:
    """Flat OrgUnit list with ids assigned, regions first."""
    units = []
    for region_name, areas in tree.items():
        region = OrgUnit(id=uuid4(), type=OrgUnitType.REGION, name=region_name, parent_id=None)
        units.append(region)
        for area_name, stations in areas.items():
            area = OrgUnit(id=uuid4(), type=OrgUnitType.AREA, name=area_name, parent_id=region.id)
            units.append(area)
            for station_name in stations:
                units.append(OrgUnit(
                    id=uuid4(),
                    type=OrgUnitType.STATION,
                    name=station_name,
                    parent_id=area.id,
                ))
    return units


@dataclass
class World:
    """In-memory repositories seeded with the org tree and a cast of users."""

    repos: InMemoryRepositories
    units: dict[str, OrgUnit] = field(default_factory=dict)
    users: dict[str, User] = field(default_factory=dict)

    def unit_id(self, name: str) -> UUID:
        return self.units[name].id

    async def add_user(
        self,
        key: str,
        role: UserRole = UserRole.MEMBER,
        station: str | None = None,
        area: str | None = None,
        region: str | None = None,
    ) -> User:
        user = await self.repos.users.add(User(
            identity=f"idp|{key}",
            name=key.replace("_", " ").title(),
            role=role,
            station_id=self.unit_id(station) if station else None,
            area_id=self.unit_id(area) if area else None,
            region_id=self.unit_id(region) if region else None,
        ))
        self.users[key] = user
        return user

    async def add_post(
        self,
        author: str,
        target: str,
        status: PostStatus = PostStatus.PROPOSAL,
        kind: PostKind = PostKind.IDEA,
        title: str | None = None,
    ) -> Post:
        """Insert a post directly, bypassing the engine."""
        return await self.repos.posts.add(Post(
            kind=kind,
            author_id=self.users[author].id,
            title=title or f"{kind.value} for {target}",
            description="Describe it",
            perfect_state="It works",
            resource_needs="Time",
            status=status,
            support_count=0,
            target_audience=target,
            scope=Scope(self.units[target].type.value),
        ))


async def seed_world(repos) -> World:
    world = World(repos=repos)
    for unit in build_units():
        await repos.org_units.add(unit)
        world.units[unit.name] = unit

    await world.add_user("anna", station="Norrtälje")
    await world.add_user("bo", station="Rimbo")
    await world.add_user("cecilia", station="Hallstavik")
    await world.add_user("david", station="Norrtälje")
    await world.add_user("erik", station="Södermalm")
    await world.add_user("frida", station="Ystad")
    await world.add_user("newbie")
    await world.add_user("sm_norrtalje", UserRole.STATION_MANAGER, station="Norrtälje")
    await world.add_user("sm_sodermalm", UserRole.STATION_MANAGER, station="Södermalm")
    await world.add_user("am_roslagen", UserRole.AREA_MANAGER, area="Roslagen")
    await world.add_user("rm_nord", UserRole.REGION_MANAGER, region="Nord")
    await world.add_user("admin", UserRole.ADMIN, station="Solna")
    return world


# =============================================================================
# PUSH TRANSPORT
# =============================================================================


class FakePushTransport(PushTransport):
    """Records deliveries. Endpoints can be scripted to answer a status or raise."""

    def __init__(self):
        self.sent: list[tuple[str, dict]] = []
        self.status_by_endpoint: dict[str, int] = {}
        self.raise_for: set[str] = set()

    async def send(self, subscription: PushSubscription, payload: dict) -> PushResult:
        if subscription.endpoint in self.raise_for:
            raise RuntimeError("transport exploded")
        self.sent.append((subscription.endpoint, payload))
        code = self.status_by_endpoint.get(subscription.endpoint, 201)
        return PushResult(success=200 <= code < 300, status_code=code)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def repos() -> InMemoryRepositories:
    return InMemoryRepositories()


@pytest.fixture
async def world(repos) -> World:
    return await seed_world(repos)


@pytest.fixture
def transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture
async def dispatcher(repos, transport):
    @asynccontextmanager
    async def factory():
        yield repos

    dispatcher = NotificationDispatcher(factory, transport, workers=2, queue_size=100)
    dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
def engine(repos, dispatcher) -> LifecycleEngine:
    return LifecycleEngine(repos, dispatcher=dispatcher, support_threshold=3)
