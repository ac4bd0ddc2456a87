"""
Tests for the SQLAlchemy repositories against SQLite.

Most tests share one in-memory connection. The concurrent tests open separate
sessions on a file database so their transactions really interleave.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from station_navet.models import (
    Base,
    Notification,
    NotificationType,
    Post,
    PostStatus,
    Task,
    TaskStatus,
    Vote,
    VotePhase,
    VoteType,
)
from station_navet.repositories import SqlRepositories
from station_navet.services import (
    AlreadyClaimed,
    DuplicateAction,
    DuplicateVote,
    LifecycleEngine,
    OrganizationService,
    SubmitIdeaInput,
)

from .conftest import World, seed_world


@pytest.fixture
async def sql_repos():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield SqlRepositories(session)
    await engine.dispose()


@pytest.fixture
async def sql_world(sql_repos) -> World:
    world = await seed_world(sql_repos)
    await sql_repos.commit()
    return world


# =============================================================================
# POSTS
# =============================================================================


class TestPosts:

    async def test_compare_and_set_status(self, sql_world: World):
        repos = sql_world.repos
        post = await sql_world.add_post("anna", "Norrtälje")

        assert await repos.posts.compare_and_set_status(post.id, PostStatus.PROPOSAL, PostStatus.VOTING)
        assert not await repos.posts.compare_and_set_status(post.id, PostStatus.PROPOSAL, PostStatus.VOTING)
        assert (await repos.posts.get(post.id)).status == PostStatus.VOTING

    async def test_list_by_targets(self, sql_world: World):
        await sql_world.add_post("anna", "Norrtälje", title="a")
        await sql_world.add_post("bo", "Rimbo", title="b")
        await sql_world.add_post("erik", "Södermalm", title="c")

        posts = await sql_world.repos.posts.list_by_targets(["Norrtälje", "Rimbo"])
        assert sorted(p.title for p in posts) == ["a", "b"]
        assert await sql_world.repos.posts.list_by_targets([]) == []

    async def test_equal_timestamps_keep_a_fixed_order(self, sql_world: World):
        repos = sql_world.repos
        posts = [await sql_world.add_post("anna", "Norrtälje", title=f"p{i}") for i in range(4)]
        stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
        await repos.session.execute(update(Post).values(created_at=stamp))

        first = [p.id for p in await repos.posts.list_by_targets(["Norrtälje"])]
        second = [p.id for p in await repos.posts.list_by_targets(["Norrtälje"])]
        assert first == second == sorted((p.id for p in posts), reverse=True)


# =============================================================================
# UNIQUENESS
# =============================================================================


class TestUniqueness:

    async def test_second_vote_in_phase_is_duplicate(self, sql_world: World):
        repos = sql_world.repos
        post = await sql_world.add_post("anna", "Norrtälje")
        david = sql_world.users["david"]

        await repos.votes.add(Vote(
            post_id=post.id, user_id=david.id, phase=VotePhase.SUPPORT, value=VoteType.SUPPORT
        ))
        with pytest.raises(DuplicateVote):
            await repos.votes.add(Vote(
                post_id=post.id, user_id=david.id, phase=VotePhase.SUPPORT, value=VoteType.SUPPORT
            ))

        # A decisive vote lives in its own phase
        await repos.votes.add(Vote(
            post_id=post.id, user_id=david.id, phase=VotePhase.DECISIVE, value=VoteType.YES
        ))
        assert await repos.votes.count(post.id, VoteType.SUPPORT) == 1
        assert await repos.votes.count(post.id, VoteType.YES) == 1

    async def test_one_task_per_post(self, sql_world: World):
        repos = sql_world.repos
        post = await sql_world.add_post("anna", "Norrtälje", status=PostStatus.APPROVED)

        await repos.tasks.add_claimed(Task(
            post_id=post.id, owner_id=sql_world.users["david"].id,
            description=post.title, status=TaskStatus.IN_PROGRESS,
        ))
        with pytest.raises(AlreadyClaimed):
            await repos.tasks.add_claimed(Task(
                post_id=post.id, owner_id=sql_world.users["bo"].id,
                description=post.title, status=TaskStatus.IN_PROGRESS,
            ))

    async def test_task_done_sets_completed_at(self, sql_world: World):
        repos = sql_world.repos
        post = await sql_world.add_post("anna", "Norrtälje", status=PostStatus.WORKSHOP)
        task = await repos.tasks.add_claimed(Task(
            post_id=post.id, owner_id=sql_world.users["david"].id,
            description=post.title, status=TaskStatus.IN_PROGRESS,
        ))

        assert await repos.tasks.compare_and_set_status(task.id, TaskStatus.IN_PROGRESS, TaskStatus.DONE)
        assert not await repos.tasks.compare_and_set_status(task.id, TaskStatus.IN_PROGRESS, TaskStatus.DONE)
        assert (await repos.tasks.get(task.id)).completed_at is not None

    async def test_one_high_five_per_giver(self, sql_world: World):
        repos = sql_world.repos
        post = await sql_world.add_post("anna", "Norrtälje", status=PostStatus.COMPLETED)
        task = await repos.tasks.add_claimed(Task(
            post_id=post.id, owner_id=sql_world.users["david"].id,
            description=post.title, status=TaskStatus.DONE,
        ))
        anna = sql_world.users["anna"]

        await repos.tasks.add_high_five(task.id, anna.id)
        with pytest.raises(DuplicateAction):
            await repos.tasks.add_high_five(task.id, anna.id)
        assert await repos.tasks.high_five_givers(task.id) == [anna.id]


# =============================================================================
# USERS, NOTIFICATIONS, ORG UNITS
# =============================================================================


class TestQueries:

    async def test_list_in_units_matches_overrides(self, sql_world: World):
        users = await sql_world.repos.users.list_in_units([sql_world.unit_id("Roslagen")])
        assert [u.name for u in users] == ["Am Roslagen"]

    async def test_mark_all_read_reports_rowcount(self, sql_world: World):
        repos = sql_world.repos
        anna = sql_world.users["anna"]
        await repos.notifications.add_many([
            Notification(user_id=anna.id, type=NotificationType.NEW_IDEA, title=f"n{i}", message="m")
            for i in range(3)
        ])

        assert await repos.notifications.count_unread(anna.id) == 3
        assert await repos.notifications.mark_all_read(anna.id) == 3
        assert await repos.notifications.count_unread(anna.id) == 0

    async def test_delete_subtree(self, sql_world: World):
        sql_world.users["frida"].station_id = sql_world.unit_id("Solna")
        await sql_world.repos.commit()

        service = OrganizationService(sql_world.repos)
        await service.delete_unit(sql_world.users["admin"], sql_world.unit_id("Syd"))

        names = [u.name for u in await sql_world.repos.org_units.list_all()]
        assert "Syd" not in names
        assert "Ystad" not in names
        assert "Nord" in names


# =============================================================================
# END TO END
# =============================================================================


class TestLifecycleOnSql:

    async def test_idea_to_completion(self, sql_world: World):
        repos = sql_world.repos
        u = sql_world.users
        engine = LifecycleEngine(repos, support_threshold=3)

        post = await engine.submit_idea(u["anna"], SubmitIdeaInput(
            title="Cykelställ",
            description="No room for bikes",
            perfect_state="Everyone can park",
            resource_needs="Two racks",
        ))
        for key in ("david", "sm_norrtalje", "am_roslagen"):
            await engine.cast_vote(u[key], post.id, VoteType.SUPPORT)
        assert (await repos.posts.get(post.id)).status == PostStatus.VOTING
        assert (await repos.posts.get(post.id)).support_count == 3

        await engine.cast_vote(u["david"], post.id, VoteType.YES)
        await engine.cast_vote(u["david"], post.id, VoteType.NO)
        tally = await engine.vote_tally(u["david"], post.id)
        assert (tally.yes, tally.no) == (0, 1)

        await engine.approve_idea(u["sm_norrtalje"], post.id)
        task = await engine.claim_task(u["david"], post.id)
        assert (await repos.tasks.get_by_post(post.id)).id == task.id

        await engine.complete_task(u["david"], task.id)
        await engine.give_high_five(u["anna"], task.id)

        assert (await repos.posts.get(post.id)).status == PostStatus.COMPLETED
        assert (await repos.tasks.get(task.id)).status == TaskStatus.DONE
        assert await engine.high_five_givers(task.id) == [u["anna"].id]


# =============================================================================
# CONCURRENT SESSIONS
# =============================================================================


@pytest.fixture
async def shared_db(tmp_path):
    """A seeded file database and a factory for independent sessions."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'navet.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        world = await seed_world(SqlRepositories(session))
        await world.repos.commit()
        yield world, factory
    await engine.dispose()


async def in_own_session(factory, operation):
    async with factory() as session:
        return await operation(LifecycleEngine(SqlRepositories(session), support_threshold=3))


class TestConcurrentSessions:

    async def test_last_two_supporters_open_voting(self, shared_db):
        world, factory = shared_db
        u = world.users
        post = await world.add_post("anna", "Norrtälje")
        await world.repos.commit()

        await in_own_session(factory, lambda e: e.cast_vote(u["david"], post.id, VoteType.SUPPORT))
        results = await asyncio.gather(
            in_own_session(factory, lambda e: e.cast_vote(u["sm_norrtalje"], post.id, VoteType.SUPPORT)),
            in_own_session(factory, lambda e: e.cast_vote(u["am_roslagen"], post.id, VoteType.SUPPORT)),
            return_exceptions=True,
        )

        assert results == [None, None]
        async with factory() as session:
            repos = SqlRepositories(session)
            stored = await repos.posts.get(post.id)
            assert stored.status == PostStatus.VOTING
            assert stored.support_count == 3
            assert await repos.votes.count(post.id, VoteType.SUPPORT) == 3

    async def test_simultaneous_yes_and_no_keep_one_vote(self, shared_db):
        world, factory = shared_db
        david = world.users["david"]
        post = await world.add_post("anna", "Norrtälje", status=PostStatus.VOTING)
        await world.repos.commit()

        results = await asyncio.gather(
            in_own_session(factory, lambda e: e.cast_vote(david, post.id, VoteType.YES)),
            in_own_session(factory, lambda e: e.cast_vote(david, post.id, VoteType.NO)),
            return_exceptions=True,
        )

        assert results == [None, None]
        async with factory() as session:
            repos = SqlRepositories(session)
            yes = await repos.votes.count(post.id, VoteType.YES)
            no = await repos.votes.count(post.id, VoteType.NO)
            assert yes + no == 1
            vote = await repos.votes.get(post.id, david.id, VotePhase.DECISIVE)
            assert vote.value == (VoteType.YES if yes else VoteType.NO)

    async def test_concurrent_claims_leave_one_task(self, shared_db):
        world, factory = shared_db
        u = world.users
        post = await world.add_post("anna", "Norrtälje", status=PostStatus.APPROVED)
        await world.repos.commit()

        results = await asyncio.gather(
            in_own_session(factory, lambda e: e.claim_task(u["david"], post.id)),
            in_own_session(factory, lambda e: e.claim_task(u["sm_norrtalje"], post.id)),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Task)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], AlreadyClaimed)

        async with factory() as session:
            repos = SqlRepositories(session)
            count = await session.execute(
                select(func.count()).select_from(Task).where(Task.post_id == post.id)
            )
            assert count.scalar_one() == 1
            assert (await repos.tasks.get_by_post(post.id)).owner_id == winners[0].owner_id
            assert (await repos.posts.get(post.id)).status == PostStatus.WORKSHOP
