"""SQLAlchemy implementation of the repository ports.

All repositories of one ``SqlRepositories`` share a session, so a lifecycle
operation is a single database transaction. Status changes are guarded
``UPDATE ... WHERE status = :expected`` statements; uniqueness races are
settled by the table constraints and surfaced as lifecycle errors. Vote
writers lock the post row first, so support counting is serialised per post.
"""

from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Notification,
    OrgUnit,
    Post,
    PostStatus,
    PushSubscription,
    Task,
    TaskHighFive,
    TaskStatus,
    User,
    Vote,
    VotePhase,
    VoteType,
    utcnow,
)
from ..services.exceptions import AlreadyClaimed, DuplicateAction, DuplicateVote
from .base import (
    NotificationRepository,
    OrgUnitRepository,
    PostRepository,
    PushSubscriptionRepository,
    Repositories,
    TaskRepository,
    UserRepository,
    VoteRepository,
)


class SqlOrgUnitRepository(OrgUnitRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_all(self) -> Sequence[OrgUnit]:
        result = await self._session.execute(select(OrgUnit).order_by(OrgUnit.name))
        return result.scalars().all()

    async def get(self, unit_id: UUID) -> OrgUnit | None:
        return await self._session.get(OrgUnit, unit_id)

    async def add(self, unit: OrgUnit) -> OrgUnit:
        self._session.add(unit)
        await self._session.flush()
        return unit

    async def delete_many(self, unit_ids: Sequence[UUID]) -> None:
        # One statement per unit keeps the parent FK satisfied at every step
        for unit_id in unit_ids:
            await self._session.execute(delete(OrgUnit).where(OrgUnit.id == unit_id))


class SqlUserRepository(UserRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, user_id: UUID) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_identity(self, identity: str) -> User | None:
        result = await self._session.execute(
            select(User).where(User.identity == identity)
        )
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        self._session.add(user)
        await self._session.flush()
        return user

    async def list_all(self) -> Sequence[User]:
        result = await self._session.execute(select(User).order_by(User.name))
        return result.scalars().all()

    async def list_in_units(self, unit_ids: Sequence[UUID]) -> Sequence[User]:
        if not unit_ids:
            return []
        ids = list(unit_ids)
        result = await self._session.execute(
            select(User).where(
                or_(
                    User.station_id.in_(ids),
                    User.area_id.in_(ids),
                    User.region_id.in_(ids),
                )
            )
        )
        return result.scalars().all()


class SqlPostRepository(PostRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, post_id: UUID) -> Post | None:
        return await self._session.get(Post, post_id)

    async def add(self, post: Post) -> Post:
        self._session.add(post)
        await self._session.flush()
        return post

    async def get_for_update(self, post_id: UUID) -> Post | None:
        result = await self._session.execute(
            select(Post)
            .where(Post.id == post_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_targets(self, targets: Sequence[str]) -> Sequence[Post]:
        if not targets:
            return []
        result = await self._session.execute(
            select(Post)
            .where(Post.target_audience.in_(list(targets)))
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        return result.scalars().all()

    async def compare_and_set_status(
        self,
        post_id: UUID,
        expected: PostStatus,
        new: PostStatus,
    ) -> bool:
        result = await self._session.execute(
            update(Post)
            .where(Post.id == post_id, Post.status == expected)
            .values(status=new)
        )
        return result.rowcount == 1

    async def set_support_count(self, post_id: UUID, count: int) -> None:
        await self._session.execute(
            update(Post).where(Post.id == post_id).values(support_count=count)
        )


class SqlVoteRepository(VoteRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, post_id: UUID, user_id: UUID, phase: VotePhase) -> Vote | None:
        result = await self._session.execute(
            select(Vote)
            .where(
                Vote.post_id == post_id,
                Vote.user_id == user_id,
                Vote.phase == phase,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, vote: Vote) -> Vote:
        if await self.get(vote.post_id, vote.user_id, vote.phase):
            raise DuplicateVote("You have already cast this kind of vote on this post")
        self._session.add(vote)
        try:
            await self._session.flush()
        except IntegrityError as e:
            # Lost a race against a concurrent vote from the same user
            raise DuplicateVote("You have already cast this kind of vote on this post") from e
        return vote

    async def set_decisive(self, post_id: UUID, user_id: UUID, value: VoteType) -> None:
        # INSERT .. ON CONFLICT DO UPDATE, so a concurrent first vote overwrites
        # instead of failing on the unique constraint
        dialect = self._session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        now = utcnow()
        stmt = insert(Vote).values(
            id=uuid4(),
            post_id=post_id,
            user_id=user_id,
            phase=VotePhase.DECISIVE,
            value=value,
            created_at=now,
            updated_at=now,
        )
        await self._session.execute(
            stmt.on_conflict_do_update(
                index_elements=["post_id", "user_id", "phase"],
                set_={"value": value, "updated_at": now},
            )
        )

    async def count(self, post_id: UUID, value: VoteType) -> int:
        result = await self._session.execute(
            select(func.count()).where(Vote.post_id == post_id, Vote.value == value)
        )
        return result.scalar_one()


class SqlTaskRepository(TaskRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, task_id: UUID) -> Task | None:
        return await self._session.get(Task, task_id)

    async def get_by_post(self, post_id: UUID) -> Task | None:
        result = await self._session.execute(select(Task).where(Task.post_id == post_id))
        return result.scalar_one_or_none()

    async def add_claimed(self, task: Task) -> Task:
        if await self.get_by_post(task.post_id):
            raise AlreadyClaimed("Someone has already taken ownership of this idea")
        self._session.add(task)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise AlreadyClaimed("Someone has already taken ownership of this idea") from e
        return task

    async def compare_and_set_status(
        self,
        task_id: UUID,
        expected: TaskStatus,
        new: TaskStatus,
    ) -> bool:
        values: dict = {"status": new}
        if new == TaskStatus.DONE:
            values["completed_at"] = utcnow()
        result = await self._session.execute(
            update(Task)
            .where(Task.id == task_id, Task.status == expected)
            .values(**values)
        )
        return result.rowcount == 1

    async def add_high_five(self, task_id: UUID, user_id: UUID) -> None:
        existing = await self._session.execute(
            select(TaskHighFive.id).where(
                TaskHighFive.task_id == task_id,
                TaskHighFive.user_id == user_id,
            )
        )
        if existing.first():
            raise DuplicateAction("You have already given a high-five")
        self._session.add(TaskHighFive(task_id=task_id, user_id=user_id))
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateAction("You have already given a high-five") from e

    async def high_five_givers(self, task_id: UUID) -> list[UUID]:
        result = await self._session.execute(
            select(TaskHighFive.user_id)
            .where(TaskHighFive.task_id == task_id)
            .order_by(TaskHighFive.created_at)
        )
        return list(result.scalars().all())


class SqlNotificationRepository(NotificationRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add_many(self, notifications: Sequence[Notification]) -> None:
        self._session.add_all(list(notifications))
        await self._session.flush()

    async def get(self, notification_id: UUID) -> Notification | None:
        return await self._session.get(Notification, notification_id)

    async def list_active(self, user_id: UUID, limit: int) -> Sequence[Notification]:
        result = await self._session.execute(
            select(Notification)
            .where(Notification.user_id == user_id, Notification.is_archived.is_(False))
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def count_unread(self, user_id: UUID) -> int:
        result = await self._session.execute(
            select(func.count()).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self._session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount


class SqlPushSubscriptionRepository(PushSubscriptionRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_for_user(self, user_id: UUID) -> Sequence[PushSubscription]:
        result = await self._session.execute(
            select(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        return result.scalars().all()

    async def get_by_endpoint(self, endpoint: str) -> PushSubscription | None:
        result = await self._session.execute(
            select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )
        return result.scalar_one_or_none()

    async def add(self, subscription: PushSubscription) -> PushSubscription:
        self._session.add(subscription)
        await self._session.flush()
        return subscription

    async def remove_by_endpoint(self, endpoint: str) -> None:
        await self._session.execute(
            delete(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )


class SqlRepositories(Repositories):
    """All ports bound to one AsyncSession (one transaction)."""

    def __init__(self, session: AsyncSession):
        self.session = session
        super().__init__(
            org_units=SqlOrgUnitRepository(session),
            users=SqlUserRepository(session),
            posts=SqlPostRepository(session),
            votes=SqlVoteRepository(session),
            tasks=SqlTaskRepository(session),
            notifications=SqlNotificationRepository(session),
            push_subscriptions=SqlPushSubscriptionRepository(session),
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
