"""In-memory implementation of the repository ports.

Used by the unit tests and for local experiments. The primitives never
await while they check and write, so on a single event loop each call is
atomic, which is what the compare-and-set contracts require.
"""

from typing import Sequence
from uuid import UUID, uuid4

from ..models import (
    Notification,
    OrgUnit,
    Post,
    PostStatus,
    PushSubscription,
    Task,
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


def _apply_defaults(obj) -> None:
    """Fill the column defaults a database flush would otherwise assign."""
    for column in obj.__table__.columns:
        if column.default is None or getattr(obj, column.key, None) is not None:
            continue
        if column.default.is_scalar:
            setattr(obj, column.key, column.default.arg)
        elif column.default.is_callable:
            setattr(obj, column.key, column.default.arg(None))
    if obj.id is None:
        obj.id = uuid4()
    if obj.created_at is None:
        obj.created_at = utcnow()


def _newest_first(items):
    # Stable on equal timestamps: later inserts come first
    return sorted(reversed(list(items)), key=lambda i: i.created_at, reverse=True)


class InMemoryOrgUnitRepository(OrgUnitRepository):

    def __init__(self):
        self._units: dict[UUID, OrgUnit] = {}

    async def list_all(self) -> Sequence[OrgUnit]:
        return sorted(self._units.values(), key=lambda u: u.name)

    async def get(self, unit_id: UUID) -> OrgUnit | None:
        return self._units.get(unit_id)

    async def add(self, unit: OrgUnit) -> OrgUnit:
        _apply_defaults(unit)
        self._units[unit.id] = unit
        return unit

    async def delete_many(self, unit_ids: Sequence[UUID]) -> None:
        for unit_id in unit_ids:
            self._units.pop(unit_id, None)


class InMemoryUserRepository(UserRepository):

    def __init__(self):
        self._users: dict[UUID, User] = {}

    async def get(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)

    async def get_by_identity(self, identity: str) -> User | None:
        for user in self._users.values():
            if user.identity == identity:
                return user
        return None

    async def add(self, user: User) -> User:
        _apply_defaults(user)
        self._users[user.id] = user
        return user

    async def list_all(self) -> Sequence[User]:
        return sorted(self._users.values(), key=lambda u: u.name)

    async def list_in_units(self, unit_ids: Sequence[UUID]) -> Sequence[User]:
        wanted = set(unit_ids)
        return [
            u for u in self._users.values()
            if {u.station_id, u.area_id, u.region_id} & wanted
        ]


class InMemoryPostRepository(PostRepository):

    def __init__(self):
        self._posts: dict[UUID, Post] = {}

    async def get(self, post_id: UUID) -> Post | None:
        return self._posts.get(post_id)

    async def add(self, post: Post) -> Post:
        _apply_defaults(post)
        self._posts[post.id] = post
        return post

    async def get_for_update(self, post_id: UUID) -> Post | None:
        return self._posts.get(post_id)

    async def list_by_targets(self, targets: Sequence[str]) -> Sequence[Post]:
        wanted = set(targets)
        return _newest_first(p for p in self._posts.values() if p.target_audience in wanted)

    async def compare_and_set_status(
        self,
        post_id: UUID,
        expected: PostStatus,
        new: PostStatus,
    ) -> bool:
        post = self._posts.get(post_id)
        if post is None or post.status != expected:
            return False
        post.status = new
        return True

    async def set_support_count(self, post_id: UUID, count: int) -> None:
        post = self._posts.get(post_id)
        if post is not None:
            post.support_count = count


class InMemoryVoteRepository(VoteRepository):

    def __init__(self):
        self._votes: dict[tuple[UUID, UUID, VotePhase], Vote] = {}

    async def get(self, post_id: UUID, user_id: UUID, phase: VotePhase) -> Vote | None:
        return self._votes.get((post_id, user_id, phase))

    async def add(self, vote: Vote) -> Vote:
        key = (vote.post_id, vote.user_id, vote.phase)
        if key in self._votes:
            raise DuplicateVote("You have already cast this kind of vote on this post")
        _apply_defaults(vote)
        self._votes[key] = vote
        return vote

    async def set_decisive(self, post_id: UUID, user_id: UUID, value: VoteType) -> None:
        key = (post_id, user_id, VotePhase.DECISIVE)
        vote = self._votes.get(key)
        if vote is None:
            vote = Vote(post_id=post_id, user_id=user_id, phase=VotePhase.DECISIVE, value=value)
            _apply_defaults(vote)
            self._votes[key] = vote
        elif vote.value != value:
            vote.value = value
            vote.updated_at = utcnow()

    async def count(self, post_id: UUID, value: VoteType) -> int:
        return sum(
            1 for v in self._votes.values()
            if v.post_id == post_id and v.value == value
        )


class InMemoryTaskRepository(TaskRepository):

    def __init__(self):
        self._tasks: dict[UUID, Task] = {}
        self._high_fives: dict[UUID, list[UUID]] = {}

    async def get(self, task_id: UUID) -> Task | None:
        return self._tasks.get(task_id)

    async def get_by_post(self, post_id: UUID) -> Task | None:
        for task in self._tasks.values():
            if task.post_id == post_id:
                return task
        return None

    async def add_claimed(self, task: Task) -> Task:
        if await self.get_by_post(task.post_id):
            raise AlreadyClaimed("Someone has already taken ownership of this idea")
        _apply_defaults(task)
        self._tasks[task.id] = task
        return task

    async def compare_and_set_status(
        self,
        task_id: UUID,
        expected: TaskStatus,
        new: TaskStatus,
    ) -> bool:
        task = self._tasks.get(task_id)
        if task is None or task.status != expected:
            return False
        task.status = new
        if new == TaskStatus.DONE:
            task.completed_at = utcnow()
        return True

    async def add_high_five(self, task_id: UUID, user_id: UUID) -> None:
        givers = self._high_fives.setdefault(task_id, [])
        if user_id in givers:
            raise DuplicateAction("You have already given a high-five")
        givers.append(user_id)

    async def high_five_givers(self, task_id: UUID) -> list[UUID]:
        return list(self._high_fives.get(task_id, []))


class InMemoryNotificationRepository(NotificationRepository):

    def __init__(self):
        self._notifications: dict[UUID, Notification] = {}

    async def add_many(self, notifications: Sequence[Notification]) -> None:
        for notification in notifications:
            _apply_defaults(notification)
            self._notifications[notification.id] = notification

    async def get(self, notification_id: UUID) -> Notification | None:
        return self._notifications.get(notification_id)

    async def list_active(self, user_id: UUID, limit: int) -> Sequence[Notification]:
        active = (
            n for n in self._notifications.values()
            if n.user_id == user_id and not n.is_archived
        )
        return _newest_first(active)[:limit]

    async def count_unread(self, user_id: UUID) -> int:
        return sum(
            1 for n in self._notifications.values()
            if n.user_id == user_id and not n.is_read
        )

    async def mark_all_read(self, user_id: UUID) -> int:
        changed = 0
        for n in self._notifications.values():
            if n.user_id == user_id and not n.is_read:
                n.is_read = True
                changed += 1
        return changed


class InMemoryPushSubscriptionRepository(PushSubscriptionRepository):

    def __init__(self):
        self._by_endpoint: dict[str, PushSubscription] = {}

    async def list_for_user(self, user_id: UUID) -> Sequence[PushSubscription]:
        return [s for s in self._by_endpoint.values() if s.user_id == user_id]

    async def get_by_endpoint(self, endpoint: str) -> PushSubscription | None:
        return self._by_endpoint.get(endpoint)

    async def add(self, subscription: PushSubscription) -> PushSubscription:
        _apply_defaults(subscription)
        self._by_endpoint[subscription.endpoint] = subscription
        return subscription

    async def remove_by_endpoint(self, endpoint: str) -> None:
        self._by_endpoint.pop(endpoint, None)


class InMemoryRepositories(Repositories):
    """All ports backed by process memory. commit and rollback are no-ops."""

    def __init__(self):
        super().__init__(
            org_units=InMemoryOrgUnitRepository(),
            users=InMemoryUserRepository(),
            posts=InMemoryPostRepository(),
            votes=InMemoryVoteRepository(),
            tasks=InMemoryTaskRepository(),
            notifications=InMemoryNotificationRepository(),
            push_subscriptions=InMemoryPushSubscriptionRepository(),
        )

    async def commit(self) -> None:
        pass

    async def rollback(self) -> None:
        pass
