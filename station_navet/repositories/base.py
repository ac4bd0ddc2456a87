"""Repository ports used by the lifecycle core.

The services only talk to these interfaces. Atomic check-and-set primitives
(status compare-and-set, unique inserts) live here so that the engine never
holds a lock of its own.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

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
)


class OrgUnitRepository(ABC):
    """Flat org-tree store."""

    @abstractmethod
    async def list_all(self) -> Sequence[OrgUnit]:
        pass

    @abstractmethod
    async def get(self, unit_id: UUID) -> OrgUnit | None:
        pass

    @abstractmethod
    async def add(self, unit: OrgUnit) -> OrgUnit:
        pass

    @abstractmethod
    async def delete_many(self, unit_ids: Sequence[UUID]) -> None:
        """Delete units in the given order (children before parents)."""
        pass


class UserRepository(ABC):

    @abstractmethod
    async def get(self, user_id: UUID) -> User | None:
        pass

    @abstractmethod
    async def get_by_identity(self, identity: str) -> User | None:
        pass

    @abstractmethod
    async def add(self, user: User) -> User:
        pass

    @abstractmethod
    async def list_all(self) -> Sequence[User]:
        pass

    @abstractmethod
    async def list_in_units(self, unit_ids: Sequence[UUID]) -> Sequence[User]:
        """Users whose station, area override or region override is in unit_ids."""
        pass


class PostRepository(ABC):

    @abstractmethod
    async def get(self, post_id: UUID) -> Post | None:
        pass

    @abstractmethod
    async def get_for_update(self, post_id: UUID) -> Post | None:
        """Load a post and hold its row lock until the unit of work ends.

        Vote writers on the same post are serialised on this lock, so the
        support count read after an insert includes every earlier supporter.
        """
        pass

    @abstractmethod
    async def add(self, post: Post) -> Post:
        pass

    @abstractmethod
    async def list_by_targets(self, targets: Sequence[str]) -> Sequence[Post]:
        """Posts addressed to any of the given unit names, newest first."""
        pass

    @abstractmethod
    async def compare_and_set_status(
        self,
        post_id: UUID,
        expected: PostStatus,
        new: PostStatus,
    ) -> bool:
        """Move a post from expected to new. False if it was not in expected."""
        pass

    @abstractmethod
    async def set_support_count(self, post_id: UUID, count: int) -> None:
        pass


class VoteRepository(ABC):

    @abstractmethod
    async def get(self, post_id: UUID, user_id: UUID, phase: VotePhase) -> Vote | None:
        pass

    @abstractmethod
    async def add(self, vote: Vote) -> Vote:
        """Insert a vote. Raises DuplicateVote on an existing (post, user, phase)."""
        pass

    @abstractmethod
    async def set_decisive(self, post_id: UUID, user_id: UUID, value: VoteType) -> None:
        """Insert or overwrite the user's yes/no vote on a post."""
        pass

    @abstractmethod
    async def count(self, post_id: UUID, value: VoteType) -> int:
        pass


class TaskRepository(ABC):

    @abstractmethod
    async def get(self, task_id: UUID) -> Task | None:
        pass

    @abstractmethod
    async def get_by_post(self, post_id: UUID) -> Task | None:
        pass

    @abstractmethod
    async def add_claimed(self, task: Task) -> Task:
        """Insert the single task of a post. Raises AlreadyClaimed if one exists."""
        pass

    @abstractmethod
    async def compare_and_set_status(
        self,
        task_id: UUID,
        expected: TaskStatus,
        new: TaskStatus,
    ) -> bool:
        pass

    @abstractmethod
    async def add_high_five(self, task_id: UUID, user_id: UUID) -> None:
        """Record a high-five. Raises DuplicateAction if the user already gave one."""
        pass

    @abstractmethod
    async def high_five_givers(self, task_id: UUID) -> list[UUID]:
        pass


class NotificationRepository(ABC):

    @abstractmethod
    async def add_many(self, notifications: Sequence[Notification]) -> None:
        pass

    @abstractmethod
    async def get(self, notification_id: UUID) -> Notification | None:
        pass

    @abstractmethod
    async def list_active(self, user_id: UUID, limit: int) -> Sequence[Notification]:
        """Non-archived notifications of a user, newest first."""
        pass

    @abstractmethod
    async def count_unread(self, user_id: UUID) -> int:
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: UUID) -> int:
        pass


class PushSubscriptionRepository(ABC):

    @abstractmethod
    async def list_for_user(self, user_id: UUID) -> Sequence[PushSubscription]:
        pass

    @abstractmethod
    async def get_by_endpoint(self, endpoint: str) -> PushSubscription | None:
        pass

    @abstractmethod
    async def add(self, subscription: PushSubscription) -> PushSubscription:
        pass

    @abstractmethod
    async def remove_by_endpoint(self, endpoint: str) -> None:
        pass


@dataclass
class Repositories(ABC):
    """One unit of work over all ports."""

    org_units: OrgUnitRepository
    users: UserRepository
    posts: PostRepository
    votes: VoteRepository
    tasks: TaskRepository
    notifications: NotificationRepository
    push_subscriptions: PushSubscriptionRepository

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass
