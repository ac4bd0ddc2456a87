"""Repository ports and their SQL and in-memory implementations."""

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
from .memory import InMemoryRepositories
from .sql import SqlRepositories

__all__ = [
    # Ports
    "Repositories",
    "OrgUnitRepository",
    "UserRepository",
    "PostRepository",
    "VoteRepository",
    "TaskRepository",
    "NotificationRepository",
    "PushSubscriptionRepository",
    # Implementations
    "SqlRepositories",
    "InMemoryRepositories",
]
