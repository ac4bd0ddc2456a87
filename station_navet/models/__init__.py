"""SQLAlchemy ORM Models for Station-Navet."""

from .base import Base, TimestampMixin, UUIDMixin, utcnow
from .models import (
    # Enums
    NotificationType,
    OrgUnitType,
    PostKind,
    PostStatus,
    Scope,
    TaskStatus,
    UserRole,
    VotePhase,
    VoteType,
    # Organization & User
    OrgUnit,
    User,
    # Posts & Votes
    Post,
    Vote,
    # Workshop
    Task,
    TaskHighFive,
    # Notifications
    Notification,
    PushSubscription,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "utcnow",
    # Enums
    "OrgUnitType",
    "Scope",
    "UserRole",
    "PostKind",
    "PostStatus",
    "VotePhase",
    "VoteType",
    "TaskStatus",
    "NotificationType",
    # Organization & User
    "OrgUnit",
    "User",
    # Posts & Votes
    "Post",
    "Vote",
    # Workshop
    "Task",
    "TaskHighFive",
    # Notifications
    "Notification",
    "PushSubscription",
]
