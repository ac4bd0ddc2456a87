"""SQLAlchemy ORM Models for Station-Navet.

The organization tree, users, posts (ideas and polls), the vote ledger,
workshop tasks and the notification inbox.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin, utcnow


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x])


# =============================================================================
# ENUMS
# =============================================================================


class OrgUnitType(str, PyEnum):
    REGION = "region"
    AREA = "area"
    STATION = "station"


class Scope(str, PyEnum):
    """Hierarchy level a post's target audience resolves to."""
    STATION = "station"
    AREA = "area"
    REGION = "region"


class UserRole(str, PyEnum):
    MEMBER = "member"
    STATION_MANAGER = "station_manager"
    AREA_MANAGER = "area_manager"
    REGION_MANAGER = "region_manager"
    ADMIN = "admin"

    @property
    def is_manager_or_admin(self) -> bool:
        """Managers and admins may create polls and approve ideas."""
        return self is not UserRole.MEMBER


class PostKind(str, PyEnum):
    IDEA = "idea"
    POLL = "poll"


class PostStatus(str, PyEnum):
    DRAFT = "draft"
    PROPOSAL = "proposal"  # Gathering support
    VOTING = "voting"
    APPROVED = "approved"
    WORKSHOP = "workshop"  # Claimed, being executed
    COMPLETED = "completed"
    ARCHIVED = "archived"


class VotePhase(str, PyEnum):
    SUPPORT = "support"
    DECISIVE = "decisive"


class VoteType(str, PyEnum):
    SUPPORT = "support"
    YES = "yes"
    NO = "no"

    @property
    def phase(self) -> VotePhase:
        return VotePhase.SUPPORT if self is VoteType.SUPPORT else VotePhase.DECISIVE


class TaskStatus(str, PyEnum):
    UNCLAIMED = "unclaimed"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class NotificationType(str, PyEnum):
    NEW_IDEA = "new_idea"
    NEW_POLL = "new_poll"
    VOTING_STARTED = "voting_started"
    IDEA_APPROVED = "idea_approved"
    TASK_CLAIMED = "task_claimed"
    IDEA_COMPLETED = "idea_completed"
    HIGH_FIVE = "high_five"


# =============================================================================
# ORGANIZATION & USER MODELS
# =============================================================================


class OrgUnit(Base, UUIDMixin, TimestampMixin):
    """A region, area or station. Names are unique across the tree."""

    __tablename__ = "org_units"

    type: Mapped[OrgUnitType] = mapped_column(_enum(OrgUnitType, "org_unit_type"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    parent_id: Mapped[UUID | None] = mapped_column(ForeignKey("org_units.id"))

    __table_args__ = (
        Index("idx_org_units_parent", "parent_id"),
        Index("idx_org_units_type", "type"),
    )


class User(Base, UUIDMixin, TimestampMixin):
    """Application user, created on first authenticated contact."""

    __tablename__ = "users"

    identity: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False,
        comment="Principal id issued by the identity provider"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        _enum(UserRole, "user_role"), default=UserRole.MEMBER, nullable=False
    )
    station_id: Mapped[UUID | None] = mapped_column(ForeignKey("org_units.id"))
    # Overrides for managers that are not placed at a station
    area_id: Mapped[UUID | None] = mapped_column(ForeignKey("org_units.id"))
    region_id: Mapped[UUID | None] = mapped_column(ForeignKey("org_units.id"))

    __table_args__ = (
        Index("idx_users_station", "station_id"),
    )


# =============================================================================
# POSTS & VOTES
# =============================================================================


class Post(Base, UUIDMixin, TimestampMixin):
    """An idea or a poll. Mutated only by the lifecycle engine."""

    __tablename__ = "posts"

    kind: Mapped[PostKind] = mapped_column(_enum(PostKind, "post_kind"), nullable=False)
    author_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    perfect_state: Mapped[str | None] = mapped_column(Text)
    resource_needs: Mapped[str | None] = mapped_column(Text)
    status: Mapped[PostStatus] = mapped_column(_enum(PostStatus, "post_status"), nullable=False)
    support_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False,
        comment="Denormalized count of support votes"
    )
    target_audience: Mapped[str] = mapped_column(String(255), nullable=False)
    scope: Mapped[Scope] = mapped_column(_enum(Scope, "post_scope"), nullable=False)

    __table_args__ = (
        Index("idx_posts_status", "status"),
        Index("idx_posts_author", "author_id"),
        Index("idx_posts_target", "target_audience"),
    )


class Vote(Base, UUIDMixin, TimestampMixin):
    """One live vote per user, post and phase."""

    __tablename__ = "votes"

    post_id: Mapped[UUID] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    phase: Mapped[VotePhase] = mapped_column(_enum(VotePhase, "vote_phase"), nullable=False)
    value: Mapped[VoteType] = mapped_column(_enum(VoteType, "vote_type"), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", "phase", name="uq_votes_post_user_phase"),
        Index("idx_votes_post", "post_id"),
    )


# =============================================================================
# WORKSHOP
# =============================================================================


class Task(Base, UUIDMixin, TimestampMixin):
    """Execution record of an approved post. At most one per post."""

    __tablename__ = "tasks"

    post_id: Mapped[UUID] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    owner_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[TaskStatus] = mapped_column(
        _enum(TaskStatus, "task_status"), default=TaskStatus.UNCLAIMED, nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_tasks_owner", "owner_id"),
    )


class TaskHighFive(Base, UUIDMixin, TimestampMixin):
    """A high-five given on a task. One per giver."""

    __tablename__ = "task_high_fives"

    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_high_fives_task_user"),
    )


# =============================================================================
# NOTIFICATIONS
# =============================================================================


class Notification(Base, UUIDMixin, TimestampMixin):
    """In-app notification. Created only by the notification dispatcher."""

    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        _enum(NotificationType, "notification_type"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str] = mapped_column(String(500), default="/", nullable=False)
    related_id: Mapped[str | None] = mapped_column(String(64))
    is_read: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(default=False, nullable=False)

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "is_archived"),
        Index("idx_notifications_user_unread", "user_id", "is_read"),
    )


class PushSubscription(Base, UUIDMixin, TimestampMixin):
    """A device endpoint receiving push deliveries for a user."""

    __tablename__ = "push_subscriptions"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    endpoint: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    keys: Mapped[dict] = mapped_column(JSON, default=dict, comment="Opaque client keys")

    __table_args__ = (
        Index("idx_push_subscriptions_user", "user_id"),
    )
