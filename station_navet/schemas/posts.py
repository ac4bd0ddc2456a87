"""Pydantic schemas for posts, votes and workshop tasks."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import PostKind, PostStatus, Scope, TaskStatus, VoteType
from .base import NavetBaseModel, TimestampMixin


# =============================================================================
# POSTS
# =============================================================================


class IdeaCreate(NavetBaseModel):
    """Submit a new idea."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    perfect_state: str = Field(..., min_length=1, description="What it looks like when solved")
    resource_needs: str = Field(..., min_length=1)
    target_audience: str | None = Field(
        default=None,
        max_length=255,
        description="Org unit name. Members may omit it to address their own station.",
    )


class PollCreate(NavetBaseModel):
    """Create a poll. Managers and admins only."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    target_audience: str = Field(..., min_length=1, max_length=255)
    perfect_state: str | None = None
    resource_needs: str | None = None


class PostResponse(NavetBaseModel, TimestampMixin):
    """A post as shown in the feed."""

    id: UUID
    kind: PostKind
    author_id: UUID
    title: str
    description: str
    perfect_state: str | None = None
    resource_needs: str | None = None
    status: PostStatus
    support_count: int
    target_audience: str
    scope: Scope


class PostCreatedResponse(NavetBaseModel):
    id: UUID
    status: PostStatus
    scope: Scope


# =============================================================================
# VOTES
# =============================================================================


class VoteCreate(NavetBaseModel):
    vote_type: VoteType


class VoteTallyResponse(NavetBaseModel):
    support: int
    yes: int
    no: int
    my_vote: VoteType | None = None
    has_supported: bool = False


# =============================================================================
# TASKS
# =============================================================================


class TaskResponse(NavetBaseModel, TimestampMixin):
    id: UUID
    post_id: UUID
    owner_id: UUID | None = None
    description: str
    status: TaskStatus
    completed_at: datetime | None = None
    high_fives: list[UUID] = []


class TaskClaimedResponse(NavetBaseModel):
    id: UUID
    post_id: UUID
    status: TaskStatus
