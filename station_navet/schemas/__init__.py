"""Station-Navet API Schemas.

Schemas are organized by domain:
- base: common configuration and error responses
- posts: ideas, polls, votes and tasks
- notifications: inbox and push subscriptions
- organizations: org tree and users
"""

from .base import (
    ErrorDetail,
    ErrorResponse,
    MessageResponse,
    NavetBaseModel,
    TimestampMixin,
)
from .notifications import (
    MarkAllReadResponse,
    NotificationResponse,
    PushSubscriptionCreate,
    PushSubscriptionResponse,
    UnreadCountResponse,
)
from .organizations import (
    OrgTreeNode,
    OrgUnitCreate,
    OrgUnitDeleteResponse,
    OrgUnitRename,
    OrgUnitResponse,
    RoleUpdate,
    StationSelect,
    UserResponse,
)
from .posts import (
    IdeaCreate,
    PollCreate,
    PostCreatedResponse,
    PostResponse,
    TaskClaimedResponse,
    TaskResponse,
    VoteCreate,
    VoteTallyResponse,
)

__all__ = [
    # Base
    "NavetBaseModel",
    "TimestampMixin",
    "ErrorDetail",
    "ErrorResponse",
    "MessageResponse",
    # Posts
    "IdeaCreate",
    "PollCreate",
    "PostResponse",
    "PostCreatedResponse",
    "VoteCreate",
    "VoteTallyResponse",
    "TaskResponse",
    "TaskClaimedResponse",
    # Notifications
    "NotificationResponse",
    "UnreadCountResponse",
    "MarkAllReadResponse",
    "PushSubscriptionCreate",
    "PushSubscriptionResponse",
    # Organizations & users
    "OrgUnitResponse",
    "OrgTreeNode",
    "OrgUnitCreate",
    "OrgUnitRename",
    "OrgUnitDeleteResponse",
    "UserResponse",
    "StationSelect",
    "RoleUpdate",
]
