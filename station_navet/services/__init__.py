"""Business logic services for Station-Navet."""

from .exceptions import (
    AlreadyClaimed,
    AuthenticationRequired,
    AuthorizationDenied,
    DuplicateAction,
    DuplicateVote,
    InvalidTransition,
    LifecycleError,
    NotFound,
    SelfVoteProhibited,
    ValidationError,
)
from .lifecycle_engine import (
    CreatePollInput,
    LifecycleEngine,
    SubmitIdeaInput,
    VoteTally,
)
from .notification_dispatcher import (
    NotificationDispatcher,
    NotificationJob,
    PushJob,
    notify_set,
)
from .notifications import NotificationService
from .org_hierarchy import Ancestors, OrgHierarchy
from .organizations import OrganizationService, OrgNode
from .push_transport import HttpPushTransport, LoggingPushTransport, PushResult, PushTransport
from .scope_resolver import HomeChain, ScopeResolver
from .users import UserService, UserWithOrg, require_admin
from .visibility import VisibilityFilter

__all__ = [
    # Lifecycle core
    "LifecycleEngine",
    "SubmitIdeaInput",
    "CreatePollInput",
    "VoteTally",
    "VisibilityFilter",
    "OrgHierarchy",
    "Ancestors",
    "ScopeResolver",
    "HomeChain",
    # Notifications
    "NotificationDispatcher",
    "NotificationJob",
    "PushJob",
    "notify_set",
    "PushTransport",
    "PushResult",
    "HttpPushTransport",
    "LoggingPushTransport",
    "NotificationService",
    # Users & org tree
    "UserService",
    "UserWithOrg",
    "require_admin",
    "OrganizationService",
    "OrgNode",
    # Errors
    "LifecycleError",
    "AuthenticationRequired",
    "AuthorizationDenied",
    "NotFound",
    "InvalidTransition",
    "DuplicateVote",
    "SelfVoteProhibited",
    "AlreadyClaimed",
    "DuplicateAction",
    "ValidationError",
]
