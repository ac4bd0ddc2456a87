"""Caller-facing failures of the lifecycle core.

Every exception here is deterministic: services raise it once, never retry,
and the API layer reports it verbatim.
"""


class LifecycleError(Exception):
    """Base exception for lifecycle operations."""

    code = "lifecycle_error"


class AuthenticationRequired(LifecycleError):
    """No resolvable principal for the call."""

    code = "authentication_required"


class AuthorizationDenied(LifecycleError):
    """Role or scope does not permit the operation."""

    code = "authorization_denied"


class NotFound(LifecycleError):
    """Unknown post, task, user or org unit."""

    code = "not_found"


class InvalidTransition(LifecycleError):
    """Operation attempted from the wrong status."""

    code = "invalid_transition"


class DuplicateVote(LifecycleError):
    """The user already holds a support vote on this post."""

    code = "duplicate_vote"


class SelfVoteProhibited(LifecycleError):
    """Authors cannot vote on their own post."""

    code = "self_vote_prohibited"


class AlreadyClaimed(LifecycleError):
    """Someone else already took ownership of the post's task."""

    code = "already_claimed"


class DuplicateAction(LifecycleError):
    """A one-per-user action was repeated (e.g. a second high-five)."""

    code = "duplicate_action"


class ValidationError(LifecycleError):
    """Missing station, malformed target or malformed org tree."""

    code = "validation_error"
