"""
Lifecycle Engine: the idea/poll state machine.

    proposal -> voting -> approved -> workshop -> completed

Ideas start in proposal and move to voting once enough distinct members
support them. Polls start directly in voting. Every operation:
- runs as one unit of work (commit on success, rollback on error)
- relies on the repositories' compare-and-set and unique-insert primitives,
  so concurrent callers see a clean before/after state
- takes the post's row lock before writing a vote, so supporters of one
  post are counted one at a time
- hands notifications to the dispatcher only after the commit
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from uuid import UUID

from ..models import (
    NotificationType,
    Post,
    PostKind,
    PostStatus,
    Task,
    TaskStatus,
    User,
    UserRole,
    Vote,
    VotePhase,
    VoteType,
)
from ..repositories.base import Repositories
from .exceptions import (
    AlreadyClaimed,
    AuthorizationDenied,
    InvalidTransition,
    NotFound,
    SelfVoteProhibited,
    ValidationError,
)
from .notification_dispatcher import NotificationDispatcher, NotificationJob, notify_set
from .org_hierarchy import OrgHierarchy
from .scope_resolver import ScopeResolver


logger = logging.getLogger(__name__)

DEFAULT_SUPPORT_THRESHOLD = 3


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class SubmitIdeaInput:
    title: str
    description: str
    perfect_state: str
    resource_needs: str
    target_audience: str | None = None


@dataclass
class CreatePollInput:
    title: str
    description: str
    target_audience: str | None = None
    perfect_state: str | None = None
    resource_needs: str | None = None


@dataclass
class VoteTally:
    """Live vote counts of a post."""
    support: int
    yes: int
    no: int
    my_vote: VoteType | None = None
    has_supported: bool = False


# =============================================================================
# LIFECYCLE ENGINE
# =============================================================================


class LifecycleEngine:
    """
    Owns every mutation of posts, votes and tasks.

    Caller errors are raised as LifecycleError subclasses and never retried.
    """

    def __init__(
        self,
        repos: Repositories,
        dispatcher: NotificationDispatcher | None = None,
        support_threshold: int = DEFAULT_SUPPORT_THRESHOLD,
    ):
        self._repos = repos
        self._dispatcher = dispatcher
        self._threshold = support_threshold

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self):
        try:
            yield
            await self._repos.commit()
        except Exception:
            await self._repos.rollback()
            raise

    def _dispatch(self, jobs: list[NotificationJob]) -> None:
        if self._dispatcher is None:
            return
        for job in jobs:
            self._dispatcher.enqueue(job)

    async def _resolver(self) -> ScopeResolver:
        return ScopeResolver(await OrgHierarchy.load(self._repos.org_units))

    @staticmethod
    def _require_onboarded(resolver: ScopeResolver, user: User) -> None:
        if not resolver.is_onboarded(user):
            raise ValidationError("Select your station before taking part")

    async def _get_post(self, post_id: UUID) -> Post:
        post = await self._repos.posts.get(post_id)
        if post is None:
            raise NotFound(f"Post {post_id} not found")
        return post

    async def _get_task(self, task_id: UUID) -> Task:
        task = await self._repos.tasks.get(task_id)
        if task is None:
            raise NotFound(f"Task {task_id} not found")
        return task

    @staticmethod
    def _validate_target(resolver: ScopeResolver, user: User, target: str | None) -> str:
        """Resolve and authorize the audience of a new post."""
        target = (target or "").strip()
        if not target:
            if user.role != UserRole.MEMBER:
                raise ValidationError("A target audience is required")
            target = resolver.home_chain(user).station

        allowed = resolver.valid_submission_targets(user)
        if allowed is None:
            # Admins may address any existing unit
            resolver.hierarchy.get(target)
            return target

        if target not in allowed:
            raise AuthorizationDenied(f"You are not allowed to address {target}")
        return target

    @staticmethod
    def _author_job(
        post: Post,
        actor_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
    ) -> list[NotificationJob]:
        if post.author_id == actor_id:
            return []
        return [NotificationJob(
            recipients=[post.author_id],
            type=type,
            title=title,
            message=message,
            link=f"/?post={post.id}",
            related_id=str(post.id),
        )]

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def submit_idea(self, user: User, data: SubmitIdeaInput) -> Post:
        """Create an idea in proposal and notify its audience."""
        for field_name in ("title", "description", "perfect_state", "resource_needs"):
            if not (getattr(data, field_name) or "").strip():
                raise ValidationError(f"{field_name} is required")

        async with self._transaction():
            resolver = await self._resolver()
            self._require_onboarded(resolver, user)
            target = self._validate_target(resolver, user, data.target_audience)

            post = await self._repos.posts.add(Post(
                kind=PostKind.IDEA,
                author_id=user.id,
                title=data.title.strip(),
                description=data.description.strip(),
                perfect_state=data.perfect_state.strip(),
                resource_needs=data.resource_needs.strip(),
                status=PostStatus.PROPOSAL,
                support_count=0,
                target_audience=target,
                scope=resolver.hierarchy.scope_of(target),
            ))
            recipients = await notify_set(self._repos, post, user.id)

        logger.info(f"Idea {post.id} submitted by {user.id} to {target}")
        self._dispatch([NotificationJob(
            recipients=recipients,
            type=NotificationType.NEW_IDEA,
            title=f"New idea: {post.title}",
            message=f"{user.name} has shared an idea for {target}.",
            link=f"/?post={post.id}",
            related_id=str(post.id),
        )])
        return post

    async def create_poll(self, user: User, data: CreatePollInput) -> Post:
        """Create a poll directly in voting. Managers and admins only."""
        for field_name in ("title", "description"):
            if not (getattr(data, field_name) or "").strip():
                raise ValidationError(f"{field_name} is required")

        async with self._transaction():
            resolver = await self._resolver()
            self._require_onboarded(resolver, user)
            if not UserRole(user.role).is_manager_or_admin:
                raise AuthorizationDenied("Only managers can create polls")
            target = self._validate_target(resolver, user, data.target_audience)

            post = await self._repos.posts.add(Post(
                kind=PostKind.POLL,
                author_id=user.id,
                title=data.title.strip(),
                description=data.description.strip(),
                perfect_state=(data.perfect_state or "").strip() or None,
                resource_needs=(data.resource_needs or "").strip() or None,
                status=PostStatus.VOTING,
                support_count=0,
                target_audience=target,
                scope=resolver.hierarchy.scope_of(target),
            ))
            recipients = await notify_set(self._repos, post, user.id)

        logger.info(f"Poll {post.id} created by {user.id} for {target}")
        self._dispatch([NotificationJob(
            recipients=recipients,
            type=NotificationType.NEW_POLL,
            title=f"New poll: {post.title}",
            message=f"{user.name} wants your vote.",
            link=f"/?post={post.id}",
            related_id=str(post.id),
        )])
        return post

    # -------------------------------------------------------------------------
    # Voting
    # -------------------------------------------------------------------------

    async def cast_vote(self, user: User, post_id: UUID, vote_type: VoteType) -> None:
        """
        Record a support or decisive vote.

        Support votes are create-once and may escalate a proposal to voting.
        A decisive vote replaces the user's earlier yes/no in place.
        """
        vote_type = VoteType(vote_type)
        jobs: list[NotificationJob] = []

        async with self._transaction():
            resolver = await self._resolver()
            self._require_onboarded(resolver, user)
            post = await self._repos.posts.get_for_update(post_id)
            if post is None:
                raise NotFound(f"Post {post_id} not found")

            if post.author_id == user.id:
                raise SelfVoteProhibited("You cannot vote on your own post")
            if not resolver.can_see_target(user, post.target_audience):
                raise AuthorizationDenied("This post is outside your scope")

            if vote_type == VoteType.SUPPORT:
                if post.kind != PostKind.IDEA or post.status not in (
                    PostStatus.PROPOSAL, PostStatus.VOTING
                ):
                    raise InvalidTransition(f"Cannot support a post in {post.status.value}")

                await self._repos.votes.add(Vote(
                    post_id=post.id,
                    user_id=user.id,
                    phase=VotePhase.SUPPORT,
                    value=VoteType.SUPPORT,
                ))
                count = await self._repos.votes.count(post.id, VoteType.SUPPORT)
                await self._repos.posts.set_support_count(post.id, count)

                if count >= self._threshold and await self._repos.posts.compare_and_set_status(
                    post.id, PostStatus.PROPOSAL, PostStatus.VOTING
                ):
                    logger.info(f"Post {post.id} reached {count} supporters, voting opened")
                    jobs = self._author_job(
                        post,
                        user.id,
                        NotificationType.VOTING_STARTED,
                        f"Voting opened: {post.title}",
                        f"Your idea got {count} supporters and is now up for a vote.",
                    )
            else:
                if post.status != PostStatus.VOTING:
                    raise InvalidTransition(f"Voting is not open on a post in {post.status.value}")

                await self._repos.votes.set_decisive(post.id, user.id, vote_type)

        self._dispatch(jobs)

    async def vote_tally(self, user: User, post_id: UUID) -> VoteTally:
        post = await self.get_post(user, post_id)
        votes = self._repos.votes
        decisive = await votes.get(post.id, user.id, VotePhase.DECISIVE)
        supported = await votes.get(post.id, user.id, VotePhase.SUPPORT)
        return VoteTally(
            support=await votes.count(post.id, VoteType.SUPPORT),
            yes=await votes.count(post.id, VoteType.YES),
            no=await votes.count(post.id, VoteType.NO),
            my_vote=decisive.value if decisive else None,
            has_supported=supported is not None,
        )

    # -------------------------------------------------------------------------
    # Approval and workshop
    # -------------------------------------------------------------------------

    async def approve_idea(self, user: User, post_id: UUID) -> None:
        async with self._transaction():
            resolver = await self._resolver()
            self._require_onboarded(resolver, user)
            if not UserRole(user.role).is_manager_or_admin:
                raise AuthorizationDenied("Only managers can approve ideas")

            post = await self._get_post(post_id)
            if not resolver.can_see_target(user, post.target_audience):
                raise AuthorizationDenied("This post is outside your scope")

            if not await self._repos.posts.compare_and_set_status(
                post.id, PostStatus.VOTING, PostStatus.APPROVED
            ):
                raise InvalidTransition(f"Cannot approve a post in {post.status.value}")

        logger.info(f"Post {post.id} approved by {user.id}")
        self._dispatch(self._author_job(
            post,
            user.id,
            NotificationType.IDEA_APPROVED,
            f"Approved: {post.title}",
            "Your idea has been approved and can now be picked up.",
        ))

    async def claim_task(self, user: User, post_id: UUID) -> Task:
        """
        Take ownership of an approved post. Exactly one claimant wins.

        The post moves approved -> workshop by compare-and-set and the task
        insert is guarded by the unique post id, so a concurrent loser gets
        AlreadyClaimed.
        """
        async with self._transaction():
            resolver = await self._resolver()
            self._require_onboarded(resolver, user)
            post = await self._get_post(post_id)
            if not resolver.can_see_target(user, post.target_audience):
                raise AuthorizationDenied("This post is outside your scope")

            if post.status in (PostStatus.WORKSHOP, PostStatus.COMPLETED):
                raise AlreadyClaimed("Someone has already taken ownership of this idea")
            if await self._repos.tasks.get_by_post(post.id):
                raise AlreadyClaimed("Someone has already taken ownership of this idea")
            if post.status != PostStatus.APPROVED:
                raise InvalidTransition(f"Cannot claim a post in {post.status.value}")

            if not await self._repos.posts.compare_and_set_status(
                post.id, PostStatus.APPROVED, PostStatus.WORKSHOP
            ):
                raise AlreadyClaimed("Someone has already taken ownership of this idea")

            task = await self._repos.tasks.add_claimed(Task(
                post_id=post.id,
                owner_id=user.id,
                description=post.title,
                status=TaskStatus.IN_PROGRESS,
            ))

        logger.info(f"Post {post.id} claimed by {user.id} as task {task.id}")
        self._dispatch(self._author_job(
            post,
            user.id,
            NotificationType.TASK_CLAIMED,
            f"Picked up: {post.title}",
            f"{user.name} has taken ownership of your idea.",
        ))
        return task

    async def complete_task(self, user: User, task_id: UUID) -> None:
        """Finish a task. Flips the task to done and its post to completed."""
        async with self._transaction():
            resolver = await self._resolver()
            self._require_onboarded(resolver, user)
            task = await self._get_task(task_id)
            post = await self._get_post(task.post_id)

            is_owner = task.owner_id == user.id
            is_manager = UserRole(user.role).is_manager_or_admin and resolver.can_see_target(
                user, post.target_audience
            )
            if not (is_owner or is_manager):
                raise AuthorizationDenied("Only the owner or a manager can complete this task")

            if task.status == TaskStatus.DONE:
                raise InvalidTransition("The task is already done")
            if post.status != PostStatus.WORKSHOP:
                raise InvalidTransition(f"Cannot complete a post in {post.status.value}")

            # Post first: a lost race leaves both rows untouched
            if not await self._repos.posts.compare_and_set_status(
                post.id, PostStatus.WORKSHOP, PostStatus.COMPLETED
            ):
                raise InvalidTransition("The task is already done")
            if not await self._repos.tasks.compare_and_set_status(
                task.id, task.status, TaskStatus.DONE
            ):
                raise InvalidTransition("The task is already done")

        logger.info(f"Task {task.id} completed by {user.id}")
        self._dispatch(self._author_job(
            post,
            user.id,
            NotificationType.IDEA_COMPLETED,
            f"Done: {post.title}",
            "Your idea has been carried out.",
        ))

    async def give_high_five(self, user: User, task_id: UUID) -> None:
        async with self._transaction():
            resolver = await self._resolver()
            self._require_onboarded(resolver, user)
            task = await self._get_task(task_id)
            if task.status != TaskStatus.DONE:
                raise InvalidTransition("High-fives are for finished tasks")
            await self._repos.tasks.add_high_five(task.id, user.id)

        if task.owner_id and task.owner_id != user.id:
            self._dispatch([NotificationJob(
                recipients=[task.owner_id],
                type=NotificationType.HIGH_FIVE,
                title="High-five!",
                message=f"{user.name} gave you a high-five for {task.description}.",
                link=f"/?post={task.post_id}",
                related_id=str(task.id),
            )])

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_post(self, user: User, post_id: UUID) -> Post:
        """A single post the user is allowed to see."""
        resolver = await self._resolver()
        post = await self._get_post(post_id)
        if not resolver.is_onboarded(user) or not resolver.can_see_target(
            user, post.target_audience
        ):
            raise NotFound(f"Post {post_id} not found")
        return post

    async def get_task_for_post(self, user: User, post_id: UUID) -> Task | None:
        await self.get_post(user, post_id)
        return await self._repos.tasks.get_by_post(post_id)

    async def get_task(self, task_id: UUID) -> Task:
        return await self._get_task(task_id)

    async def high_five_givers(self, task_id: UUID) -> list[UUID]:
        return await self._repos.tasks.high_five_givers(task_id)
