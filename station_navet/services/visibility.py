"""Visibility Filter: which ideas and polls a user may see in the feed."""

import logging
from typing import Iterable

from ..models import OrgUnitType, Post, PostStatus, User, UserRole
from ..repositories.base import Repositories
from .org_hierarchy import OrgHierarchy
from .scope_resolver import ScopeResolver


logger = logging.getLogger(__name__)

_HIDDEN = {PostStatus.DRAFT, PostStatus.ARCHIVED}


def feed_targets(resolver: ScopeResolver, user: User) -> set[str]:
    """
    Unit names whose posts appear in the user's feed.

    Admins read the feed of their own station, area and region. Their
    bypass covers direct access to a post, not the feed.
    """
    if user.role == UserRole.ADMIN:
        return resolver.home_chain(user).names()
    return resolver.allowed_targets(user)


class VisibilityFilter:
    """Read-side filter over posts. Never raises for out-of-scope requests."""

    def __init__(self, repos: Repositories):
        self._repos = repos

    @staticmethod
    def apply(
        resolver: ScopeResolver,
        user: User,
        posts: Iterable[Post],
        station_filter: str | None = None,
        completed_only: bool = False,
    ) -> list[Post]:
        """
        Filter posts for a user. Input order is preserved, so pass posts
        newest first.

        Peeking outside one's scope yields an empty list, not an error.
        """
        if not resolver.is_onboarded(user):
            return []

        allowed = feed_targets(resolver, user)

        chain = None
        if station_filter:
            h = resolver.hierarchy
            if not h.exists(station_filter) or h.get(station_filter).type != OrgUnitType.STATION:
                return []
            if station_filter not in allowed:
                return []
            chain = resolver.relevant_chain(station_filter)

        visible = []
        for post in posts:
            if post.status in _HIDDEN:
                continue
            is_completed = post.status == PostStatus.COMPLETED
            if is_completed != completed_only:
                continue
            if post.target_audience not in allowed:
                continue
            if chain is not None and post.target_audience not in chain:
                continue
            visible.append(post)
        return visible

    async def list_visible_posts(
        self,
        user: User,
        station_filter: str | None = None,
        completed_only: bool = False,
    ) -> list[Post]:
        hierarchy = await OrgHierarchy.load(self._repos.org_units)
        resolver = ScopeResolver(hierarchy)

        if not resolver.is_onboarded(user):
            logger.debug(f"User {user.id} has no station yet, empty feed")
            return []

        posts = await self._repos.posts.list_by_targets(sorted(feed_targets(resolver, user)))

        return self.apply(
            resolver,
            user,
            posts,
            station_filter=station_filter,
            completed_only=completed_only,
        )
