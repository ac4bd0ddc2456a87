"""Inbox service: reading and tidying a user's notifications and push devices."""

import logging
from typing import Sequence
from uuid import UUID

from ..models import Notification, PushSubscription, User
from ..repositories.base import Repositories
from .exceptions import ValidationError


logger = logging.getLogger(__name__)

INBOX_LIMIT = 20


class NotificationService:
    """Read/archive toggles on notifications owned by the caller."""

    def __init__(self, repos: Repositories):
        self._repos = repos

    async def list_notifications(self, user: User, limit: int = INBOX_LIMIT) -> Sequence[Notification]:
        """The newest non-archived notifications."""
        return await self._repos.notifications.list_active(user.id, limit)

    async def unread_count(self, user: User) -> int:
        return await self._repos.notifications.count_unread(user.id)

    async def _own(self, user: User, notification_id: UUID) -> Notification | None:
        # Unknown or foreign notifications are ignored, not reported
        notification = await self._repos.notifications.get(notification_id)
        if notification is None or notification.user_id != user.id:
            return None
        return notification

    async def mark_as_read(self, user: User, notification_id: UUID) -> None:
        notification = await self._own(user, notification_id)
        if notification is None or notification.is_read:
            return
        notification.is_read = True
        await self._repos.commit()

    async def mark_all_as_read(self, user: User) -> int:
        changed = await self._repos.notifications.mark_all_read(user.id)
        await self._repos.commit()
        return changed

    async def archive(self, user: User, notification_id: UUID) -> None:
        notification = await self._own(user, notification_id)
        if notification is None or notification.is_archived:
            return
        notification.is_archived = True
        await self._repos.commit()

    async def save_subscription(self, user: User, endpoint: str, keys: dict) -> PushSubscription:
        """
        Register a push endpoint for the user.

        The endpoint is the identity of a device: saving a known endpoint
        re-binds it to the current user (for example after a new sign-in).
        """
        endpoint = (endpoint or "").strip()
        if not endpoint:
            raise ValidationError("endpoint is required")

        existing = await self._repos.push_subscriptions.get_by_endpoint(endpoint)
        if existing is not None:
            if existing.user_id != user.id:
                logger.info(f"Push endpoint moved to user {user.id}")
                existing.user_id = user.id
            existing.keys = keys
            await self._repos.commit()
            return existing

        subscription = await self._repos.push_subscriptions.add(PushSubscription(
            user_id=user.id,
            endpoint=endpoint,
            keys=keys,
        ))
        await self._repos.commit()
        return subscription
