"""Pydantic schemas for the notification inbox and push subscriptions."""

from uuid import UUID

from pydantic import Field

from ..models import NotificationType
from .base import NavetBaseModel, TimestampMixin


class NotificationResponse(NavetBaseModel, TimestampMixin):
    id: UUID
    type: NotificationType
    title: str
    message: str
    link: str
    related_id: str | None = None
    is_read: bool
    is_archived: bool


class UnreadCountResponse(NavetBaseModel):
    unread: int


class MarkAllReadResponse(NavetBaseModel):
    updated: int


class PushSubscriptionCreate(NavetBaseModel):
    """Browser push subscription. Keys are stored as given."""

    endpoint: str = Field(..., min_length=1)
    keys: dict[str, str] = Field(default_factory=dict)


class PushSubscriptionResponse(NavetBaseModel):
    id: UUID
    endpoint: str
