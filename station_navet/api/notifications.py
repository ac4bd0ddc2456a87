"""Notification API routes: the inbox and push device registration."""

from uuid import UUID

from fastapi import APIRouter, status

from ..core.dependencies import CurrentUserDep, NotificationServiceDep
from ..schemas import (
    MarkAllReadResponse,
    MessageResponse,
    NotificationResponse,
    PushSubscriptionCreate,
    PushSubscriptionResponse,
    UnreadCountResponse,
)

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(current_user: CurrentUserDep, service: NotificationServiceDep):
    """The 20 newest notifications that are not archived."""
    return await service.list_notifications(current_user)


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: CurrentUserDep, service: NotificationServiceDep):
    return UnreadCountResponse(unread=await service.unread_count(current_user))


@router.post("/notifications/read-all", response_model=MarkAllReadResponse)
async def mark_all_as_read(current_user: CurrentUserDep, service: NotificationServiceDep):
    return MarkAllReadResponse(updated=await service.mark_all_as_read(current_user))


@router.post("/notifications/{notification_id}/read", response_model=MessageResponse)
async def mark_as_read(
    notification_id: UUID,
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
):
    await service.mark_as_read(current_user, notification_id)
    return MessageResponse()


@router.post("/notifications/{notification_id}/archive", response_model=MessageResponse)
async def archive(
    notification_id: UUID,
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
):
    await service.archive(current_user, notification_id)
    return MessageResponse()


@router.post(
    "/push/subscriptions",
    response_model=PushSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def save_subscription(
    request: PushSubscriptionCreate,
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
):
    return await service.save_subscription(current_user, request.endpoint, request.keys)
