"""
Notification Dispatcher: fan-out of lifecycle events to users.

This module is responsible for:
1. Computing who should hear about a post (the notify-set)
2. Queueing delivery outside the transaction that changed the post
3. Writing one inbox Notification per recipient
4. Best-effort push delivery, pruning endpoints that are gone

Delivery is at-least-once. Nothing raised while delivering ever reaches
the caller of the operation that triggered it.
"""

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Callable
from uuid import UUID

from ..models import Notification, NotificationType, OrgUnitType, Post
from ..repositories.base import Repositories
from .org_hierarchy import OrgHierarchy
from .push_transport import PushTransport


logger = logging.getLogger(__name__)

# Opens a fresh unit of work for a worker
RepositoriesFactory = Callable[[], AbstractAsyncContextManager[Repositories]]


# =============================================================================
# JOBS
# =============================================================================


@dataclass
class NotificationJob:
    """Inbox notifications for a set of recipients."""
    recipients: list[UUID]
    type: NotificationType
    title: str
    message: str
    link: str = "/"
    related_id: str | None = None


@dataclass
class PushJob:
    """Push delivery to every device of one user."""
    user_id: UUID
    title: str
    message: str
    link: str = "/"
    related_id: str | None = None

    def payload(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "link": self.link,
            "relatedId": self.related_id,
        }


@dataclass
class DispatcherStats:
    enqueued: int = 0
    dropped: int = 0
    notifications_written: int = 0
    pushes_sent: int = 0
    pushes_failed: int = 0
    subscriptions_pruned: int = 0
    errors: list[str] = field(default_factory=list)


# =============================================================================
# NOTIFY-SET
# =============================================================================


async def notify_set(repos: Repositories, post: Post, author_id: UUID) -> list[UUID]:
    """
    Every user whose membership matches the post's scope, author excluded.

    - station: users at exactly that station
    - area: users at a station in the area, or with the area as override
    - region: users at a station in the region, or with an area or the
      region itself as override
    """
    hierarchy = await OrgHierarchy.load(repos.org_units)
    target = hierarchy.get(post.target_audience)

    unit_ids = {target.id}
    if target.type == OrgUnitType.AREA:
        unit_ids.update(hierarchy.get(s).id for s in hierarchy.descendant_stations(target.name))
    elif target.type == OrgUnitType.REGION:
        unit_ids.update(hierarchy.get(a).id for a in hierarchy.descendant_areas(target.name))
        unit_ids.update(hierarchy.get(s).id for s in hierarchy.descendant_stations(target.name))

    users = await repos.users.list_in_units(sorted(unit_ids))
    return [u.id for u in users if u.id != author_id]


# =============================================================================
# DISPATCHER
# =============================================================================


class NotificationDispatcher:
    """
    Queue plus worker pool.

    Producers call enqueue() after their transaction committed. Workers open
    their own unit of work per job through the repositories factory.
    """

    def __init__(
        self,
        repositories_factory: RepositoriesFactory,
        transport: PushTransport,
        workers: int = 2,
        queue_size: int = 1000,
    ):
        self._repositories_factory = repositories_factory
        self._transport = transport
        self._worker_count = workers
        self._queue: asyncio.Queue[NotificationJob | PushJob] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task] = []
        self.stats = DispatcherStats()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def enqueue(self, job: NotificationJob | PushJob) -> bool:
        """Queue a job without blocking. A full queue drops it and logs."""
        if isinstance(job, NotificationJob) and not job.recipients:
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning(f"Notification queue full, dropping {type(job).__name__}")
            return False
        self.stats.enqueued += 1
        return True

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"notification-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info(f"Notification dispatcher started with {self._worker_count} workers")

    async def join(self) -> None:
        """Wait until every queued job (and the pushes it spawned) is handled."""
        await self._queue.join()

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Notification dispatcher stopped")

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                if isinstance(job, NotificationJob):
                    await self._deliver_notifications(job)
                else:
                    await self._deliver_push(job)
            except Exception as e:
                # Delivery failures stop here
                error_msg = f"Worker {index} failed on {type(job).__name__}: {str(e)}"
                logger.exception(error_msg)
                self.stats.errors.append(error_msg)
            finally:
                self._queue.task_done()

    async def _deliver_notifications(self, job: NotificationJob) -> None:
        async with self._repositories_factory() as repos:
            await repos.notifications.add_many([
                Notification(
                    user_id=user_id,
                    type=job.type,
                    title=job.title,
                    message=job.message,
                    link=job.link,
                    related_id=job.related_id,
                    is_read=False,
                    is_archived=False,
                )
                for user_id in job.recipients
            ])
            await repos.commit()
        self.stats.notifications_written += len(job.recipients)

        for user_id in job.recipients:
            self.enqueue(PushJob(
                user_id=user_id,
                title=job.title,
                message=job.message,
                link=job.link,
                related_id=job.related_id,
            ))

    async def _deliver_push(self, job: PushJob) -> None:
        async with self._repositories_factory() as repos:
            subscriptions = await repos.push_subscriptions.list_for_user(job.user_id)
            if not subscriptions:
                return

            payload = job.payload()
            for subscription in subscriptions:
                result = await self._transport.send(subscription, payload)
                if result.success:
                    self.stats.pushes_sent += 1
                elif result.endpoint_gone:
                    await repos.push_subscriptions.remove_by_endpoint(subscription.endpoint)
                    self.stats.subscriptions_pruned += 1
                    logger.info(f"Pruned dead push subscription: {subscription.endpoint}")
                else:
                    self.stats.pushes_failed += 1
                    logger.warning(
                        f"Push to {subscription.endpoint} failed: {result.error}"
                    )
            await repos.commit()
