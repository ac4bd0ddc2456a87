"""Tests for notify-set computation and the delivery worker pool."""

from contextlib import asynccontextmanager

import httpx
import pytest

from station_navet.models import NotificationType, PushSubscription
from station_navet.services import (
    HttpPushTransport,
    NotificationDispatcher,
    NotificationJob,
    PushJob,
    notify_set,
)

from .conftest import FakePushTransport, World


def job(world: World, *keys: str) -> NotificationJob:
    return NotificationJob(
        recipients=[world.users[k].id for k in keys],
        type=NotificationType.NEW_IDEA,
        title="New idea: Bättre kaffe",
        message="Anna has shared an idea for Norrtälje.",
        link="/?post=1",
        related_id="1",
    )


async def subscribe(world: World, key: str, endpoint: str) -> None:
    await world.repos.push_subscriptions.add(PushSubscription(
        user_id=world.users[key].id,
        endpoint=endpoint,
        keys={"p256dh": "k", "auth": "a"},
    ))


# =============================================================================
# NOTIFY-SET
# =============================================================================


class TestNotifySet:

    async def names(self, world: World, post) -> set[str]:
        ids = await notify_set(world.repos, post, post.author_id)
        by_id = {u.id: key for key, u in world.users.items()}
        return {by_id[i] for i in ids}

    async def test_station_scope(self, world: World):
        post = await world.add_post("anna", "Norrtälje")
        assert await self.names(world, post) == {"david", "sm_norrtalje"}

    async def test_area_scope_includes_stations_and_area_override(self, world: World):
        post = await world.add_post("sm_norrtalje", "Roslagen")
        assert await self.names(world, post) == {"anna", "bo", "cecilia", "david", "am_roslagen"}

    async def test_region_scope_reaches_everyone_below(self, world: World):
        post = await world.add_post("rm_nord", "Nord")
        assert await self.names(world, post) == {
            "anna", "bo", "cecilia", "david", "erik",
            "sm_norrtalje", "sm_sodermalm", "am_roslagen", "admin",
        }

    async def test_other_region_is_untouched(self, world: World):
        post = await world.add_post("frida", "Ystad")
        assert await self.names(world, post) == set()


# =============================================================================
# DELIVERY
# =============================================================================


class TestDelivery:

    async def test_inbox_rows_are_written(self, world: World, dispatcher: NotificationDispatcher):
        dispatcher.enqueue(job(world, "david", "bo"))
        await dispatcher.join()

        for key in ("david", "bo"):
            [notification] = await world.repos.notifications.list_active(world.users[key].id, 10)
            assert notification.type == NotificationType.NEW_IDEA
            assert notification.link == "/?post=1"
            assert not notification.is_read
        assert dispatcher.stats.notifications_written == 2

    async def test_empty_recipients_are_skipped(self, world: World, dispatcher: NotificationDispatcher):
        assert dispatcher.enqueue(job(world)) is False
        assert dispatcher.stats.enqueued == 0

    async def test_push_goes_to_every_device(
        self, world: World, dispatcher: NotificationDispatcher, transport: FakePushTransport
    ):
        await subscribe(world, "david", "https://push.example/phone")
        await subscribe(world, "david", "https://push.example/laptop")

        dispatcher.enqueue(job(world, "david", "bo"))
        await dispatcher.join()

        assert sorted(e for e, _ in transport.sent) == [
            "https://push.example/laptop", "https://push.example/phone",
        ]
        payload = transport.sent[0][1]
        assert payload["title"] == "New idea: Bättre kaffe"
        assert payload["link"] == "/?post=1"

    @pytest.mark.parametrize("status_code", [404, 410])
    async def test_gone_endpoint_is_pruned(
        self,
        world: World,
        dispatcher: NotificationDispatcher,
        transport: FakePushTransport,
        status_code: int,
    ):
        await subscribe(world, "david", "https://push.example/old")
        await subscribe(world, "david", "https://push.example/new")
        transport.status_by_endpoint["https://push.example/old"] = status_code

        dispatcher.enqueue(job(world, "david"))
        await dispatcher.join()

        remaining = await world.repos.push_subscriptions.list_for_user(world.users["david"].id)
        assert [s.endpoint for s in remaining] == ["https://push.example/new"]
        assert dispatcher.stats.subscriptions_pruned == 1

    async def test_other_failures_keep_the_subscription(
        self, world: World, dispatcher: NotificationDispatcher, transport: FakePushTransport
    ):
        await subscribe(world, "david", "https://push.example/flaky")
        transport.status_by_endpoint["https://push.example/flaky"] = 503

        dispatcher.enqueue(job(world, "david"))
        await dispatcher.join()

        assert await world.repos.push_subscriptions.get_by_endpoint("https://push.example/flaky")
        assert dispatcher.stats.pushes_failed == 1

    async def test_transport_errors_stay_in_the_worker(
        self, world: World, dispatcher: NotificationDispatcher, transport: FakePushTransport
    ):
        await subscribe(world, "david", "https://push.example/boom")
        transport.raise_for.add("https://push.example/boom")

        dispatcher.enqueue(job(world, "david"))
        await dispatcher.join()

        assert len(dispatcher.stats.errors) == 1
        assert await world.repos.notifications.count_unread(world.users["david"].id) == 1

        # The pool keeps serving after a failure
        dispatcher.enqueue(job(world, "bo"))
        await dispatcher.join()
        assert await world.repos.notifications.count_unread(world.users["bo"].id) == 1


class TestQueue:

    async def test_full_queue_drops_and_counts(self, repos, world: World, transport):
        @asynccontextmanager
        async def factory():
            yield repos

        # Not started, so nothing drains the queue
        dispatcher = NotificationDispatcher(factory, transport, workers=1, queue_size=1)
        assert dispatcher.enqueue(job(world, "david")) is True
        assert dispatcher.enqueue(job(world, "bo")) is False
        assert dispatcher.stats.dropped == 1
        assert not dispatcher.running

    async def test_push_job_payload(self):
        push = PushJob(user_id=None, title="t", message="m", link="/x", related_id="42")
        assert push.payload() == {"title": "t", "message": "m", "link": "/x", "relatedId": "42"}

    async def test_start_is_idempotent_and_stop_clears(self, repos, transport):
        @asynccontextmanager
        async def factory():
            yield repos

        dispatcher = NotificationDispatcher(factory, transport, workers=3)
        dispatcher.start()
        dispatcher.start()
        assert dispatcher.running
        await dispatcher.stop()
        assert not dispatcher.running


# =============================================================================
# HTTP TRANSPORT
# =============================================================================


class TestHttpPushTransport:

    async def test_one_client_serves_every_send(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((str(request.url), request.headers["TTL"]))
            return httpx.Response(410 if "gone" in str(request.url) else 201)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = HttpPushTransport(ttl_seconds=60, client=client)
        payload = {"title": "Hej", "body": "Ny idé"}

        ok = await transport.send(PushSubscription(endpoint="https://push.example/a"), payload)
        gone = await transport.send(PushSubscription(endpoint="https://push.example/gone"), payload)

        assert ok.success
        assert gone.endpoint_gone
        assert seen == [("https://push.example/a", "60"), ("https://push.example/gone", "60")]
        assert not client.is_closed

        await transport.aclose()
        assert client.is_closed

    async def test_default_client_has_bounded_timeout(self):
        transport = HttpPushTransport(timeout_seconds=3.0)
        assert transport._client.timeout == httpx.Timeout(3.0)
        await transport.aclose()

    async def test_network_error_is_a_failed_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = HttpPushTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        result = await transport.send(PushSubscription(endpoint="https://push.example/a"), {})

        assert not result.success
        assert result.status_code is None
        await transport.aclose()
