"""Unit tests for the broadcast hub."""

import asyncio

import pytest

from pubrelay.models import Hub, HubClosed, Lagged
from pubrelay.schemas import Envelope, PublishedMessage

pytestmark = pytest.mark.asyncio


def _envelope(data: str, publisher: str = "alice", topic: str = "weather") -> Envelope:
    return Envelope(publisher_name=publisher, message=PublishedMessage(topic=topic, data=data))


async def test_publish_without_subscribers_never_fails(hub):
    assert hub.publish(_envelope("sunny")) == 0
    assert hub.published_count == 1


async def test_subscription_receives_published_envelope(hub):
    sub = hub.subscribe()
    sent = _envelope("sunny")

    assert hub.publish(sent) == 1
    assert await sub.recv() == sent


async def test_subscription_starts_at_next_envelope(hub):
    hub.publish(_envelope("before"))
    sub = hub.subscribe()
    hub.publish(_envelope("after"))

    received = await sub.recv()
    assert received.message.data == "after"
    assert sub.try_recv() is None


async def test_each_subscription_has_its_own_cursor(hub):
    first = hub.subscribe()
    second = hub.subscribe()
    hub.publish(_envelope("1"))
    hub.publish(_envelope("2"))

    assert (await first.recv()).message.data == "1"
    assert (await first.recv()).message.data == "2"
    assert (await second.recv()).message.data == "1"


async def test_recv_suspends_until_publish(hub):
    sub = hub.subscribe()
    waiter = asyncio.create_task(sub.recv())
    await asyncio.sleep(0)
    assert not waiter.done()

    hub.publish(_envelope("late"))
    received = await asyncio.wait_for(waiter, timeout=1)
    assert received.message.data == "late"


async def test_cancelled_waiter_does_not_disturb_others(hub):
    sub_a = hub.subscribe()
    sub_b = hub.subscribe()
    waiter_a = asyncio.create_task(sub_a.recv())
    waiter_b = asyncio.create_task(sub_b.recv())
    await asyncio.sleep(0)

    waiter_a.cancel()
    hub.publish(_envelope("x"))

    assert (await asyncio.wait_for(waiter_b, timeout=1)).message.data == "x"
    with pytest.raises(asyncio.CancelledError):
        await waiter_a


async def test_slow_subscriber_lags_instead_of_blocking():
    hub = Hub(capacity=4)
    sub = hub.subscribe()
    for i in range(6):
        hub.publish(_envelope(str(i)))

    with pytest.raises(Lagged) as exc_info:
        sub.try_recv()
    assert exc_info.value.skipped == 2

    # after the lag report the oldest retained envelope comes next, in order
    assert [(await sub.recv()).message.data for _ in range(4)] == ["2", "3", "4", "5"]
    assert sub.try_recv() is None


async def test_lag_is_bounded_by_capacity(hub):
    sub = hub.subscribe()
    for i in range(1000):
        hub.publish(_envelope(str(i)))

    with pytest.raises(Lagged) as exc_info:
        await sub.recv()
    assert exc_info.value.skipped == 1000 - hub.capacity
    assert (await sub.recv()).message.data == str(1000 - hub.capacity)


async def test_default_capacity_is_sixteen(hub):
    assert hub.capacity == 16


async def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        Hub(capacity=0)


async def test_closing_subscription_releases_it(hub):
    sub = hub.subscribe()
    assert hub.subscriber_count == 1

    sub.close()
    sub.close()
    assert hub.subscriber_count == 0
    with pytest.raises(RuntimeError):
        sub.try_recv()


async def test_subscription_context_manager(hub):
    async with hub.subscribe():
        assert hub.subscriber_count == 1
    assert hub.subscriber_count == 0


async def test_closed_hub_wakes_waiters_and_refuses_publish(hub):
    sub = hub.subscribe()
    waiter = asyncio.create_task(sub.recv())
    await asyncio.sleep(0)

    hub.close()
    with pytest.raises(HubClosed):
        await asyncio.wait_for(waiter, timeout=1)
    with pytest.raises(HubClosed):
        hub.publish(_envelope("x"))
    with pytest.raises(HubClosed):
        hub.subscribe()


async def test_closed_hub_still_drains_pending_envelopes(hub):
    sub = hub.subscribe()
    hub.publish(_envelope("last"))
    hub.close()

    assert (await sub.recv()).message.data == "last"
    with pytest.raises(HubClosed):
        await sub.recv()
