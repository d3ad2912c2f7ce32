import asyncio

import pytest

from lobbycord.errors import ReloadSignalClosed
from lobbycord.scheduler.reload_signal import ReloadSignal


@pytest.mark.asyncio
async def test_subscriber_wakes_on_publish():
    signal = ReloadSignal()
    subscription = signal.subscribe()

    waiter = asyncio.create_task(subscription.changed())
    await asyncio.sleep(0)
    assert not waiter.done()

    signal.publish()
    assert await asyncio.wait_for(waiter, timeout=1) == 1


@pytest.mark.asyncio
async def test_publishes_coalesce():
    signal = ReloadSignal()
    subscription = signal.subscribe()

    signal.publish()
    signal.publish()
    signal.publish()

    assert subscription.has_changed()
    assert await subscription.changed() == 3
    assert not subscription.has_changed()


@pytest.mark.asyncio
async def test_publish_before_wait_is_not_lost():
    signal = ReloadSignal()
    subscription = signal.subscribe()
    signal.publish()

    assert await asyncio.wait_for(subscription.changed(), timeout=1) == 1


@pytest.mark.asyncio
async def test_cancelled_wait_keeps_the_change():
    signal = ReloadSignal()
    subscription = signal.subscribe()

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(subscription.changed(), timeout=0.01)

    signal.publish()
    assert await asyncio.wait_for(subscription.changed(), timeout=1) == 1


@pytest.mark.asyncio
async def test_new_subscription_starts_at_current_version():
    signal = ReloadSignal()
    signal.publish()
    subscription = signal.subscribe()
    assert not subscription.has_changed()

    signal.publish()
    subscription.mark_seen()
    assert not subscription.has_changed()


@pytest.mark.asyncio
async def test_close_wakes_waiters_and_rejects_publish():
    signal = ReloadSignal()
    subscription = signal.subscribe()
    waiter = asyncio.create_task(subscription.changed())
    await asyncio.sleep(0)

    signal.close()

    with pytest.raises(ReloadSignalClosed):
        await asyncio.wait_for(waiter, timeout=1)
    with pytest.raises(ReloadSignalClosed):
        signal.publish()
    assert signal.closed
