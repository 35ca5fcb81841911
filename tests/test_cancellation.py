from __future__ import annotations

import asyncio

from spacetimectl.cancellation import CancelToken


def test_callbacks_fire_once_and_late_registration_fires_immediately():
    async def scenario():
        token = CancelToken()
        calls = []
        token.register(lambda: calls.append("early"))
        token.cancel()
        token.cancel()
        token.register(lambda: calls.append("late"))
        return token.cancelled, calls

    cancelled, calls = asyncio.run(scenario())

    assert cancelled
    assert calls == ["early", "late"]


def test_unregister_removes_callback():
    async def scenario():
        token = CancelToken()
        calls = []
        unregister = token.register(lambda: calls.append("x"))
        unregister()
        token.cancel()
        return calls

    assert asyncio.run(scenario()) == []


def test_with_timeout_cancels_and_follows_parent():
    async def scenario():
        timed = CancelToken.with_timeout(0.01)
        await asyncio.wait_for(timed.wait(), timeout=1)

        parent = CancelToken()
        child = CancelToken.with_timeout(10, parent=parent)
        parent.cancel()
        child_cancelled = child.cancelled
        child.dispose()
        return timed.cancelled, child_cancelled

    assert asyncio.run(scenario()) == (True, True)


def test_dispose_stops_timer():
    async def scenario():
        token = CancelToken.with_timeout(0.01)
        token.dispose()
        await asyncio.sleep(0.05)
        return token.cancelled

    assert asyncio.run(scenario()) is False
