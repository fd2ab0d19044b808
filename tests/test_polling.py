from __future__ import annotations

import asyncio

from conftest import FakeClock

from rn_ios_simulator_mcp.polling import wait_until


def test_returns_true_once_predicate_holds() -> None:
    clock = FakeClock()
    answers = iter([False, False, True])

    async def predicate() -> bool:
        return next(answers)

    assert asyncio.run(wait_until(predicate, timeout=10, interval=1, clock=clock, sleep=clock.sleep))
    assert clock.sleeps == [1, 1]


def test_returns_false_after_timeout() -> None:
    clock = FakeClock()
    polls = 0

    async def predicate() -> bool:
        nonlocal polls
        polls += 1
        return False

    assert not asyncio.run(wait_until(predicate, timeout=0.02, interval=0.01, clock=clock, sleep=clock.sleep))
    assert polls == 2


def test_real_clock_short_timeout() -> None:
    async def predicate() -> bool:
        return False

    assert not asyncio.run(wait_until(predicate, timeout=0.02, interval=0.01))
