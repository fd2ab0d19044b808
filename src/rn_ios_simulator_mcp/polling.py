"""Wait-until-true polling with an injectable clock."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    *,
    timeout: float,
    interval: float = 1.0,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> bool:
    """Poll ``predicate`` every ``interval`` seconds until it holds.

    Returns:
        True once the predicate holds, False if ``timeout`` elapsed first
    """
    deadline = clock() + timeout
    while clock() < deadline:
        if await predicate():
            return True
        await sleep(interval)
    return False
