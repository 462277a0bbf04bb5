"""Token bucket limiter for outbound Blockfrost calls.

Callers wrap each request in :meth:`RateLimiter.schedule`.  Requests wait in
a FIFO queue and are released one permit at a time; permits refill linearly
at ``rate`` per second up to ``capacity``.  Blockfrost allows 10 requests per
second with a burst of 500, which are the defaults used by
:class:`config.Settings`.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, TypeVar

T = TypeVar("T")


class RateLimiter:
    """
    Parameters
    ----------
    rate : float
        Permits added per second.
    capacity : int
        Burst ceiling; the bucket starts full.
    clock, sleep :
        Time source and sleep coroutine, replaceable in tests.
    """

    def __init__(
        self,
        rate: float,
        capacity: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if rate <= 0 or capacity < 1:
            raise ValueError("rate must be positive and capacity at least 1")
        self._rate = rate
        self._capacity = capacity
        self._tokens = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self._timestamp = clock()
        self._pending: Deque[asyncio.Future] = deque()
        self._drainer: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        return 1.0 / self._rate

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._timestamp
        if elapsed > 0:
            self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._timestamp = now

    async def schedule(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``operation`` once a permit is available.

        Exceptions raised by ``operation`` propagate to the caller.  A caller
        cancelled while queued gives up its place without using a permit.
        """

        ticket = asyncio.get_running_loop().create_future()
        self._pending.append(ticket)
        if self._drainer is None or self._drainer.done():
            self._drainer = asyncio.create_task(self._drain())
        await ticket
        return await operation(*args, **kwargs)

    async def _drain(self) -> None:
        """Release queued callers in order, each once a whole permit has accrued.

        A fractional balance (0 < tokens < 1) is not enough; the head waits
        until the bucket holds at least one full permit, then takes it.
        """

        while self._pending:
            if self._pending[0].done():
                # cancelled while waiting
                self._pending.popleft()
                continue
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                self._pending.popleft().set_result(None)
                continue
            await self._sleep(self.interval)

    async def aclose(self) -> None:
        """Cancel queued callers and stop the release loop."""

        while self._pending:
            self._pending.popleft().cancel()
        if self._drainer is not None and not self._drainer.done():
            self._drainer.cancel()
            try:
                await self._drainer
            except asyncio.CancelledError:
                pass
        self._drainer = None
