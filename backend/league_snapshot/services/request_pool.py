"""In-flight request sharing and a bounded worker pool for upstream calls.

Both pieces are plain objects owned by a single aggregation run, so two
concurrent runs never share cached requests.

Everything here relies on asyncio's single-threaded event loop: lookups
and removals in the in-flight map happen between awaits, so no lock is
needed.
"""

import asyncio
import logging
import random
from collections import deque
from collections.abc import Awaitable, Callable, Hashable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

SleepFn = Callable[[float], Awaitable[Any]]


class InFlightRequests:
    """Share identical in-flight requests between concurrent callers.

    Requests are keyed by the caller (typically URL + serialized options).
    The shared entry is removed as soon as the request settles, success or
    failure, so a later call with the same key issues a fresh request.
    """

    def __init__(self) -> None:
        self._pending: dict[Hashable, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._pending

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        """Await the request for ``key``, starting it only if none is pending."""
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._settle(key, factory))
            self._pending[key] = task
        else:
            logger.debug(f"Sharing in-flight request for {key!r}")

        # One cancelled caller must not cancel the request for everyone else
        return await asyncio.shield(task)

    async def cancel_all(self) -> None:
        """Cancel every pending request and wait for them to unwind.

        Used when a run is abandoned (e.g. after a timeout): shielded
        requests outlive their cancelled callers until this is called.
        """
        tasks = list(self._pending.values())
        if not tasks:
            return
        logger.debug(f"Cancelling {len(tasks)} in-flight requests")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _settle(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            self._pending.pop(key, None)


@dataclass(slots=True)
class PoolOutcome(Generic[T, R]):
    """Result of one pool item: either a value or the captured error."""

    item: T
    value: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedWorkerPool:
    """Fixed number of workers draining a shared queue.

    Each worker sleeps a randomized delay before every dispatch to smooth
    bursts against the upstream rate limiter. Item failures are captured
    in the returned outcomes and never stop the other workers.
    """

    def __init__(
        self,
        max_concurrent: int = 2,
        delay_min: float = 0.2,
        delay_max: float = 0.6,
        sleep: SleepFn = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if delay_min < 0 or delay_max < delay_min:
            raise ValueError("Dispatch delay range must satisfy 0 <= min <= max")

        self.max_concurrent = max_concurrent
        self.delay_min = delay_min
        self.delay_max = delay_max
        self._sleep = sleep
        self._rng = rng or random.Random()

    def _dispatch_delay(self) -> float:
        return self._rng.uniform(self.delay_min, self.delay_max)

    async def map(
        self,
        items: Iterable[T],
        handler: Callable[[T], Awaitable[R]],
    ) -> list[PoolOutcome[T, R]]:
        """Run ``handler`` over every item, returning outcomes in input order."""
        queue: deque[tuple[int, T]] = deque(enumerate(items))
        outcomes: list[PoolOutcome[T, R] | None] = [None] * len(queue)

        async def worker() -> None:
            while queue:
                index, item = queue.popleft()
                delay = self._dispatch_delay()
                if delay > 0:
                    await self._sleep(delay)
                try:
                    value = await handler(item)
                except Exception as e:
                    outcomes[index] = PoolOutcome(item=item, error=e)
                else:
                    outcomes[index] = PoolOutcome(item=item, value=value)

        worker_count = min(self.max_concurrent, len(queue))
        if worker_count:
            await asyncio.gather(*(worker() for _ in range(worker_count)))

        return [outcome for outcome in outcomes if outcome is not None]
