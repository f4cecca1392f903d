"""Timers owned by a single consumer: a repeating poll and a debounce."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Tick = Callable[[], Awaitable[None]]


class PollSchedule:
    """Run ``tick`` every ``interval`` (+ jitter) seconds until cancelled.

    Each tick runs as its own task so that a slow call does not delay the
    timer, but a tick is skipped while the previous one is still outstanding.
    :meth:`cancel` stops future ticks only; an outstanding tick finishes.
    """

    def __init__(
        self,
        tick: Tick,
        *,
        interval: float,
        jitter: float = 0.0,
        rng: random.Random | None = None,
        name: str = "poll",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._tick = tick
        self.interval = interval
        self.jitter = max(0.0, jitter)
        self._rng = rng or random.Random()
        self.name = name
        self._timer: asyncio.Task[None] | None = None
        self._inflight: asyncio.Task[None] | None = None
        self._cancelled = False
        self.ticks_started = 0
        self.ticks_skipped = 0

    @property
    def active(self) -> bool:
        return self._timer is not None and not self._cancelled

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> None:
        if self._timer is not None:
            raise RuntimeError(f"Schedule {self.name} already started")
        self._timer = asyncio.create_task(self._run(), name=f"{self.name}-timer")

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        logger.debug("Schedule %s cancelled after %d ticks", self.name, self.ticks_started)

    async def aclose(self) -> None:
        """Cancel, then wait for the timer and any outstanding tick to finish."""

        self.cancel()
        current = asyncio.current_task()
        tasks = [task for task in (self._timer, self._inflight) if task is not None and task is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _next_delay(self) -> float:
        if not self.jitter:
            return self.interval
        return self.interval + self._rng.uniform(0.0, self.jitter)

    async def _run(self) -> None:
        try:
            while not self._cancelled:
                await asyncio.sleep(self._next_delay())
                if self._cancelled:
                    break
                if self.busy:
                    self.ticks_skipped += 1
                    logger.debug("Schedule %s skipped a tick; previous call outstanding", self.name)
                    continue
                self.ticks_started += 1
                self._inflight = asyncio.create_task(self._run_tick(), name=f"{self.name}-tick")
        except asyncio.CancelledError:
            pass

    async def _run_tick(self) -> None:
        try:
            await self._tick()
        except Exception:
            logger.exception("Schedule %s tick failed", self.name)


class Debouncer:
    """Last-call-wins delay: only the most recent trigger in a window runs."""

    def __init__(self, delay: float, *, name: str = "debounce") -> None:
        self.delay = max(0.0, delay)
        self.name = name
        self._pending: asyncio.Task[None] | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def trigger(self, action: Tick) -> asyncio.Task[None]:
        self.cancel()
        self._pending = asyncio.create_task(self._fire(action), name=f"{self.name}-pending")
        return self._pending

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _fire(self, action: Tick) -> None:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        # Once fired, a later trigger no longer cancels this call.
        if self._pending is asyncio.current_task():
            self._pending = None
        try:
            await action()
        except Exception:
            logger.exception("Debounced action %s failed", self.name)
