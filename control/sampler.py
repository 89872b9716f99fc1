"""Fixed-rate sampling of high-frequency input events."""
from __future__ import annotations

import logging
import time
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitedInputSampler(Generic[T]):
    """Hold the latest input sample and hand it to one consumer once per period.

    ``update`` may be called at any frequency; only the newest sample survives.
    A held joystick keeps producing movement because the same sample is
    delivered again on every tick until ``end`` discards it. ``poll`` is the
    timer: call it from the owning loop and it fires at most one tick per call.
    """

    def __init__(
        self,
        period_s: float,
        consumer: Callable[[Optional[T]], None],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if period_s <= 0:
            raise ValueError("period_s must be positive")
        self.period_s = float(period_s)
        self._consumer = consumer
        self._clock = clock
        self._sample: Optional[T] = None
        self._running = False
        self._next_tick: Optional[float] = None
        self._in_tick = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def latest(self) -> Optional[T]:
        return self._sample

    def begin(self) -> None:
        self._running = True
        self._next_tick = self._clock() + self.period_s

    def update(self, sample: T) -> None:
        self._sample = sample

    def end(self) -> None:
        self._running = False
        self._next_tick = None
        self._sample = None

    def tick(self) -> bool:
        """Deliver the stored sample if running; returns whether the consumer ran."""
        if not self._running or self._in_tick:
            return False
        self._in_tick = True
        try:
            self._consumer(self._sample)
        finally:
            self._in_tick = False
        return True

    def poll(self, now: Optional[float] = None) -> bool:
        if not self._running or self._next_tick is None:
            return False
        if now is None:
            now = self._clock()
        if now < self._next_tick:
            return False
        self._next_tick = now + self.period_s
        return self.tick()


__all__ = ["RateLimitedInputSampler"]
