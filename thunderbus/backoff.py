"""Exponential backoff policy used for message retries and reconnection."""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import Optional

DEFAULT_INITIAL_INTERVAL = 0.5
DEFAULT_RANDOMIZATION_FACTOR = 0.5
DEFAULT_MULTIPLIER = 1.5
DEFAULT_MAX_INTERVAL = 60.0
DEFAULT_MAX_ELAPSED_TIME = 15 * 60.0

STOP: Optional[float] = None
"""Returned by :meth:`ExponentialBackoff.next_backoff` when retrying must stop."""


class ExponentialBackoff:
    """Randomised exponential backoff; intervals are in seconds.

    A ``max_elapsed_time`` of ``None`` or ``0`` means the policy never stops.
    """

    def __init__(
        self,
        initial_interval: float = DEFAULT_INITIAL_INTERVAL,
        randomization_factor: float = DEFAULT_RANDOMIZATION_FACTOR,
        multiplier: float = DEFAULT_MULTIPLIER,
        max_interval: float = DEFAULT_MAX_INTERVAL,
        max_elapsed_time: Optional[float] = DEFAULT_MAX_ELAPSED_TIME,
        *,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.initial_interval = initial_interval
        self.randomization_factor = randomization_factor
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.max_elapsed_time = max_elapsed_time
        self._clock = clock
        self._rand = rand
        self.reset()

    def reset(self) -> None:
        """Start over from the initial interval and restart the elapsed clock."""
        self._current = self.initial_interval
        self._start = self._clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._start

    def next_backoff(self) -> Optional[float]:
        """Return the next wait in seconds, or :data:`STOP` once time is up."""
        elapsed = self.elapsed
        delta = self.randomization_factor * self._current
        low = self._current - delta
        high = self._current + delta
        interval = low + self._rand() * (high - low)
        self._increment()
        if self.max_elapsed_time and elapsed + interval > self.max_elapsed_time:
            return STOP
        return interval

    def _increment(self) -> None:
        if self._current >= self.max_interval / self.multiplier:
            self._current = self.max_interval
        else:
            self._current *= self.multiplier


def current_interval(backoff: ExponentialBackoff, attempts: int) -> Optional[float]:
    """Return the interval for a message that has been attempted ``attempts`` times."""
    interval = backoff.next_backoff()
    for _ in range(attempts):
        interval = backoff.next_backoff()
    return interval