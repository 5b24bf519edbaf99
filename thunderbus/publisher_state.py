"""State a publisher keeps: pending messages, pausing, health and fallbacks."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Optional

TIME_CHECK_TICKER = 30.0
TIME_WITHOUT_PUBLISH_UNHEALTHY = 30.0
TIME_PAUSED_UNHEALTHY = 30.0

_logger = logging.getLogger(__name__)


class PendingCounter:
    """A wait group that also reports how many items are outstanding."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def add(self, delta: int) -> None:
        with self._cond:
            if self._count + delta < 0:
                raise ValueError("negative pending counter")
            self._count += delta
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        self.add(-1)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending; return False if the timeout expired."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)


class PauseState:
    """Whether publishing is paused, and when it was last paused."""

    def __init__(self, paused: bool = True, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._paused = paused
        self._last_paused_at = clock()

    def pause(self) -> None:
        with self._lock:
            self._paused = True
            self._last_paused_at = self._clock()

    def resume(self) -> None:
        with self._lock:
            self._paused = False

    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def last_paused_at(self) -> float:
        with self._lock:
            return self._last_paused_at


class HealthStatus(Enum):
    HEALTHY = "healthy"
    PAUSED = "paused"
    PAUSED_TOO_LONG = "paused_too_long"
    STALLED = "stalled"


class HealthMonitor:
    """Judges publisher health from pending messages, pauses and publish times."""

    def __init__(
        self,
        pending: PendingCounter,
        pause_state: PauseState,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
        paused_threshold: float = TIME_PAUSED_UNHEALTHY,
        unpublished_threshold: float = TIME_WITHOUT_PUBLISH_UNHEALTHY,
    ) -> None:
        self._pending = pending
        self._pause_state = pause_state
        self._clock = clock
        self._logger = logger or _logger
        self._paused_threshold = paused_threshold
        self._unpublished_threshold = unpublished_threshold
        self._lock = threading.Lock()
        self._last_published_at = clock()

    @property
    def last_published_at(self) -> float:
        with self._lock:
            return self._last_published_at

    def mark_published(self) -> None:
        with self._lock:
            self._last_published_at = self._clock()

    def check(self) -> HealthStatus:
        """Evaluate health once, logging a warning when unhealthy."""
        count = self._pending.count
        now = self._clock()
        self._logger.debug("checking publisher health", extra={"messages_unpublished": count})

        if self._pause_state.is_paused():
            if now - self._pause_state.last_paused_at > self._paused_threshold:
                self._logger.warning(
                    "publisher unhealthy: paused for too long",
                    extra={"messages_unpublished": count},
                )
                return HealthStatus.PAUSED_TOO_LONG
            return HealthStatus.PAUSED

        if count == 0:
            return HealthStatus.HEALTHY

        if now - self.last_published_at > self._unpublished_threshold:
            self._logger.warning(
                "publisher unhealthy: no publishing for too long",
                extra={"messages_unpublished": count},
            )
            return HealthStatus.STALLED
        return HealthStatus.HEALTHY


def drop_message(
    pending: PendingCounter, topic: str, payload: bytes, logger: Optional[logging.Logger] = None
) -> None:
    """Give up on a pending message, logging what was lost."""
    (logger or _logger).error("event dropped", extra={"topic": topic, "payload": payload})
    pending.done()


class PublisherUnavailableError(ConnectionError):
    """Raised by a publisher that could not reach the broker on startup."""


class FailedPublisher:
    """Stand-in publisher used when the broker was unreachable; always fails.

    Every attempt is logged and counted in ``failed_attempts`` before raising.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or _logger
        self._lock = threading.Lock()
        self.failed_attempts = 0

    def _fail(self, reason: str, **details: object) -> PublisherUnavailableError:
        with self._lock:
            self.failed_attempts += 1
        message = f"failed to connect to broker on startup, can't {reason}"
        self._logger.error(message, extra=details)
        return PublisherUnavailableError(message)

    def publish(self, topic: str, *args: object) -> None:
        raise self._fail("publish messages", topic=topic, messages=len(args))

    def close(self) -> None:
        raise self._fail("close publisher")