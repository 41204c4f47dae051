"""Admission control in front of the execution core.

The coordinator itself keeps no state between calls, so bounding load is the
transports' job: a process-wide cap on concurrent executions plus a
sliding-window rate limit per caller.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from forge.config import SandboxSettings
from forge.errors import TooManyRequestsError

logger = logging.getLogger(__name__)


class AdmissionController:
    def __init__(
        self,
        max_concurrent: int = 8,
        queue_timeout: float = 5.0,
        rate_limit_max: int = 10,
        rate_limit_window: float = 60.0,
    ) -> None:
        self.max_concurrent = max_concurrent
        self.queue_timeout = queue_timeout
        self.rate_limit_max = rate_limit_max
        self.rate_limit_window = rate_limit_window
        self._slots = asyncio.Semaphore(max_concurrent)
        self._history: dict[str, list[float]] = {}
        self._in_flight = 0

    @classmethod
    def from_settings(cls, settings: SandboxSettings) -> "AdmissionController":
        return cls(
            max_concurrent=settings.max_concurrent,
            queue_timeout=settings.queue_timeout_sec,
            rate_limit_max=settings.rate_limit_max,
            rate_limit_window=settings.rate_limit_window_sec,
        )

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def check_rate_limit(self, caller: str) -> bool:
        if self.rate_limit_max <= 0:
            return True
        now = time.monotonic()
        recent = [t for t in self._history.get(caller, []) if now - t < self.rate_limit_window]

        if len(recent) >= self.rate_limit_max:
            self._history[caller] = recent
            return False

        recent.append(now)
        self._history[caller] = recent
        return True

    @asynccontextmanager
    async def admit(self, caller: str) -> AsyncIterator[None]:
        """Hold an execution slot for the duration of the block.

        Raises:
            TooManyRequestsError: caller is over its rate limit, or no slot
                freed up within the queue timeout.
        """
        if not self.check_rate_limit(caller):
            logger.info("rate limit hit caller=%s", caller)
            raise TooManyRequestsError(
                detail=f"Rate limit exceeded. Max {self.rate_limit_max} executions per {self.rate_limit_window:g}s",
                caller=caller,
            )
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.queue_timeout)
        except TimeoutError:
            logger.warning("no execution slot free after %.1fs caller=%s", self.queue_timeout, caller)
            raise TooManyRequestsError(
                detail=f"Server busy: {self.max_concurrent} executions already running",
                caller=caller,
            ) from None
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1
            self._slots.release()
