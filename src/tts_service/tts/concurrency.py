"""
Permit Pool for bounded concurrency toward the gwent daemon.

The daemon is co-located and has a fixed synthesis capacity, so the
service never has more than ``max_permits`` calls in flight toward it.

Backpressure Strategy:
    1. If a permit is free and nobody is queued: take it immediately
    2. If the wait queue has space: wait up to ``timeout`` for a permit,
       served in arrival order
    3. If the wait queue is full: reject immediately

Both rejections raise a BackendBusyError subclass, which the error
normalizer reports as code 0 with HTTP 503. ``max_queue=0`` gives a pure
fail-fast pool.

The counters are guarded by one threading.Lock, so ``in_use`` can never
exceed ``max_permits`` no matter how many tasks race. A permit is
released in a ``finally`` block, so errors, timeouts and cancellation
cannot leak one. A task cancelled while waiting gives its queue slot back.

Usage:
    pool = PermitPool(max_permits=32, max_queue=64, acquire_timeout=5.0)

    async with pool.acquire():
        response = await client.post(...)

    pool.stats().in_use
"""
from __future__ import annotations

import asyncio
import itertools
import threading
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import AsyncIterator, Callable, Deque, Dict, Optional

from tts_service.core.logging import debug, get_logger, warn
from tts_service.tts.errors import BackendBusyError

_LOG = get_logger("tts-service.concurrency")

# How often a waiting task re-checks for a free permit
_POLL_INTERVAL_S = 0.005


class PermitRejectedError(BackendBusyError):
    """Wait queue was full."""


class PermitTimeoutError(BackendBusyError):
    """No permit became free within the acquire timeout."""


@dataclass
class PermitStats:
    """Snapshot of permit pool counters."""
    max_permits: int
    max_queue: int
    in_use: int
    waiting: int
    peak_in_use: int
    total_acquired: int
    total_released: int
    total_rejected: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class PermitPool:
    """
    Counting permit pool with a bounded wait queue.

    Args:
        max_permits: Maximum permits held at once (> 0).
        max_queue: Maximum tasks allowed to wait for a permit (>= 0).
        acquire_timeout: Default seconds to wait for a permit.
        name: Label used in log lines and error messages.
        on_change: Called with the new ``in_use`` count after every
            acquire and release.
    """

    def __init__(
        self,
        max_permits: int,
        max_queue: int = 0,
        acquire_timeout: float = 5.0,
        name: str = "permits",
        on_change: Optional[Callable[[int], None]] = None,
    ):
        if max_permits <= 0:
            raise ValueError(f"max_permits must be greater than 0, got {max_permits}")
        if max_queue < 0:
            raise ValueError(f"max_queue must be non-negative, got {max_queue}")

        self.max_permits = int(max_permits)
        self.max_queue = int(max_queue)
        self.acquire_timeout = float(acquire_timeout)
        self.name = name
        self._on_change = on_change

        self._lock = threading.Lock()
        self._in_use = 0
        self._queue: Deque[int] = deque()
        self._tickets = itertools.count()
        self._peak = 0
        self._total_acquired = 0
        self._total_released = 0
        self._total_rejected = 0

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    @property
    def waiting(self) -> int:
        with self._lock:
            return len(self._queue)

    def stats(self) -> PermitStats:
        with self._lock:
            return PermitStats(
                max_permits=self.max_permits,
                max_queue=self.max_queue,
                in_use=self._in_use,
                waiting=len(self._queue),
                peak_in_use=self._peak,
                total_acquired=self._total_acquired,
                total_released=self._total_released,
                total_rejected=self._total_rejected,
            )

    def try_acquire(self) -> bool:
        """
        Take a permit without waiting.

        Returns:
            True if a permit was taken, False if none was free or other
            tasks are already queued for one.
        """
        with self._lock:
            if self._queue or self._in_use >= self.max_permits:
                return False
            self._take_locked()
            in_use = self._in_use
        self._notify(in_use)
        return True

    def release(self) -> None:
        with self._lock:
            if self._in_use == 0:
                raise RuntimeError(f"{self.name}: release without a held permit")
            self._in_use -= 1
            self._total_released += 1
            in_use = self._in_use
        self._notify(in_use)

    @asynccontextmanager
    async def acquire(self, timeout: Optional[float] = None) -> AsyncIterator["PermitPool"]:
        """
        Hold one permit for the duration of the ``async with`` block.

        Args:
            timeout: Seconds to wait for a permit; defaults to
                ``acquire_timeout``.

        Raises:
            PermitRejectedError: If the wait queue is full.
            PermitTimeoutError: If no permit became free in time.
        """
        if not self.try_acquire():
            await self._wait_for_permit(self.acquire_timeout if timeout is None else timeout)
        try:
            yield self
        finally:
            self.release()

    async def _wait_for_permit(self, timeout: float) -> None:
        with self._lock:
            if len(self._queue) >= self.max_queue:
                self._total_rejected += 1
                waiting = len(self._queue)
                ticket = None
            else:
                ticket = next(self._tickets)
                self._queue.append(ticket)

        if ticket is None:
            warn(_LOG, "permit_rejected", pool=self.name, waiting=waiting, max_queue=self.max_queue)
            raise PermitRejectedError(
                f"{self.name} is busy: {self.max_permits} calls in flight and {waiting} waiting"
            )

        deadline = time.monotonic() + timeout
        try:
            while True:
                with self._lock:
                    # only the head of the queue may take a freed permit
                    if self._queue[0] == ticket and self._in_use < self.max_permits:
                        self._take_locked()
                        in_use = self._in_use
                        break
                    if time.monotonic() >= deadline:
                        self._total_rejected += 1
                        in_use = -1
                        break
                await asyncio.sleep(_POLL_INTERVAL_S)
        finally:
            with self._lock:
                self._queue.remove(ticket)

        if in_use < 0:
            warn(_LOG, "permit_timeout", pool=self.name, timeout_s=timeout)
            raise PermitTimeoutError(f"{self.name} is busy: no permit free after {timeout}s")

        debug(_LOG, "permit_acquired_after_wait", pool=self.name, in_use=in_use)
        self._notify(in_use)

    def _take_locked(self) -> None:
        self._in_use += 1
        self._total_acquired += 1
        if self._in_use > self._peak:
            self._peak = self._in_use

    def _notify(self, in_use: int) -> None:
        if self._on_change is not None:
            self._on_change(in_use)
