"""
Timing Utilities.

Two tools are provided:
    1. timeit: context manager measuring a code block
    2. SlowCallMonitor: shared flag raised when any backend call runs long

The slow-call flag is reported by /health as ``deadline_hit`` so operators
can see that the daemon has been sluggish at least once since startup.

Example Usage:
    with timeit("synthesis") as t:
        audio = await adapter.synthesize(request)
    print(f"Took {t.timing.seconds:.3f}s")

    monitor = SlowCallMonitor("gwent", threshold_s=4.0)
    async with monitor.watch("tts"):
        await client.synthesize(...)
    monitor.hit_any_deadline  # True if the call took longer than 4s
"""
from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Any, AsyncIterator, Dict, Optional

from tts_service.core.logging import get_logger, verbose, warn
from tts_service.core.metrics import metrics

_LOG = get_logger("tts-service.timing")


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: Identifier for what was timed.
        seconds: Duration in seconds.
        meta: Optional metadata dictionary for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    Example:
        with timeit("voice_lookup", meta={"mode": "polly"}) as t:
            voices = await adapter.list_voices()
        t.timing.seconds
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def elapsed(self) -> float:
        """Seconds since entry, usable while the block is still running."""
        if self.timing is not None:
            return self.timing.seconds
        assert self._t0 is not None
        return perf_counter() - self._t0


class SlowCallMonitor:
    """
    Watches backend calls and remembers whether any exceeded a threshold.

    The flag is sticky: once set it stays set for the life of the process.
    Calls that fail still count toward the flag when they ran long.

    Attributes:
        mode: Mode identifier, used as the metric label.
        threshold_s: Duration above which a call is reported as slow.
    """

    def __init__(self, mode: str, threshold_s: float = 4.0):
        self.mode = mode
        self.threshold_s = threshold_s
        self._hit = False
        self._lock = threading.Lock()

    @property
    def hit_any_deadline(self) -> bool:
        return self._hit

    def observe(self, operation: str, seconds: float) -> bool:
        """
        Record one call duration.

        Returns:
            True when the call was slow.
        """
        if seconds <= self.threshold_s:
            verbose(_LOG, "backend_call", mode=self.mode, op=operation, seconds=round(seconds, 4))
            return False
        with self._lock:
            self._hit = True
        metrics.inc_slow_call(self.mode)
        warn(
            _LOG,
            "slow_backend_call",
            mode=self.mode,
            op=operation,
            threshold_s=self.threshold_s,
            seconds=round(seconds, 4),
        )
        return True

    @asynccontextmanager
    async def watch(self, operation: str) -> AsyncIterator[None]:
        with timeit(operation) as t:
            try:
                yield
            finally:
                self.observe(operation, t.elapsed)

    def reset(self) -> None:
        with self._lock:
            self._hit = False
