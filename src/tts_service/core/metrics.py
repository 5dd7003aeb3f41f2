"""
Prometheus Metrics for tts-service.

Metrics Exposed:
    tts_requests_total               - Counter of /tts requests by mode and HTTP status
    tts_request_duration_seconds     - Histogram of /tts latency by mode
    tts_errors_total                 - Counter of error responses by error code
    tts_audio_bytes_total            - Counter of audio bytes returned
    tts_voice_cache_total            - Counter of voice-list cache lookups by mode and result
    tts_daemon_permits_in_use        - Gauge of gwent daemon permits currently held
    tts_daemon_healthy               - Gauge of the last gwent health probe (1/0)
    tts_slow_backend_calls_total     - Counter of backend calls over the slow-call threshold

Usage:
    from tts_service.core.metrics import metrics

    metrics.record_request(mode="gwent", status=200, duration=0.42, audio_bytes=18342)
    metrics.record_error(code=1)
    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 'tts-service'
        static_configs:
          - targets: ['localhost:3000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class TTSMetrics:
    """
    Metrics collector backed by a private CollectorRegistry.

    A private registry keeps the service's series separate from anything
    else registered in the process, and lets tests build fresh instances.

    Example:
        >>> from tts_service.core.metrics import TTSMetrics
        >>> m = TTSMetrics()
        >>> m.record_request("espeak", 200, 0.05, audio_bytes=4096)
        >>> content, _ = m.get_metrics_response()
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "tts_requests_total",
            "Total /tts requests",
            ["mode", "status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "tts_request_duration_seconds",
            "/tts request duration in seconds",
            ["mode"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._errors_total = Counter(
            "tts_errors_total",
            "Error responses by error code",
            ["code"],
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_audio_bytes_total",
            "Total audio bytes returned",
            registry=self._registry,
        )
        self._voice_cache = Counter(
            "tts_voice_cache_total",
            "Voice list cache lookups",
            ["mode", "result"],
            registry=self._registry,
        )
        self._permits_in_use = Gauge(
            "tts_daemon_permits_in_use",
            "gwent daemon permits currently held",
            registry=self._registry,
        )
        self._daemon_healthy = Gauge(
            "tts_daemon_healthy",
            "Result of the last gwent daemon health probe (1 healthy, 0 not)",
            registry=self._registry,
        )
        self._slow_calls = Counter(
            "tts_slow_backend_calls_total",
            "Backend calls that exceeded the slow-call threshold",
            ["mode"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, mode: str, status: int, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a completed /tts request.

        Args:
            mode: Mode identifier, or "unknown" when it did not resolve.
            status: HTTP status returned to the client.
            duration: Wall time in seconds.
            audio_bytes: Size of the returned audio, 0 on error.
        """
        self._requests_total.labels(mode=mode, status=str(status)).inc()
        self._request_duration.labels(mode=mode).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_error(self, code: int) -> None:
        self._errors_total.labels(code=str(int(code))).inc()

    def record_voice_cache(self, mode: str, result: str) -> None:
        """Record a voice list lookup; result is "hit" or "miss"."""
        self._voice_cache.labels(mode=mode, result=result).inc()

    def set_permits_in_use(self, count: int) -> None:
        self._permits_in_use.set(count)

    def set_daemon_healthy(self, healthy: bool) -> None:
        self._daemon_healthy.set(1 if healthy else 0)

    def inc_slow_call(self, mode: str) -> None:
        self._slow_calls.labels(mode=mode).inc()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global singleton metrics instance
metrics = TTSMetrics()
