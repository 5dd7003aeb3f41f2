"""
gwent adapter: proxies to the co-located synthesis daemon.

Before each synthesis the daemon's health path is probed (unless
``health_check`` is off) so an unreachable daemon fails fast with a clear
"unavailable" error instead of a generic transport failure.

Synthesis calls slower than ``slow_call_warn_s`` are logged and latch the
``deadline_hit`` flag reported by /health.
"""
from __future__ import annotations

from typing import Optional

import httpx

from tts_service.core.config import GwentConfig
from tts_service.core.logging import info, success, warn
from tts_service.core.metrics import metrics
from tts_service.tts.adapter import (
    AudioFormat,
    BaseAdapter,
    Capabilities,
    RateRange,
    SynthesisRequest,
    SynthesisResult,
    VoiceListing,
)
from tts_service.tts.concurrency import PermitPool
from tts_service.tts.daemon_client import DaemonClient, HealthStatus, normalize_voice_payload
from tts_service.tts.errors import AdapterError, BackendUnavailableError
from tts_service.utils.timeit import SlowCallMonitor


class GwentAdapter(BaseAdapter):
    mode = "gwent"

    def __init__(
        self,
        config: GwentConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(voices_ttl_s=config.voices_ttl_s)
        self.config = config
        self._capabilities = Capabilities(
            rate_range=RateRange(0.25, 4.0),
            formats=(AudioFormat.OGG, AudioFormat.MP3),
            default_format=AudioFormat.OGG,
            default_voice=config.default_voice,
        )
        pool = PermitPool(
            max_permits=config.daemon.max_concurrency,
            max_queue=config.max_queue,
            acquire_timeout=config.acquire_timeout_s,
            name="gwent daemon",
            on_change=metrics.set_permits_in_use,
        )
        self.client = DaemonClient(config.daemon, permits=pool, transport=transport)
        self.monitor = SlowCallMonitor(self.mode, threshold_s=config.slow_call_warn_s)

    @property
    def deadline_hit(self) -> bool:
        return self.monitor.hit_any_deadline

    async def _fetch_voices(self) -> VoiceListing:
        raw = await self.client.fetch_voices()
        return VoiceListing(raw=raw, voices=tuple(normalize_voice_payload(raw)))

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        if self.config.health_check:
            status = await self.client.health()
            if status is not HealthStatus.HEALTHY:
                raise BackendUnavailableError(
                    f"Gwent daemon is unavailable (health check failed at {self.config.daemon.base_url})",
                    mode=self.mode,
                )

        fmt = request.output_format
        async with self.monitor.watch("synthesize"):
            audio, content_type = await self.client.synthesize(
                text=request.text,
                voice=request.voice,
                speaking_rate=request.speaking_rate,
                audio_format=fmt.value,
                max_length=request.max_length,
            )
        return SynthesisResult(audio=audio, content_type=content_type or fmt.content_type)

    async def startup(self) -> None:
        """
        Probe the daemon and compare its voices with ``expected_voices``.

        Every problem is logged as a warning; startup never fails here.
        """
        status = await self.client.health()
        if status is not HealthStatus.HEALTHY:
            warn(self.logger, "daemon_probe_unhealthy", url=self.config.daemon.base_url)
            return
        success(self.logger, "daemon_probe_healthy", url=self.config.daemon.base_url)

        if not self.config.expected_voices:
            return
        try:
            daemon_ids = {v.id for v in await self.client.list_voices()}
        except AdapterError as exc:
            warn(self.logger, "daemon_probe_voices_failed", error=exc.message)
            return

        expected = set(self.config.expected_voices)
        missing = sorted(expected - daemon_ids)
        extra = sorted(daemon_ids - expected)
        if missing:
            warn(self.logger, "daemon_voices_missing", voices=missing)
        if extra:
            warn(self.logger, "daemon_voices_extra", voices=extra)
        if not missing and not extra:
            info(self.logger, "daemon_voices_match", count=len(expected))

    async def aclose(self) -> None:
        await self.client.aclose()

    def status(self) -> dict:
        return {
            "deadline_hit": self.deadline_hit,
            "permits": self.client.permits.stats().to_dict(),
        }
