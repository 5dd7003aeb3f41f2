"""
HTTP client for the co-located gwent synthesis daemon.

Guarantees:
    - At most ``max_concurrency`` voice/synthesis calls in flight (PermitPool)
    - A connect timeout on the transport, and a hard request timeout
      around the whole exchange including the body read
    - A single attempt per call; nothing is retried here

Failure classification:
    connect refused / DNS failure      -> BackendUnavailableError
    connect or request timeout         -> BackendTimeoutError
    no permit (queue full / wait)      -> BackendBusyError
    non-2xx response                   -> TransportError (status + body)
    other transport failure            -> TransportError
    unusable JSON / empty audio        -> MalformedResponseError

Daemon protocol:
    GET  {health_path}  -> 200 when healthy
    GET  {voices_path}  -> ["id", ...] or [{"id": ..., "name": ...}, ...]
    POST {tts_path}     -> raw audio bytes, Content-Type optional
        {"text", "voice", "speaking_rate", "format": "ogg"|"mp3", "max_length"?}
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar

import httpx

from tts_service.core.config import DaemonConfig
from tts_service.core.logging import debug, get_logger, verbose, warn
from tts_service.core.metrics import metrics
from tts_service.tts.adapter import Voice
from tts_service.tts.concurrency import PermitPool
from tts_service.tts.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    MalformedResponseError,
    TransportError,
)

_LOG = get_logger("tts-service.daemon")

_MODE = "gwent"
_BODY_PREVIEW_CHARS = 500

T = TypeVar("T")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


def normalize_voice_payload(payload: Any) -> List[Voice]:
    """
    Normalize the daemon's /voices payload into Voice entities.

    Two shapes are accepted, item by item:
        - an object with a string ``id`` (and optional string ``name``)
        - a bare voice-id string

    Items matching neither shape are skipped.

    Raises:
        MalformedResponseError: If the payload is not a JSON array.
    """
    if not isinstance(payload, list):
        raise MalformedResponseError(
            f"Gwent daemon voices endpoint returned non-array payload ({type(payload).__name__})",
            mode=_MODE,
        )

    voices: List[Voice] = []
    for item in payload:
        if isinstance(item, dict) and isinstance(item.get("id"), str):
            name = item.get("name")
            voices.append(Voice(id=item["id"], name=name if isinstance(name, str) else None))
        elif isinstance(item, str):
            voices.append(Voice(id=item))
        else:
            debug(_LOG, "voice_item_skipped", item=repr(item)[:80])
    return voices


class DaemonClient:
    """
    Concurrency-bounded client for the gwent daemon.

    The underlying httpx.AsyncClient is created on first use so that a
    client built outside an event loop (e.g. at import time of the app)
    binds to the loop that actually serves requests.

    Args:
        config: Daemon connection settings.
        permits: Permit pool; built from ``config.max_concurrency`` when
            omitted (fail-fast, no wait queue).
        transport: Optional httpx transport, used by tests to simulate
            the daemon with httpx.MockTransport.
    """

    def __init__(
        self,
        config: DaemonConfig,
        permits: Optional[PermitPool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.permits = permits or PermitPool(
            max_permits=config.max_concurrency,
            name="gwent daemon",
            on_change=metrics.set_permits_in_use,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def endpoint_url(self, path: str) -> str:
        """Base URL with its path replaced by ``path``."""
        if not path.startswith("/"):
            path = f"/{path}"
        return str(httpx.URL(self.config.base_url).copy_with(path=path))

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self.config.request_timeout_s,
                    connect=self.config.connect_timeout_s,
                ),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _bounded(self, what: str, call: Awaitable[T]) -> T:
        """
        Await ``call`` under the hard request timeout, reclassifying
        transport failures.
        """
        timeout = self.config.request_timeout_s
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            raise BackendTimeoutError(
                f"Gwent daemon {what} timed out after {timeout:g}s", mode=_MODE
            ) from None
        except httpx.ConnectTimeout:
            raise BackendTimeoutError(
                f"Gwent daemon {what} could not connect within {self.config.connect_timeout_s:g}s",
                mode=_MODE,
            ) from None
        except httpx.TimeoutException:
            raise BackendTimeoutError(
                f"Gwent daemon {what} timed out after {timeout:g}s", mode=_MODE
            ) from None
        except httpx.ConnectError as exc:
            raise BackendUnavailableError(
                f"Gwent daemon is unavailable at {self.config.base_url}: {exc}", mode=_MODE
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Gwent daemon {what} failed: {exc}", mode=_MODE) from exc

    @staticmethod
    def _check_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        body = response.text[:_BODY_PREVIEW_CHARS]
        raise TransportError(
            f"Gwent daemon request failed ({response.status_code}): {body}",
            mode=_MODE,
            status_code=response.status_code,
            body=body,
        )

    async def health(self) -> HealthStatus:
        """
        Probe the daemon's health path once.

        Only HTTP 200 counts as healthy. Errors and timeouts count as
        unhealthy; nothing is raised. Does not take a permit.
        """
        url = self.endpoint_url(self.config.health_path)
        try:
            response = await self._bounded("health check", self._get_client().get(url))
        except (TransportError, BackendTimeoutError, BackendUnavailableError) as exc:
            warn(_LOG, "daemon_unhealthy", url=url, error=exc.message)
            metrics.set_daemon_healthy(False)
            return HealthStatus.UNHEALTHY

        if response.status_code != 200:
            warn(_LOG, "daemon_unhealthy", url=url, status=response.status_code)
            metrics.set_daemon_healthy(False)
            return HealthStatus.UNHEALTHY

        metrics.set_daemon_healthy(True)
        return HealthStatus.HEALTHY

    async def fetch_voices(self) -> Any:
        """
        Fetch the daemon's voice list, untouched.

        Raises:
            AdapterError subclasses, see module docstring.
        """
        url = self.endpoint_url(self.config.voices_path)
        async with self.permits.acquire():
            response = await self._bounded("voice list", self._get_client().get(url))
        self._check_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"Gwent daemon voices endpoint returned invalid JSON: {exc}", mode=_MODE
            ) from exc

    async def list_voices(self) -> List[Voice]:
        return normalize_voice_payload(await self.fetch_voices())

    async def synthesize(
        self,
        text: str,
        voice: str,
        speaking_rate: float,
        audio_format: str,
        max_length: Optional[int] = None,
    ) -> Tuple[bytes, Optional[str]]:
        """
        Ask the daemon to synthesize ``text``.

        Returns:
            Tuple of (audio bytes, Content-Type header or None).

        Raises:
            AdapterError subclasses, see module docstring.
        """
        payload = {
            "text": text,
            "voice": voice,
            "speaking_rate": speaking_rate,
            "format": audio_format,
        }
        if max_length is not None:
            payload["max_length"] = max_length

        url = self.endpoint_url(self.config.tts_path)
        async with self.permits.acquire():
            verbose(_LOG, "daemon_tts", voice=voice, format=audio_format, chars=len(text))
            response = await self._bounded("synthesis", self._get_client().post(url, json=payload))
        self._check_status(response)

        if not response.content:
            raise MalformedResponseError("Gwent daemon returned an empty audio body", mode=_MODE)
        return response.content, response.headers.get("content-type")
