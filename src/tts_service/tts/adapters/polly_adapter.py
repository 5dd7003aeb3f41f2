"""
polly adapter: Amazon Polly through boto3.

The speaking rate is applied with SSML ``<prosody rate="N%">`` (Polly
accepts 20% to 200%). Voices come from the paginated ``describe_voices``
call filtered by the configured engine.

Formats: ogg (ogg_vorbis, default), mp3.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, List
from xml.sax.saxutils import escape

from tts_service.core.config import PollyConfig
from tts_service.core.logging import info
from tts_service.tts.adapter import (
    AudioFormat,
    BaseAdapter,
    Capabilities,
    RateRange,
    SynthesisRequest,
    SynthesisResult,
    Voice,
    VoiceListing,
)
from tts_service.tts.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    MalformedResponseError,
    RateLimitError,
    TransportError,
    VoiceNotFoundError,
)

_OUTPUT_FORMATS = {
    AudioFormat.OGG: "ogg_vorbis",
    AudioFormat.MP3: "mp3",
}

_THROTTLING_CODES = {"ThrottlingException", "TooManyRequestsException", "ServiceQuotaExceededException"}


def build_ssml(text: str, speaking_rate: float) -> str:
    """
    Wrap text in SSML with a prosody rate.

    >>> build_ssml("Fish & chips", 1.5)
    '<speak><prosody rate="150%">Fish &amp; chips</prosody></speak>'
    """
    percent = int(round(speaking_rate * 100))
    return f'<speak><prosody rate="{percent}%">{escape(text)}</prosody></speak>'


class PollyAdapter(BaseAdapter):
    mode = "polly"

    def __init__(self, config: PollyConfig):
        super().__init__(voices_ttl_s=config.voices_ttl_s)
        self.config = config
        self._capabilities = Capabilities(
            rate_range=RateRange(0.2, 2.0),
            formats=(AudioFormat.OGG, AudioFormat.MP3),
            default_format=AudioFormat.OGG,
            default_voice=config.default_voice,
            max_text_length=3000,
        )
        self._client: Any = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> Any:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    import boto3

                    self._client = boto3.client(
                        "polly",
                        region_name=self.config.region,
                        aws_access_key_id=self.config.access_key_id,
                        aws_secret_access_key=self.config.secret_access_key,
                    )
                    info(self.logger, "polly_client_ready", region=self.config.region)
        return self._client

    def _reclassify(self, exc: Exception, what: str) -> Exception:
        from botocore import exceptions as bexc

        message = f"Amazon Polly {what} failed: {exc}"
        if isinstance(exc, bexc.ClientError):
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _THROTTLING_CODES:
                return RateLimitError(message, mode=self.mode)
            if code in ("InvalidParameterValue", "ValidationException") and "voice" in str(exc).lower():
                return VoiceNotFoundError(message, mode=self.mode)
            if code in ("ServiceFailureException", "UnrecognizedClientException", "AccessDeniedException"):
                return BackendUnavailableError(message, mode=self.mode)
            return TransportError(message, mode=self.mode)
        if isinstance(exc, (bexc.ConnectTimeoutError, bexc.ReadTimeoutError)):
            return BackendTimeoutError(message, mode=self.mode)
        if isinstance(exc, (bexc.NoCredentialsError, bexc.EndpointConnectionError)):
            return BackendUnavailableError(message, mode=self.mode)
        return TransportError(message, mode=self.mode)

    def _describe_voices_blocking(self) -> List[Dict[str, Any]]:
        paginator = self._get_client().get_paginator("describe_voices")
        raw: List[Dict[str, Any]] = []
        for page in paginator.paginate(Engine=self.config.engine):
            raw.extend(page.get("Voices", []))
        return raw

    async def _fetch_voices(self) -> VoiceListing:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            raw = await asyncio.to_thread(self._describe_voices_blocking)
        except (BotoCoreError, ClientError) as exc:
            raise self._reclassify(exc, "voice list") from exc
        voices = tuple(Voice(id=v["Id"], name=v.get("Name")) for v in raw if "Id" in v)
        return VoiceListing(raw=raw, voices=voices)

    def _synthesize_blocking(self, request: SynthesisRequest) -> tuple[bytes, str]:
        response = self._get_client().synthesize_speech(
            Engine=self.config.engine,
            OutputFormat=_OUTPUT_FORMATS[request.output_format],
            Text=build_ssml(request.text, request.speaking_rate),
            TextType="ssml",
            VoiceId=request.voice,
        )
        stream = response["AudioStream"]
        try:
            audio = stream.read()
        finally:
            stream.close()
        return audio, response.get("ContentType") or request.output_format.content_type

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            audio, content_type = await asyncio.to_thread(self._synthesize_blocking, request)
        except (BotoCoreError, ClientError) as exc:
            raise self._reclassify(exc, "synthesis") from exc

        if not audio:
            raise MalformedResponseError("Amazon Polly returned no audio", mode=self.mode)
        return SynthesisResult(audio=audio, content_type=content_type)

    async def aclose(self) -> None:
        self._client = None
