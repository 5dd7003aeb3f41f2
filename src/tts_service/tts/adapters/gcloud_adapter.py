"""
gcloud adapter: Google Cloud Text-to-Speech.

The client is created lazily, from a service-account file when
``credentials_path`` is set, otherwise from Application Default
Credentials. The SDK is blocking, so calls run in a worker thread.

Formats: ogg (OGG_OPUS, default), mp3 (MP3), wav (LINEAR16).
Google limits the input to 5000 bytes.
"""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Optional

from tts_service.core.config import GcloudConfig
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
    BackendUnavailableError,
    MalformedResponseError,
    RateLimitError,
    TransportError,
    VoiceNotFoundError,
)

_ENCODINGS = {
    AudioFormat.OGG: "OGG_OPUS",
    AudioFormat.MP3: "MP3",
    AudioFormat.WAV: "LINEAR16",
}


def language_code_for(voice_name: str) -> str:
    """
    Language code embedded in a Google voice name.

    >>> language_code_for("en-US-Standard-A")
    'en-US'
    """
    return "-".join(voice_name.split("-")[:2])


class GcloudAdapter(BaseAdapter):
    mode = "gcloud"

    def __init__(self, config: GcloudConfig):
        super().__init__(voices_ttl_s=config.voices_ttl_s)
        self.config = config
        self._capabilities = Capabilities(
            rate_range=RateRange(0.25, 4.0),
            formats=(AudioFormat.OGG, AudioFormat.MP3, AudioFormat.WAV),
            default_format=AudioFormat.OGG,
            default_voice=config.default_voice,
            max_text_bytes=5000,
        )
        self._client: Any = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> Any:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._create_client()
        return self._client

    def _create_client(self) -> Any:
        from google.auth.exceptions import DefaultCredentialsError
        from google.cloud import texttospeech

        try:
            if self.config.credentials_path:
                from google.oauth2 import service_account

                credentials = service_account.Credentials.from_service_account_file(
                    self.config.credentials_path
                )
                client = texttospeech.TextToSpeechClient(credentials=credentials)
            else:
                client = texttospeech.TextToSpeechClient()
        except (DefaultCredentialsError, OSError, ValueError) as exc:
            raise BackendUnavailableError(
                f"Google Cloud TTS credentials unavailable: {exc}", mode=self.mode
            ) from exc
        info(self.logger, "gcloud_client_ready", credentials=self.config.credentials_path or "default")
        return client

    def _reclassify(self, exc: Exception, what: str) -> Exception:
        from google.api_core import exceptions as gexc

        message = f"Google Cloud TTS {what} failed: {exc}"
        if isinstance(exc, gexc.ResourceExhausted):
            return RateLimitError(message, mode=self.mode)
        if isinstance(exc, (gexc.NotFound, gexc.InvalidArgument)) and "voice" in str(exc).lower():
            return VoiceNotFoundError(message, mode=self.mode)
        if isinstance(exc, (gexc.ServiceUnavailable, gexc.Unauthenticated, gexc.PermissionDenied)):
            return BackendUnavailableError(message, mode=self.mode)
        return TransportError(message, mode=self.mode)

    def _list_voices_blocking(self) -> list:
        response = self._get_client().list_voices()
        raw = []
        for v in response.voices:
            gender = v.ssml_gender
            raw.append({
                "name": v.name,
                "language_codes": list(v.language_codes),
                "ssml_gender": getattr(gender, "name", str(gender)),
                "natural_sample_rate_hertz": v.natural_sample_rate_hertz,
            })
        return raw

    async def _fetch_voices(self) -> VoiceListing:
        from google.api_core.exceptions import GoogleAPICallError

        try:
            raw = await asyncio.to_thread(self._list_voices_blocking)
        except GoogleAPICallError as exc:
            raise self._reclassify(exc, "voice list") from exc
        return VoiceListing(raw=raw, voices=tuple(Voice(id=v["name"]) for v in raw))

    def _synthesize_blocking(self, request: SynthesisRequest) -> bytes:
        from google.cloud import texttospeech

        response = self._get_client().synthesize_speech(
            input=texttospeech.SynthesisInput(text=request.text),
            voice=texttospeech.VoiceSelectionParams(
                language_code=language_code_for(request.voice),
                name=request.voice,
            ),
            audio_config=texttospeech.AudioConfig(
                audio_encoding=getattr(texttospeech.AudioEncoding, _ENCODINGS[request.output_format]),
                speaking_rate=request.speaking_rate,
            ),
        )
        return response.audio_content

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        from google.api_core.exceptions import GoogleAPICallError

        try:
            audio = await asyncio.to_thread(self._synthesize_blocking, request)
        except GoogleAPICallError as exc:
            raise self._reclassify(exc, "synthesis") from exc

        if not audio:
            raise MalformedResponseError("Google Cloud TTS returned no audio", mode=self.mode)
        return SynthesisResult(audio=audio, content_type=request.output_format.content_type)

    async def aclose(self) -> None:
        client: Optional[Any] = self._client
        self._client = None
        transport = getattr(client, "transport", None)
        if transport is not None:
            transport.close()
