"""Shared fixtures: an in-memory adapter and registries built from it."""
from __future__ import annotations

from typing import Optional, Sequence

import pytest

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
from tts_service.tts.registry import ModeRegistry


class FakeAdapter(BaseAdapter):
    """Adapter that answers from memory and records every call."""

    def __init__(
        self,
        mode: str = "fake",
        voices: Sequence[str] = ("en", "de"),
        rate_range: RateRange = RateRange(0.5, 2.0),
        formats: Sequence[AudioFormat] = (AudioFormat.MP3, AudioFormat.OGG),
        default_format: AudioFormat = AudioFormat.MP3,
        default_voice: Optional[str] = None,
        max_text_length: Optional[int] = None,
        max_text_bytes: Optional[int] = None,
        audio: bytes = b"FAKE-AUDIO",
        error: Optional[Exception] = None,
        voices_error: Optional[Exception] = None,
        raw=None,
        voices_ttl_s: float = 0.0,
    ):
        self.mode = mode
        super().__init__(voices_ttl_s=voices_ttl_s)
        self._capabilities = Capabilities(
            rate_range=rate_range,
            formats=tuple(formats),
            default_format=default_format,
            default_voice=default_voice,
            max_text_length=max_text_length,
            max_text_bytes=max_text_bytes,
        )
        self._voice_ids = list(voices)
        self._raw = raw
        self.audio = audio
        self.error = error
        self.voices_error = voices_error
        self.calls = []
        self.voice_fetches = 0
        self.started = False
        self.closed = False

    async def _fetch_voices(self) -> VoiceListing:
        self.voice_fetches += 1
        if self.voices_error is not None:
            raise self.voices_error
        raw = self._raw if self._raw is not None else list(self._voice_ids)
        return VoiceListing(raw=raw, voices=tuple(Voice(id=v) for v in self._voice_ids))

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return SynthesisResult(audio=self.audio, content_type=request.output_format.content_type)

    async def startup(self) -> None:
        self.started = True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def local_adapter():
    """WAV-only adapter shaped like espeak."""
    return FakeAdapter(
        mode="espeak",
        voices=("en", "en-gb", "de"),
        rate_range=RateRange(0.5, 4.0),
        formats=(AudioFormat.WAV,),
        default_format=AudioFormat.WAV,
        default_voice="en",
        audio=b"RIFF....WAVEfmt ",
    )


@pytest.fixture
def cloud_adapter():
    """OGG/MP3 adapter shaped like polly, with a character limit."""
    return FakeAdapter(
        mode="polly",
        voices=("Brian", "Joanna"),
        rate_range=RateRange(0.2, 2.0),
        formats=(AudioFormat.OGG, AudioFormat.MP3),
        default_format=AudioFormat.OGG,
        max_text_length=3000,
        audio=b"OggS-fake",
        raw=[{"Id": "Brian", "Name": "Brian"}, {"Id": "Joanna", "Name": "Joanna"}],
    )


@pytest.fixture
def registry(local_adapter, cloud_adapter):
    return ModeRegistry([local_adapter, cloud_adapter])
