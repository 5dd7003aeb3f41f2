"""
Backend Adapter Base Class and Entities.

This module provides:
    - Voice / VoiceListing: voice entities and the native listing payload
    - AudioFormat: output containers and their default content types
    - RateRange / Capabilities: what an adapter accepts
    - SynthesisRequest / SynthesisResult: one synthesis call
    - BaseAdapter: the contract every mode implements

Implementing a New Adapter:
    1. Create adapters/<mode>_adapter.py
    2. Inherit from BaseAdapter and set ``mode`` and ``_capabilities``
    3. Implement _fetch_voices() and synthesize()
    4. Register the mode in tts/registry.py
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple

from tts_service.core.logging import get_logger, verbose
from tts_service.core.metrics import metrics
from tts_service.tts.cache import TTLCache


@dataclass(frozen=True)
class Voice:
    """
    A voice offered by a backend.

    Attributes:
        id: Identifier passed as ``lang`` on /tts.
        name: Optional human-readable name.
    """
    id: str
    name: Optional[str] = None


@dataclass(frozen=True)
class VoiceListing:
    """
    A backend's voice list in both shapes.

    Attributes:
        raw: The backend's native payload, returned untouched for
            /voices?raw=true. Must be JSON-serializable.
        voices: The normalized voices, in backend order.
    """
    raw: Any
    voices: Tuple[Voice, ...]

    def ids(self) -> List[str]:
        return [v.id for v in self.voices]


class AudioFormat(str, Enum):
    OGG = "ogg"
    MP3 = "mp3"
    WAV = "wav"

    @property
    def content_type(self) -> str:
        return _CONTENT_TYPES[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["AudioFormat"]:
        """Case-insensitive lookup; None for absent or unknown values."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_CONTENT_TYPES = {
    AudioFormat.OGG: "audio/ogg",
    AudioFormat.MP3: "audio/mpeg",
    AudioFormat.WAV: "audio/wav",
}


@dataclass(frozen=True)
class RateRange:
    """Inclusive speaking-rate bounds; ``max`` of None means unbounded."""
    min: float
    max: Optional[float] = None

    def contains(self, rate: float) -> bool:
        if rate < self.min:
            return False
        return self.max is None or rate <= self.max


@dataclass(frozen=True)
class Capabilities:
    """
    Static descriptor of what an adapter accepts.

    Attributes:
        rate_range: Valid speaking_rate bounds.
        formats: Supported output formats.
        default_format: Used when the caller's preference is absent or
            unsupported.
        default_rate: Used when the caller sends no speaking_rate.
        default_voice: Used when the caller sends no lang.
        max_text_length: Backend hard limit on text length in characters.
        max_text_bytes: Backend hard limit on UTF-8 encoded text size.
    """
    rate_range: RateRange
    formats: Tuple[AudioFormat, ...]
    default_format: AudioFormat
    default_rate: float = 1.0
    default_voice: Optional[str] = None
    max_text_length: Optional[int] = None
    max_text_bytes: Optional[int] = None

    def supports(self, fmt: AudioFormat) -> bool:
        return fmt in self.formats


@dataclass(frozen=True)
class SynthesisRequest:
    """
    A validated synthesis request. Built by the validator, never mutated.

    Attributes:
        text: Non-empty text to speak.
        voice: Voice id, known to be in the adapter's voice list.
        speaking_rate: Rate within the adapter's bounds.
        max_length: Caller's cap on text length, forwarded where the
            backend accepts it.
        preferred_format: The caller's raw format hint.
        output_format: Format the adapter must produce.
    """
    text: str
    voice: str
    speaking_rate: float
    output_format: AudioFormat
    max_length: Optional[int] = None
    preferred_format: Optional[str] = None


@dataclass
class SynthesisResult:
    """
    Synthesized audio.

    Attributes:
        audio: Raw audio bytes in the container named by content_type.
        content_type: MIME type sent back to the client.
    """
    audio: bytes
    content_type: str


class BaseAdapter:
    """
    Abstract base class for backend adapters.

    Subclasses implement:
        - _fetch_voices(): fetch the voice list from the backend
        - synthesize(): produce audio for a validated request

    Voice lists are cached per adapter for ``voices_ttl_s`` seconds
    (0 disables caching). All methods are safe to call concurrently.

    Example:
        class MyAdapter(BaseAdapter):
            mode = "mine"
            _capabilities = Capabilities(
                rate_range=RateRange(0.5, 2.0),
                formats=(AudioFormat.MP3,),
                default_format=AudioFormat.MP3,
            )

            async def _fetch_voices(self):
                return VoiceListing(raw=["a"], voices=(Voice("a"),))

            async def synthesize(self, request):
                return SynthesisResult(audio=b"...", content_type="audio/mpeg")
    """
    mode: str = "base"
    _capabilities: Capabilities

    def __init__(self, voices_ttl_s: float = 0.0):
        self.logger = get_logger(f"tts-service.adapter.{self.mode}")
        self._voice_cache: TTLCache[VoiceListing] = TTLCache(
            ttl_seconds=voices_ttl_s, max_items=1, name=f"{self.mode}.voices"
        )

    def capabilities(self) -> Capabilities:
        return self._capabilities

    def negotiate_format(self, preferred: Optional[str]) -> AudioFormat:
        """
        Pick the output format for a caller's preference.

        Unsupported or unknown preferences silently fall back to the
        default format; callers may probe formats speculatively.
        """
        caps = self.capabilities()
        fmt = AudioFormat.parse(preferred)
        if fmt is not None and caps.supports(fmt):
            return fmt
        if preferred:
            verbose(self.logger, "format_fallback", mode=self.mode, preferred=preferred,
                    used=caps.default_format.value)
        return caps.default_format

    async def voice_listing(self) -> VoiceListing:
        listing = self._voice_cache.get("voices")
        if listing is not None:
            metrics.record_voice_cache(self.mode, "hit")
            return listing
        metrics.record_voice_cache(self.mode, "miss")
        listing = await self._fetch_voices()
        self._voice_cache.set("voices", listing)
        verbose(self.logger, "voices_fetched", mode=self.mode, count=len(listing.voices))
        return listing

    async def list_voices(self) -> List[Voice]:
        return list((await self.voice_listing()).voices)

    async def list_raw_voices(self) -> Any:
        """Voice list in the backend's native shape."""
        return (await self.voice_listing()).raw

    async def _fetch_voices(self) -> VoiceListing:
        raise NotImplementedError

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        """
        Synthesize a validated request.

        Raises:
            AdapterError: Any backend failure, already reclassified.
        """
        raise NotImplementedError

    async def startup(self) -> None:
        """Called once when the service starts. Must not raise."""

    async def aclose(self) -> None:
        """Release clients, connections and subprocess resources."""

    def status(self) -> dict:
        """Extra adapter state reported by /health."""
        return {}
