"""
Backend Adapter Implementations.

Available Adapters:
    - EspeakAdapter: local espeak-ng binary, WAV
    - GttsAdapter: Google Translate TTS (gTTS), MP3
    - GcloudAdapter: Google Cloud Text-to-Speech, OGG/MP3/WAV
    - PollyAdapter: Amazon Polly, OGG/MP3
    - GwentAdapter: co-located gwent daemon over HTTP, OGG/MP3

Lazy Loading:
    Adapter classes are imported on first access, and each adapter
    imports its SDK (gtts, google-cloud-texttospeech, boto3) only when it
    first talks to its backend. Disabled modes never import their SDK.

Usage:
    from tts_service.tts.adapters import EspeakAdapter

    adapter = EspeakAdapter(config.espeak)
    voices = await adapter.list_voices()
"""
from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = [
    "EspeakAdapter",
    "GttsAdapter",
    "GcloudAdapter",
    "PollyAdapter",
    "GwentAdapter",
]


def __getattr__(name: str):
    if name == "EspeakAdapter":
        from tts_service.tts.adapters.espeak_adapter import EspeakAdapter
        return EspeakAdapter
    if name == "GttsAdapter":
        from tts_service.tts.adapters.gtts_adapter import GttsAdapter
        return GttsAdapter
    if name == "GcloudAdapter":
        from tts_service.tts.adapters.gcloud_adapter import GcloudAdapter
        return GcloudAdapter
    if name == "PollyAdapter":
        from tts_service.tts.adapters.polly_adapter import PollyAdapter
        return PollyAdapter
    if name == "GwentAdapter":
        from tts_service.tts.adapters.gwent_adapter import GwentAdapter
        return GwentAdapter
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if TYPE_CHECKING:
    from tts_service.tts.adapters.espeak_adapter import EspeakAdapter
    from tts_service.tts.adapters.gcloud_adapter import GcloudAdapter
    from tts_service.tts.adapters.gtts_adapter import GttsAdapter
    from tts_service.tts.adapters.gwent_adapter import GwentAdapter
    from tts_service.tts.adapters.polly_adapter import PollyAdapter
