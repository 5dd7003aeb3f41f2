"""
tts-service: Multi-backend Text-to-Speech HTTP front door.

A single HTTP service that turns text into speech by delegating each request
to one of several interchangeable backends, selected with the ``mode`` query
parameter.

Supported Modes:
    - espeak: Local espeak-ng binary, WAV output
    - gtts: Google Translate TTS via the gTTS library, MP3 output
    - gcloud: Google Cloud Text-to-Speech, OGG/MP3/WAV output
    - polly: Amazon Polly, OGG/MP3 output
    - gwent: Co-located synthesis daemon over HTTP, OGG/MP3 output

Key Features:
    - One request contract (/tts, /voices, /modes) across all backends
    - Per-backend validation of voices, speaking rate and text length
    - Bounded concurrency and hard timeouts toward the gwent daemon
    - Stable numeric error codes (0-4) for programmatic handling
    - Optional shared-secret Authorization gate
    - Prometheus metrics and structured JSONL logging

Example Usage:
    >>> import asyncio
    >>> from tts_service.core.config import Settings, ServiceConfig
    >>> from tts_service.services import Dispatcher
    >>> from tts_service.tts.registry import build_registry
    >>>
    >>> config = ServiceConfig.from_settings(Settings(raw={}))
    >>> dispatcher = Dispatcher(build_registry(config), auth_key=None)
    >>> result, status = asyncio.run(dispatcher.handle_tts(
    ...     {"text": "Hello", "lang": "en", "mode": "espeak"}
    ... ))
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
