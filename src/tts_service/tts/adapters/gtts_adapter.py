"""
gtts adapter: Google Translate TTS through the ``gTTS`` library.

gTTS is blocking, so calls are offloaded to a worker thread. It only
knows two speeds: speaking rates below 1.0 select slow speech, anything
else is normal speed. Output is always MP3.
"""
from __future__ import annotations

import asyncio
import io

from tts_service.core.config import GttsConfig
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
    MalformedResponseError,
    RateLimitError,
    TransportError,
    VoiceNotFoundError,
)


class GttsAdapter(BaseAdapter):
    mode = "gtts"

    def __init__(self, config: GttsConfig):
        super().__init__(voices_ttl_s=config.voices_ttl_s)
        self.config = config
        self._capabilities = Capabilities(
            rate_range=RateRange(0.0, None),
            formats=(AudioFormat.MP3,),
            default_format=AudioFormat.MP3,
            default_voice=config.default_voice,
        )

    def _languages(self) -> dict:
        from gtts.lang import tts_langs

        return tts_langs()

    async def _fetch_voices(self) -> VoiceListing:
        langs = await asyncio.to_thread(self._languages)
        voices = tuple(Voice(id=code, name=name) for code, name in langs.items())
        return VoiceListing(raw=dict(langs), voices=voices)

    def _render(self, text: str, lang: str, slow: bool) -> bytes:
        from gtts import gTTS

        fp = io.BytesIO()
        gTTS(text=text, lang=lang, slow=slow, tld=self.config.tld).write_to_fp(fp)
        return fp.getvalue()

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        from gtts.tts import gTTSError

        try:
            audio = await asyncio.to_thread(
                self._render, request.text, request.voice, request.speaking_rate < 1.0
            )
        except ValueError as exc:
            # gTTS checks the language before any network call
            raise VoiceNotFoundError(str(exc), mode=self.mode) from exc
        except gTTSError as exc:
            message = str(exc)
            if "429" in message:
                raise RateLimitError(f"Google Translate TTS rate limit: {message}", mode=self.mode) from exc
            raise TransportError(f"Google Translate TTS failed: {message}", mode=self.mode) from exc

        if not audio:
            raise MalformedResponseError("Google Translate TTS returned no audio", mode=self.mode)
        return SynthesisResult(audio=audio, content_type=AudioFormat.MP3.content_type)
