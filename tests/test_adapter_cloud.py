"""
Tests for the cloud adapters (gtts, gcloud, polly).

The SDK clients are replaced with fakes, so no network access or
credentials are needed. The SDK exception classes are still real, so
each class skips when its SDK is not installed.
"""
from __future__ import annotations

import asyncio
import io
from types import SimpleNamespace

import pytest

from tts_service.core.config import GcloudConfig, GttsConfig, PollyConfig
from tts_service.tts.adapter import AudioFormat, SynthesisRequest
from tts_service.tts.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    MalformedResponseError,
    RateLimitError,
    TransportError,
    VoiceNotFoundError,
)


def _request(voice, fmt, rate=1.0, text="Hello there") -> SynthesisRequest:
    return SynthesisRequest(text=text, voice=voice, speaking_rate=rate, output_format=fmt)


# =============================================================================
# gTTS
# =============================================================================


class TestGttsAdapter:
    @pytest.fixture
    def adapter(self):
        pytest.importorskip("gtts")
        from tts_service.tts.adapters.gtts_adapter import GttsAdapter

        return GttsAdapter(GttsConfig(voices_ttl_s=0))

    def test_capabilities(self, adapter):
        caps = adapter.capabilities()
        assert caps.formats == (AudioFormat.MP3,)
        assert caps.rate_range.min == 0.0
        assert caps.rate_range.max is None

    def test_voices_from_language_table(self, adapter, monkeypatch):
        monkeypatch.setattr(adapter, "_languages", lambda: {"en": "English", "tr": "Turkish"})

        assert [v.id for v in asyncio.run(adapter.list_voices())] == ["en", "tr"]
        assert asyncio.run(adapter.list_raw_voices()) == {"en": "English", "tr": "Turkish"}

    @pytest.mark.parametrize("rate, slow", [(0.5, True), (0.99, True), (1.0, False), (3.0, False)])
    def test_slow_below_normal_rate(self, adapter, monkeypatch, rate, slow):
        seen = {}

        def fake_render(text, lang, is_slow):
            seen["args"] = (text, lang, is_slow)
            return b"ID3-mp3"

        monkeypatch.setattr(adapter, "_render", fake_render)
        result = asyncio.run(adapter.synthesize(_request("en", AudioFormat.MP3, rate=rate)))

        assert result.content_type == "audio/mpeg"
        assert seen["args"] == ("Hello there", "en", slow)

    def test_rate_limit(self, adapter, monkeypatch):
        from gtts.tts import gTTSError

        def fake_render(text, lang, is_slow):
            raise gTTSError("429 (Too Many Requests) from TTS API. Probable cause: Unknown")

        monkeypatch.setattr(adapter, "_render", fake_render)
        with pytest.raises(RateLimitError):
            asyncio.run(adapter.synthesize(_request("en", AudioFormat.MP3)))

    def test_other_upstream_failure(self, adapter, monkeypatch):
        from gtts.tts import gTTSError

        def fake_render(text, lang, is_slow):
            raise gTTSError("Connection error during token calculation")

        monkeypatch.setattr(adapter, "_render", fake_render)
        with pytest.raises(TransportError):
            asyncio.run(adapter.synthesize(_request("en", AudioFormat.MP3)))

    def test_unknown_language(self, adapter, monkeypatch):
        def fake_render(text, lang, is_slow):
            raise ValueError(f"Language not supported: {lang}")

        monkeypatch.setattr(adapter, "_render", fake_render)
        with pytest.raises(VoiceNotFoundError):
            asyncio.run(adapter.synthesize(_request("xx", AudioFormat.MP3)))


# =============================================================================
# Google Cloud
# =============================================================================


class FakeGcloudClient:
    def __init__(self, audio=b"OggS-opus", error=None):
        self.audio = audio
        self.error = error
        self.requests = []

    def list_voices(self):
        if self.error:
            raise self.error
        return SimpleNamespace(voices=[
            SimpleNamespace(
                name="en-US-Standard-A",
                language_codes=["en-US"],
                ssml_gender=SimpleNamespace(name="MALE"),
                natural_sample_rate_hertz=24000,
            ),
            SimpleNamespace(
                name="de-DE-Wavenet-B",
                language_codes=["de-DE"],
                ssml_gender=SimpleNamespace(name="MALE"),
                natural_sample_rate_hertz=24000,
            ),
        ])

    def synthesize_speech(self, input, voice, audio_config):
        self.requests.append((input, voice, audio_config))
        if self.error:
            raise self.error
        return SimpleNamespace(audio_content=self.audio)


class TestGcloudAdapter:
    @pytest.fixture
    def make_adapter(self):
        pytest.importorskip("google.cloud.texttospeech")
        from tts_service.tts.adapters.gcloud_adapter import GcloudAdapter

        def make(client):
            adapter = GcloudAdapter(GcloudConfig(voices_ttl_s=0))
            adapter._client = client
            return adapter

        return make

    def test_language_code_for(self):
        from tts_service.tts.adapters.gcloud_adapter import language_code_for

        assert language_code_for("en-US-Standard-A") == "en-US"
        assert language_code_for("cmn-CN-Wavenet-A") == "cmn-CN"

    def test_capabilities(self, make_adapter):
        caps = make_adapter(FakeGcloudClient()).capabilities()
        assert caps.formats == (AudioFormat.OGG, AudioFormat.MP3, AudioFormat.WAV)
        assert caps.max_text_bytes == 5000
        assert caps.rate_range.min == 0.25
        assert caps.rate_range.max == 4.0

    def test_voices(self, make_adapter):
        adapter = make_adapter(FakeGcloudClient())
        voices = asyncio.run(adapter.list_voices())
        raw = asyncio.run(adapter.list_raw_voices())

        assert [v.id for v in voices] == ["en-US-Standard-A", "de-DE-Wavenet-B"]
        assert raw[0] == {
            "name": "en-US-Standard-A",
            "language_codes": ["en-US"],
            "ssml_gender": "MALE",
            "natural_sample_rate_hertz": 24000,
        }

    @pytest.mark.parametrize(
        "fmt, encoding, content_type",
        [
            (AudioFormat.OGG, "OGG_OPUS", "audio/ogg"),
            (AudioFormat.MP3, "MP3", "audio/mpeg"),
            (AudioFormat.WAV, "LINEAR16", "audio/wav"),
        ],
    )
    def test_synthesize_encoding(self, make_adapter, fmt, encoding, content_type):
        from google.cloud import texttospeech

        client = FakeGcloudClient()
        adapter = make_adapter(client)
        result = asyncio.run(adapter.synthesize(_request("en-US-Standard-A", fmt, rate=1.5)))

        assert result.content_type == content_type
        _, voice, audio_config = client.requests[0]
        assert voice.language_code == "en-US"
        assert voice.name == "en-US-Standard-A"
        assert audio_config.audio_encoding == getattr(texttospeech.AudioEncoding, encoding)
        assert audio_config.speaking_rate == 1.5

    def test_empty_audio_is_malformed(self, make_adapter):
        adapter = make_adapter(FakeGcloudClient(audio=b""))
        with pytest.raises(MalformedResponseError):
            asyncio.run(adapter.synthesize(_request("en-US-Standard-A", AudioFormat.OGG)))

    def test_error_reclassification(self, make_adapter):
        from google.api_core import exceptions as gexc

        cases = [
            (gexc.ResourceExhausted("quota exceeded"), RateLimitError),
            (gexc.InvalidArgument("Voice 'xx-XX-Foo' does not exist."), VoiceNotFoundError),
            (gexc.ServiceUnavailable("backend down"), BackendUnavailableError),
            (gexc.PermissionDenied("API disabled"), BackendUnavailableError),
            (gexc.InternalServerError("oops"), TransportError),
        ]
        for sdk_error, expected in cases:
            adapter = make_adapter(FakeGcloudClient(error=sdk_error))
            with pytest.raises(expected):
                asyncio.run(adapter.synthesize(_request("en-US-Standard-A", AudioFormat.OGG)))

    def test_voice_list_errors_reclassified(self, make_adapter):
        from google.api_core import exceptions as gexc

        adapter = make_adapter(FakeGcloudClient(error=gexc.ResourceExhausted("quota")))
        with pytest.raises(RateLimitError):
            asyncio.run(adapter.list_voices())


# =============================================================================
# Amazon Polly
# =============================================================================


class FakeStream(io.BytesIO):
    pass


class FakePaginator:
    def __init__(self, pages):
        self.pages = pages
        self.kwargs = None

    def paginate(self, **kwargs):
        self.kwargs = kwargs
        return iter(self.pages)


class FakePollyClient:
    def __init__(self, audio=b"OggS-vorbis", content_type="audio/ogg", error=None):
        self.audio = audio
        self.content_type = content_type
        self.error = error
        self.paginator = FakePaginator([
            {"Voices": [{"Id": "Brian", "Name": "Brian", "LanguageCode": "en-GB"}]},
            {"Voices": [{"Id": "Joanna", "Name": "Joanna", "LanguageCode": "en-US"}]},
        ])
        self.calls = []

    def get_paginator(self, name):
        assert name == "describe_voices"
        if self.error:
            raise self.error
        return self.paginator

    def synthesize_speech(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        response = {"AudioStream": FakeStream(self.audio)}
        if self.content_type:
            response["ContentType"] = self.content_type
        return response


class TestPollyAdapter:
    @pytest.fixture
    def make_adapter(self):
        pytest.importorskip("botocore")
        from tts_service.tts.adapters.polly_adapter import PollyAdapter

        def make(client, **config):
            adapter = PollyAdapter(PollyConfig(voices_ttl_s=0, **config))
            adapter._client = client
            return adapter

        return make

    def test_build_ssml(self):
        from tts_service.tts.adapters.polly_adapter import build_ssml

        assert build_ssml("Fish & chips <now>", 0.8) == (
            '<speak><prosody rate="80%">Fish &amp; chips &lt;now&gt;</prosody></speak>'
        )

    def test_capabilities(self, make_adapter):
        caps = make_adapter(FakePollyClient()).capabilities()
        assert caps.formats == (AudioFormat.OGG, AudioFormat.MP3)
        assert caps.rate_range.min == 0.2
        assert caps.rate_range.max == 2.0
        assert caps.max_text_length == 3000

    def test_voices_across_pages(self, make_adapter):
        client = FakePollyClient()
        adapter = make_adapter(client, engine="neural")

        voices = asyncio.run(adapter.list_voices())

        assert [v.id for v in voices] == ["Brian", "Joanna"]
        assert client.paginator.kwargs == {"Engine": "neural"}

    def test_synthesize_request(self, make_adapter):
        client = FakePollyClient()
        adapter = make_adapter(client)

        result = asyncio.run(adapter.synthesize(_request("Brian", AudioFormat.OGG, rate=1.5)))

        assert result.audio == b"OggS-vorbis"
        assert result.content_type == "audio/ogg"
        call = client.calls[0]
        assert call["OutputFormat"] == "ogg_vorbis"
        assert call["TextType"] == "ssml"
        assert call["VoiceId"] == "Brian"
        assert 'rate="150%"' in call["Text"]

    def test_content_type_fallback(self, make_adapter):
        adapter = make_adapter(FakePollyClient(audio=b"ID3", content_type=None))
        result = asyncio.run(adapter.synthesize(_request("Brian", AudioFormat.MP3)))
        assert result.content_type == "audio/mpeg"

    def test_error_reclassification(self, make_adapter):
        from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

        def client_error(code, message):
            return ClientError({"Error": {"Code": code, "Message": message}}, "SynthesizeSpeech")

        cases = [
            (client_error("ThrottlingException", "Rate exceeded"), RateLimitError),
            (client_error("InvalidParameterValue", "Voice Zed is not supported"), VoiceNotFoundError),
            (client_error("AccessDeniedException", "denied"), BackendUnavailableError),
            (client_error("TextLengthExceededException", "too long"), TransportError),
            (ReadTimeoutError(endpoint_url="https://polly.eu-west-2.amazonaws.com"), BackendTimeoutError),
            (EndpointConnectionError(endpoint_url="https://polly.eu-west-2.amazonaws.com"), BackendUnavailableError),
        ]
        for sdk_error, expected in cases:
            adapter = make_adapter(FakePollyClient(error=sdk_error))
            with pytest.raises(expected):
                asyncio.run(adapter.synthesize(_request("Brian", AudioFormat.OGG)))
