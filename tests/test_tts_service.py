"""
Tests for the Dispatcher: auth gate, orchestration and error codes.

Every handler returns (payload, status) and never raises.
"""
from __future__ import annotations

import asyncio

import pytest

from tts_service.core.metrics import metrics
from tts_service.services.dispatcher import Dispatcher, get_dispatcher, parse_flag, reset_dispatcher
from tts_service.services.errors import ApiError, ErrorCode
from tts_service.tts.adapter import SynthesisResult
from tts_service.tts.errors import BackendUnavailableError, RateLimitError, VoiceNotFoundError
from tts_service.tts.registry import ModeRegistry

from conftest import FakeAdapter

SECRET = "s3cret-key"


def _tts(dispatcher, query, authorization=None):
    return asyncio.run(dispatcher.handle_tts(query, authorization=authorization))


class TestParseFlag:
    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", "on", " true "])
    def test_truthy(self, value):
        assert parse_flag(value) is True

    @pytest.mark.parametrize("value", [None, "", "false", "0", "no", "raw"])
    def test_falsy(self, value):
        assert parse_flag(value) is False


class TestAuthGate:
    def test_disabled_without_key(self, registry):
        assert Dispatcher(registry).auth_enabled is False
        assert Dispatcher(registry, auth_key="").auth_enabled is False

    @pytest.mark.parametrize("header", [None, "", "wrong", SECRET + " ", "Bearer " + SECRET])
    def test_wrong_or_missing_header_is_code_4(self, registry, header):
        result, status = _tts(Dispatcher(registry, auth_key=SECRET), {"text": "Hi", "mode": "espeak"}, header)

        assert isinstance(result, ApiError)
        assert result.code == ErrorCode.AUTH_MISSING
        assert status == 403

    def test_gate_runs_before_validation(self, registry, local_adapter):
        """Even a garbage query gets code 4 when the header is wrong."""
        result, status = _tts(Dispatcher(registry, auth_key=SECRET), {"speaking_rate": "zzz"}, None)

        assert result.code == ErrorCode.AUTH_MISSING
        assert local_adapter.voice_fetches == 0

    def test_exact_header_passes(self, registry):
        result, status = _tts(Dispatcher(registry, auth_key=SECRET), {"text": "Hi", "mode": "espeak"}, SECRET)
        assert status == 200
        assert isinstance(result, SynthesisResult)

    def test_gate_covers_voices_and_modes(self, registry):
        dispatcher = Dispatcher(registry, auth_key=SECRET)

        voices, voices_status = asyncio.run(dispatcher.handle_voices("espeak"))
        modes, modes_status = asyncio.run(dispatcher.handle_modes())

        assert (voices.code, voices_status) == (ErrorCode.AUTH_MISSING, 403)
        assert (modes.code, modes_status) == (ErrorCode.AUTH_MISSING, 403)


class TestHandleTTS:
    def test_success(self, registry, local_adapter):
        result, status = _tts(Dispatcher(registry), {"text": "Hello", "lang": "en-gb", "mode": "espeak"})

        assert status == 200
        assert result.audio == local_adapter.audio
        assert result.content_type == "audio/wav"
        assert local_adapter.calls[0].voice == "en-gb"

    @pytest.mark.parametrize(
        "query, code",
        [
            ({"mode": "espeak"}, 0),
            ({"text": "Hi", "mode": "festival"}, 0),
            ({"text": "Hi", "lang": "xx", "mode": "espeak"}, 1),
            ({"text": "Hello", "mode": "espeak", "max_length": "2"}, 2),
            ({"text": "Hi", "mode": "espeak", "speaking_rate": "0.1"}, 3),
        ],
    )
    def test_validation_codes(self, registry, local_adapter, query, code):
        result, status = _tts(Dispatcher(registry), query)

        assert result.code == code
        assert status == 400
        assert local_adapter.calls == []

    def test_trailing_whitespace_counts_toward_max_length(self, registry, local_adapter):
        result, status = _tts(
            Dispatcher(registry), {"text": "Hello   ", "lang": "en", "mode": "espeak", "max_length": "5"}
        )

        assert (result.code, status) == (ErrorCode.MAX_LENGTH_EXCEEDED, 400)
        assert local_adapter.calls == []

    def test_text_reaches_adapter_unchanged(self, registry, local_adapter):
        _, status = _tts(Dispatcher(registry), {"text": "  Hello  ", "lang": "en", "mode": "espeak"})

        assert status == 200
        assert local_adapter.calls[0].text == "  Hello  "

    def test_late_voice_rejection_is_code_1(self):
        adapter = FakeAdapter(mode="polly", error=VoiceNotFoundError("Voice en is not supported", mode="polly"))
        result, status = _tts(Dispatcher(ModeRegistry([adapter])), {"text": "Hi", "lang": "en", "mode": "polly"})

        assert (result.code, status) == (ErrorCode.UNKNOWN_VOICE, 400)

    @pytest.mark.parametrize(
        "error, status",
        [
            (RateLimitError("quota"), 429),
            (BackendUnavailableError("Gwent daemon is unavailable"), 503),
            (RuntimeError("bug"), 500),
        ],
    )
    def test_backend_failures(self, error, status):
        adapter = FakeAdapter(mode="gwent", error=error)
        result, got_status = _tts(Dispatcher(ModeRegistry([adapter])), {"text": "Hi", "lang": "en", "mode": "gwent"})

        assert result.code == ErrorCode.UNKNOWN
        assert got_status == status

    def test_metrics_recorded(self, registry):
        get = metrics.registry.get_sample_value
        labels = {"mode": "espeak", "status": "200"}
        before = get("tts_requests_total", labels) or 0.0
        errors_before = get("tts_errors_total", {"code": "1"}) or 0.0

        dispatcher = Dispatcher(registry)
        _tts(dispatcher, {"text": "Hi", "lang": "en", "mode": "espeak"})
        _tts(dispatcher, {"text": "Hi", "lang": "xx", "mode": "espeak"})

        assert get("tts_requests_total", labels) == before + 1
        assert get("tts_errors_total", {"code": "1"}) == errors_before + 1


class TestHandleVoicesAndModes:
    def test_voice_ids(self, registry):
        result, status = asyncio.run(Dispatcher(registry).handle_voices("polly"))
        assert (result, status) == (["Brian", "Joanna"], 200)

    def test_raw_voices(self, registry, cloud_adapter):
        result, status = asyncio.run(Dispatcher(registry).handle_voices("polly", "true"))
        assert status == 200
        assert result == cloud_adapter._raw

    def test_unknown_mode(self, registry):
        result, status = asyncio.run(Dispatcher(registry).handle_voices("festival"))
        assert (result.code, status) == (ErrorCode.UNKNOWN, 400)
        assert result.display == "Unknown mode: festival"

    def test_voice_fetch_failure(self):
        adapter = FakeAdapter(mode="gwent", voices_error=BackendUnavailableError("down"))
        result, status = asyncio.run(Dispatcher(ModeRegistry([adapter])).handle_voices("gwent"))
        assert (result.code, status) == (ErrorCode.UNKNOWN, 503)

    def test_modes_in_registration_order(self, registry):
        assert asyncio.run(Dispatcher(registry).handle_modes()) == (["espeak", "polly"], 200)


class TestHealthInfo:
    def test_health_without_gwent(self, registry):
        health = Dispatcher(registry).health_info()
        assert health["ok"] is True
        assert health["modes"] == ["espeak", "polly"]
        assert health["deadline_hit"] is False
        assert health["daemon"] is None


class TestDispatcherSingleton:
    def test_get_and_reset(self):
        from tts_service.core.config import ServiceConfig, Settings

        reset_dispatcher()
        try:
            config = ServiceConfig.from_settings(Settings(raw={"server": {"modes": ["espeak"]}}))
            first = get_dispatcher(config)
            assert get_dispatcher() is first
            assert first.registry.list_modes() == ["espeak"]
        finally:
            reset_dispatcher()
