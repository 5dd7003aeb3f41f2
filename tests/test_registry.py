"""Tests for the mode registry and the adapter factory."""
from __future__ import annotations

import asyncio

import pytest

from tts_service.core.config import ServiceConfig, Settings
from tts_service.tts.registry import Mode, ModeRegistry, build_registry

from conftest import FakeAdapter


class TestModeRegistry:
    def test_resolve_and_order(self):
        registry = ModeRegistry([FakeAdapter("b"), FakeAdapter("a"), FakeAdapter("c")])
        assert registry.list_modes() == ["b", "a", "c"]
        assert registry.resolve("a").mode == "a"
        assert len(registry) == 3
        assert "c" in registry

    def test_resolve_normalizes_case_and_whitespace(self):
        registry = ModeRegistry([FakeAdapter("gwent")])
        assert registry.resolve(" GWENT ").mode == "gwent"

    @pytest.mark.parametrize("mode", [None, "", "festival"])
    def test_resolve_unknown(self, mode):
        assert ModeRegistry([FakeAdapter("espeak")]).resolve(mode) is None

    def test_duplicate_mode_rejected(self):
        with pytest.raises(ValueError, match="registered twice"):
            ModeRegistry([FakeAdapter("espeak"), FakeAdapter("espeak")])

    def test_startup_and_close_reach_every_adapter(self):
        adapters = [FakeAdapter("a"), FakeAdapter("b")]
        registry = ModeRegistry(adapters)

        asyncio.run(registry.startup())
        asyncio.run(registry.aclose())

        assert all(a.started and a.closed for a in adapters)


class TestBuildRegistry:
    def test_all_modes_in_configured_order(self):
        raw = {"server": {"modes": ["gwent", "polly", "gcloud", "gtts", "espeak"]}}
        registry = build_registry(ServiceConfig.from_settings(Settings(raw=raw)))

        assert registry.list_modes() == ["gwent", "polly", "gcloud", "gtts", "espeak"]
        assert type(registry.resolve("espeak")).__name__ == "EspeakAdapter"
        assert type(registry.resolve("gwent")).__name__ == "GwentAdapter"

    def test_subset_of_modes(self):
        raw = {"server": {"modes": ["espeak"]}}
        registry = build_registry(ServiceConfig.from_settings(Settings(raw=raw)))
        assert registry.list_modes() == ["espeak"]
        assert registry.resolve("gwent") is None

    def test_mode_enum_matches_known_modes(self):
        assert [m.value for m in Mode] == ["espeak", "gtts", "gcloud", "polly", "gwent"]

    def test_adapters_package_lazy_exports(self):
        from tts_service.tts import adapters

        assert adapters.PollyAdapter.mode == "polly"
        with pytest.raises(AttributeError):
            adapters.FestivalAdapter
