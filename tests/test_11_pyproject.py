"""Tests for pyproject.toml and package layout."""
from __future__ import annotations

from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]


class TestPackageLayout:
    def test_version_defined(self):
        import tts_service

        assert isinstance(tts_service.__version__, str)
        assert tts_service.__version__

    def test_core_modules_importable(self):
        from tts_service import cli, main
        from tts_service.api import routes, schemas
        from tts_service.core import config, logging, metrics
        from tts_service.services import dispatcher, validators
        from tts_service.tts import adapter, cache, concurrency, daemon_client, registry

        for module in (cli, main, routes, schemas, config, logging, metrics,
                       dispatcher, validators, adapter, cache, concurrency,
                       daemon_client, registry):
            assert module is not None


class TestPyproject:
    @pytest.fixture
    def pyproject(self):
        tomllib = pytest.importorskip("tomllib")
        return tomllib.loads((ROOT / "pyproject.toml").read_text(encoding="utf-8"))

    def test_metadata(self, pyproject):
        assert pyproject["project"]["name"] == "tts-service"
        assert pyproject["project"]["scripts"]["tts-service"] == "tts_service.cli:main"

    def test_version_matches_package(self, pyproject):
        import tts_service

        assert pyproject["project"]["version"] == tts_service.__version__

    def test_core_dependencies(self, pyproject):
        deps = " ".join(pyproject["project"]["dependencies"])
        for name in ("fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "prometheus-client"):
            assert name in deps

    def test_cloud_extra(self, pyproject):
        extra = " ".join(pyproject["project"]["optional-dependencies"]["cloud"])
        for name in ("gTTS", "google-cloud-texttospeech", "boto3"):
            assert name in extra
