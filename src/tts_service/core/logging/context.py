"""
Request context and logging configuration state.

The request id lives in a ContextVar so that every log line emitted while
handling one HTTP request, including lines from adapters awaiting the
daemon, carries the same id.

Environment Variables:
    - LOG_LEVEL / TTS_SERVICE_LOG_LEVEL: Log level (1-4 or a level name)
    - TTS_SERVICE_LOG_DIR: Directory for the JSONL log file
    - TTS_SERVICE_JSONL_FILE: JSONL filename
    - TTS_SERVICE_NO_COLOR / NO_COLOR: Disable ANSI colors
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, or "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from the settings file and environment.

    Priority (highest first): TTS_SERVICE_* variables, LOG_LEVEL,
    the ``logging`` section of the settings file, defaults.

    A settings file that cannot be read is ignored here; the service
    reports it properly when it loads its own configuration.
    """
    cfg: Dict[str, Any] = {}

    import yaml

    from tts_service.core.config import ConfigValidationError, load_settings

    try:
        settings = load_settings()
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError, ConfigValidationError) as exc:
        cfg["settings_error"] = str(exc)

    level = os.getenv("TTS_SERVICE_LOG_LEVEL") or os.getenv("LOG_LEVEL")
    if level:
        cfg["level"] = level
    if os.getenv("TTS_SERVICE_LOG_DIR"):
        cfg["log_dir"] = os.environ["TTS_SERVICE_LOG_DIR"]
    if os.getenv("TTS_SERVICE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TTS_SERVICE_JSONL_FILE"]

    return cfg
