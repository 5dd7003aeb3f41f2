"""
Configuration Management for tts-service.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects, one per backend
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (AUTH_KEY, GWENT_DAEMON_URL, LOG_LEVEL, etc.)
    2. YAML config file (config/settings.yaml, or $TTS_SERVICE_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    server:
      bind_addr: 0.0.0.0:3000
      modes: [espeak, gtts, gwent]

    gwent:
      daemon_url: http://127.0.0.1:9000
      connect_timeout_ms: 500
      request_timeout_ms: 10000
      max_concurrency: 32

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Server: Bind address and enabled modes
        - Logging: Log level
        - eSpeak: Local binary settings
        - gTTS / Google Cloud / Polly: Cloud backend settings
        - Gwent: Daemon connection, concurrency and timeouts
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_BIND_ADDR = "0.0.0.0:3000"
    SERVER_MODES = ("espeak", "gtts", "gcloud", "polly", "gwent")

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG

    # ─────────────────────────────────────────────────────────────────────────
    # eSpeak
    # ─────────────────────────────────────────────────────────────────────────
    ESPEAK_BINARY = "espeak-ng"
    ESPEAK_DEFAULT_VOICE = "en"
    ESPEAK_BASE_WPM = 175               # espeak-ng words per minute at rate 1.0
    ESPEAK_TIMEOUT_S = 15.0
    ESPEAK_VOICES_TTL_S = 86400.0       # Installed voices rarely change

    # ─────────────────────────────────────────────────────────────────────────
    # gTTS
    # ─────────────────────────────────────────────────────────────────────────
    GTTS_TLD = "com"
    GTTS_DEFAULT_VOICE = "en"
    GTTS_VOICES_TTL_S = 86400.0

    # ─────────────────────────────────────────────────────────────────────────
    # Google Cloud TTS
    # ─────────────────────────────────────────────────────────────────────────
    GCLOUD_DEFAULT_VOICE = "en-US-Standard-A"
    GCLOUD_VOICES_TTL_S = 3600.0

    # ─────────────────────────────────────────────────────────────────────────
    # Amazon Polly
    # ─────────────────────────────────────────────────────────────────────────
    POLLY_REGION = "eu-west-2"
    POLLY_ENGINE = "standard"
    POLLY_DEFAULT_VOICE = "Brian"
    POLLY_VOICES_TTL_S = 3600.0

    # ─────────────────────────────────────────────────────────────────────────
    # Gwent daemon
    # ─────────────────────────────────────────────────────────────────────────
    GWENT_DAEMON_URL = "http://127.0.0.1:9000"
    GWENT_CONNECT_TIMEOUT_MS = 500
    GWENT_REQUEST_TIMEOUT_MS = 10_000
    GWENT_MAX_CONCURRENCY = 32
    GWENT_HEALTH_PATH = "/health"
    GWENT_VOICES_PATH = "/voices"
    GWENT_TTS_PATH = "/tts"
    GWENT_HEALTH_CHECK = True           # Probe health before each synthesis
    GWENT_MAX_QUEUE = 64                # Callers allowed to wait for a permit
    GWENT_ACQUIRE_TIMEOUT_S = 5.0       # Max wait for a permit
    GWENT_VOICES_TTL_S = 0.0            # 0 = fetch from the daemon every time
    GWENT_SLOW_CALL_WARN_S = 4.0


def _normalize_path(path: str) -> str:
    """Daemon paths always start with a slash."""
    path = str(path)
    return path if path.startswith("/") else f"/{path}"


@dataclass(frozen=True)
class ServerConfig:
    """
    HTTP server configuration.

    ``auth_key`` is compared verbatim with the Authorization header. When it
    is None the auth gate is disabled entirely.
    """
    bind_addr: str = Defaults.SERVER_BIND_ADDR
    auth_key: Optional[str] = None
    modes: Tuple[str, ...] = Defaults.SERVER_MODES

    @property
    def host(self) -> str:
        return self.bind_addr.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        return int(self.bind_addr.rsplit(":", 1)[1])


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle (default)
        3 = VERBOSE: Per-stage timing, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    level: int = Defaults.LOGGING_LEVEL


@dataclass(frozen=True)
class EspeakConfig:
    binary: str = Defaults.ESPEAK_BINARY
    default_voice: str = Defaults.ESPEAK_DEFAULT_VOICE
    base_wpm: int = Defaults.ESPEAK_BASE_WPM
    timeout_s: float = Defaults.ESPEAK_TIMEOUT_S
    voices_ttl_s: float = Defaults.ESPEAK_VOICES_TTL_S


@dataclass(frozen=True)
class GttsConfig:
    tld: str = Defaults.GTTS_TLD
    default_voice: str = Defaults.GTTS_DEFAULT_VOICE
    voices_ttl_s: float = Defaults.GTTS_VOICES_TTL_S


@dataclass(frozen=True)
class GcloudConfig:
    """
    Google Cloud TTS configuration.

    ``credentials_path`` points to a service-account JSON file. When unset,
    the client falls back to Application Default Credentials.
    """
    credentials_path: Optional[str] = None
    default_voice: str = Defaults.GCLOUD_DEFAULT_VOICE
    voices_ttl_s: float = Defaults.GCLOUD_VOICES_TTL_S


@dataclass(frozen=True)
class PollyConfig:
    """
    Amazon Polly configuration.

    Access keys are optional; boto3's default credential chain is used
    when they are not given.
    """
    region: str = Defaults.POLLY_REGION
    engine: str = Defaults.POLLY_ENGINE
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    default_voice: str = Defaults.POLLY_DEFAULT_VOICE
    voices_ttl_s: float = Defaults.POLLY_VOICES_TTL_S


@dataclass(frozen=True)
class DaemonConfig:
    """
    Connection settings for the gwent synthesis daemon.

    Loaded once at startup and shared read-only by every daemon call.
    Timeouts are stored in seconds.
    """
    base_url: str = Defaults.GWENT_DAEMON_URL
    connect_timeout_s: float = Defaults.GWENT_CONNECT_TIMEOUT_MS / 1000
    request_timeout_s: float = Defaults.GWENT_REQUEST_TIMEOUT_MS / 1000
    max_concurrency: int = Defaults.GWENT_MAX_CONCURRENCY
    health_path: str = Defaults.GWENT_HEALTH_PATH
    voices_path: str = Defaults.GWENT_VOICES_PATH
    tts_path: str = Defaults.GWENT_TTS_PATH


@dataclass(frozen=True)
class GwentConfig:
    """
    Gwent adapter configuration.

    Wraps the DaemonConfig with the adapter-level policy: health probing,
    the permit wait queue, voice caching and slow-call warnings.
    """
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    health_check: bool = Defaults.GWENT_HEALTH_CHECK
    max_queue: int = Defaults.GWENT_MAX_QUEUE
    acquire_timeout_s: float = Defaults.GWENT_ACQUIRE_TIMEOUT_S
    voices_ttl_s: float = Defaults.GWENT_VOICES_TTL_S
    default_voice: Optional[str] = None
    expected_voices: Tuple[str, ...] = ()
    slow_call_warn_s: float = Defaults.GWENT_SLOW_CALL_WARN_S


@dataclass(frozen=True)
class ServiceConfig:
    """
    Validated configuration for the whole service.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.gwent.daemon.max_concurrency)
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    espeak: EspeakConfig = field(default_factory=EspeakConfig)
    gtts: GttsConfig = field(default_factory=GttsConfig)
    gcloud: GcloudConfig = field(default_factory=GcloudConfig)
    polly: PollyConfig = field(default_factory=PollyConfig)
    gwent: GwentConfig = field(default_factory=GwentConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Reads the raw configuration dictionary, applies defaults for missing
        values, validates constraints, and returns typed configuration.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Server configuration
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        auth_key = server_raw.get("auth_key")
        modes = tuple(str(m).strip().lower() for m in server_raw.get("modes", Defaults.SERVER_MODES))
        server = ServerConfig(
            bind_addr=str(server_raw.get("bind_addr", Defaults.SERVER_BIND_ADDR)),
            auth_key=str(auth_key) if auth_key else None,
            modes=modes,
        )
        cls._validate_bind_addr(server.bind_addr)
        if not server.modes:
            raise ConfigValidationError("server.modes must list at least one mode")
        unknown = [m for m in server.modes if m not in Defaults.SERVER_MODES]
        if unknown:
            raise ConfigValidationError(
                f"server.modes contains unknown modes {unknown}; known: {list(Defaults.SERVER_MODES)}"
            )
        if len(set(server.modes)) != len(server.modes):
            raise ConfigValidationError(f"server.modes contains duplicates: {list(server.modes)}")

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        from tts_service.core.logging.levels import coerce_level
        logging_cfg = LoggingConfig(
            level=int(coerce_level(logging_raw.get("level", Defaults.LOGGING_LEVEL))),
        )

        # ─────────────────────────────────────────────────────────────────────
        # eSpeak
        # ─────────────────────────────────────────────────────────────────────
        espeak_raw = raw.get("espeak", {}) or {}
        espeak = EspeakConfig(
            binary=str(espeak_raw.get("binary", Defaults.ESPEAK_BINARY)),
            default_voice=str(espeak_raw.get("default_voice", Defaults.ESPEAK_DEFAULT_VOICE)),
            base_wpm=int(espeak_raw.get("base_wpm", Defaults.ESPEAK_BASE_WPM)),
            timeout_s=float(espeak_raw.get("timeout_s", Defaults.ESPEAK_TIMEOUT_S)),
            voices_ttl_s=float(espeak_raw.get("voices_ttl_s", Defaults.ESPEAK_VOICES_TTL_S)),
        )
        cls._validate_positive("espeak.base_wpm", espeak.base_wpm)
        cls._validate_positive("espeak.timeout_s", espeak.timeout_s)
        cls._validate_non_negative("espeak.voices_ttl_s", espeak.voices_ttl_s)

        # ─────────────────────────────────────────────────────────────────────
        # gTTS
        # ─────────────────────────────────────────────────────────────────────
        gtts_raw = raw.get("gtts", {}) or {}
        gtts = GttsConfig(
            tld=str(gtts_raw.get("tld", Defaults.GTTS_TLD)),
            default_voice=str(gtts_raw.get("default_voice", Defaults.GTTS_DEFAULT_VOICE)),
            voices_ttl_s=float(gtts_raw.get("voices_ttl_s", Defaults.GTTS_VOICES_TTL_S)),
        )
        cls._validate_non_negative("gtts.voices_ttl_s", gtts.voices_ttl_s)

        # ─────────────────────────────────────────────────────────────────────
        # Google Cloud
        # ─────────────────────────────────────────────────────────────────────
        gcloud_raw = raw.get("gcloud", {}) or {}
        credentials_path = gcloud_raw.get("credentials_path")
        gcloud = GcloudConfig(
            credentials_path=str(credentials_path) if credentials_path else None,
            default_voice=str(gcloud_raw.get("default_voice", Defaults.GCLOUD_DEFAULT_VOICE)),
            voices_ttl_s=float(gcloud_raw.get("voices_ttl_s", Defaults.GCLOUD_VOICES_TTL_S)),
        )
        cls._validate_non_negative("gcloud.voices_ttl_s", gcloud.voices_ttl_s)

        # ─────────────────────────────────────────────────────────────────────
        # Amazon Polly
        # ─────────────────────────────────────────────────────────────────────
        polly_raw = raw.get("polly", {}) or {}
        polly = PollyConfig(
            region=str(polly_raw.get("region", Defaults.POLLY_REGION)),
            engine=str(polly_raw.get("engine", Defaults.POLLY_ENGINE)),
            access_key_id=polly_raw.get("access_key_id") or None,
            secret_access_key=polly_raw.get("secret_access_key") or None,
            default_voice=str(polly_raw.get("default_voice", Defaults.POLLY_DEFAULT_VOICE)),
            voices_ttl_s=float(polly_raw.get("voices_ttl_s", Defaults.POLLY_VOICES_TTL_S)),
        )
        if polly.engine not in ("standard", "neural", "long-form", "generative"):
            raise ConfigValidationError(f"polly.engine is not a Polly engine: {polly.engine}")
        cls._validate_non_negative("polly.voices_ttl_s", polly.voices_ttl_s)

        # ─────────────────────────────────────────────────────────────────────
        # Gwent daemon
        # ─────────────────────────────────────────────────────────────────────
        gwent_raw = raw.get("gwent", {}) or {}
        daemon = DaemonConfig(
            base_url=str(gwent_raw.get("daemon_url", Defaults.GWENT_DAEMON_URL)),
            connect_timeout_s=int(gwent_raw.get("connect_timeout_ms", Defaults.GWENT_CONNECT_TIMEOUT_MS)) / 1000,
            request_timeout_s=int(gwent_raw.get("request_timeout_ms", Defaults.GWENT_REQUEST_TIMEOUT_MS)) / 1000,
            max_concurrency=int(gwent_raw.get("max_concurrency", Defaults.GWENT_MAX_CONCURRENCY)),
            health_path=_normalize_path(gwent_raw.get("health_path", Defaults.GWENT_HEALTH_PATH)),
            voices_path=_normalize_path(gwent_raw.get("voices_path", Defaults.GWENT_VOICES_PATH)),
            tts_path=_normalize_path(gwent_raw.get("tts_path", Defaults.GWENT_TTS_PATH)),
        )
        if not daemon.base_url.startswith(("http://", "https://")):
            raise ConfigValidationError(f"gwent.daemon_url must be an http(s) URL, got {daemon.base_url}")
        cls._validate_positive("gwent.connect_timeout_ms", daemon.connect_timeout_s)
        cls._validate_positive("gwent.request_timeout_ms", daemon.request_timeout_s)
        cls._validate_positive("gwent.max_concurrency", daemon.max_concurrency)

        default_voice = gwent_raw.get("default_voice")
        gwent = GwentConfig(
            daemon=daemon,
            health_check=bool(gwent_raw.get("health_check", Defaults.GWENT_HEALTH_CHECK)),
            max_queue=int(gwent_raw.get("max_queue", Defaults.GWENT_MAX_QUEUE)),
            acquire_timeout_s=float(gwent_raw.get("acquire_timeout_s", Defaults.GWENT_ACQUIRE_TIMEOUT_S)),
            voices_ttl_s=float(gwent_raw.get("voices_ttl_s", Defaults.GWENT_VOICES_TTL_S)),
            default_voice=str(default_voice) if default_voice else None,
            expected_voices=tuple(str(v) for v in gwent_raw.get("expected_voices", ()) or ()),
            slow_call_warn_s=float(gwent_raw.get("slow_call_warn_s", Defaults.GWENT_SLOW_CALL_WARN_S)),
        )
        cls._validate_non_negative("gwent.max_queue", gwent.max_queue)
        cls._validate_non_negative("gwent.acquire_timeout_s", gwent.acquire_timeout_s)
        cls._validate_non_negative("gwent.voices_ttl_s", gwent.voices_ttl_s)
        cls._validate_positive("gwent.slow_call_warn_s", gwent.slow_call_warn_s)

        return cls(
            server=server,
            logging=logging_cfg,
            espeak=espeak,
            gtts=gtts,
            gcloud=gcloud,
            polly=polly,
            gwent=gwent,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be greater than 0, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_bind_addr(value: str) -> None:
        host, sep, port = value.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ConfigValidationError(f"server.bind_addr must look like HOST:PORT, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get the validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def auth_key(self) -> Optional[str]:
        """Get the shared secret for the Authorization header, if any."""
        return (self.raw.get("server", {}) or {}).get("auth_key") or None

    @property
    def modes(self) -> Tuple[str, ...]:
        """Get the enabled mode identifiers, in registration order."""
        return tuple((self.raw.get("server", {}) or {}).get("modes", Defaults.SERVER_MODES))

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


# Environment variable -> (section, key) in the raw settings tree
_ENV_OVERRIDES = {
    "BIND_ADDR": ("server", "bind_addr"),
    "AUTH_KEY": ("server", "auth_key"),
    "LOG_LEVEL": ("logging", "level"),
    "GWENT_DAEMON_URL": ("gwent", "daemon_url"),
    "GWENT_CONNECT_TIMEOUT_MS": ("gwent", "connect_timeout_ms"),
    "GWENT_REQUEST_TIMEOUT_MS": ("gwent", "request_timeout_ms"),
    "GWENT_MAX_CONCURRENCY": ("gwent", "max_concurrency"),
    "GWENT_HEALTH_PATH": ("gwent", "health_path"),
    "GWENT_VOICES_PATH": ("gwent", "voices_path"),
    "GWENT_TTS_PATH": ("gwent", "tts_path"),
    "GOOGLE_APPLICATION_CREDENTIALS": ("gcloud", "credentials_path"),
    "AWS_REGION": ("polly", "region"),
}

_INT_ENV = {"GWENT_CONNECT_TIMEOUT_MS", "GWENT_REQUEST_TIMEOUT_MS", "GWENT_MAX_CONCURRENCY"}


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to a raw settings dict in place.

    Integer variables are parsed eagerly so a malformed value fails at
    startup rather than on the first request.

    Raises:
        ConfigValidationError: If an integer variable does not parse.
    """
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        if env_name in _INT_ENV:
            try:
                value = int(value)
            except ValueError:
                raise ConfigValidationError(f"{env_name} must be an integer, got {value!r}") from None
        section_raw = raw.get(section)
        if not isinstance(section_raw, dict):
            section_raw = {}
            raw[section] = section_raw
        section_raw[key] = value
    return raw


def settings_path() -> str:
    """Resolve the settings file path ($TTS_SERVICE_SETTINGS or the default)."""
    return os.getenv("TTS_SERVICE_SETTINGS", "config/settings.yaml")


def load_settings(path: Optional[str] = None, missing_ok: bool = True) -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variables listed in _ENV_OVERRIDES take precedence over
    the file.

    Args:
        path: Path to the YAML file (defaults to settings_path()).
        missing_ok: Use defaults when the file does not exist.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the file is missing and missing_ok is False.
    """
    p = Path(path or settings_path())
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif not missing_ok:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=apply_env_overrides(raw))
