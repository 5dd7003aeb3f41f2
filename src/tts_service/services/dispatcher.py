"""
Dispatcher: the single orchestration point for every endpoint.

Request flow for /tts:
    1. Auth gate (before any parsing or mode lookup)
    2. Validation (services/validators.py)
    3. Adapter call
    4. Error normalization on failure

Handlers never raise. They return ``(payload, status)`` where payload is
the success value or an ApiError, and status is 200 only on success.

Usage:
    dispatcher = Dispatcher(registry, auth_key="secret")
    result, status = await dispatcher.handle_tts(query, authorization=header)
"""
from __future__ import annotations

import hmac
import threading
from time import perf_counter
from typing import Any, List, Mapping, Optional, Tuple, Union

from tts_service.core.config import ServiceConfig
from tts_service.core.logging import get_logger, info, verbose, warn
from tts_service.core.metrics import metrics
from tts_service.services.errors import ApiError, AuthError, UnknownModeError, normalize_error
from tts_service.services.validators import validate_tts_query
from tts_service.tts.adapter import SynthesisResult
from tts_service.tts.registry import ModeRegistry, build_registry

_LOG = get_logger("tts-service.dispatcher")

_TRUE_VALUES = {"true", "1", "yes", "on"}

TTSOutcome = Tuple[Union[SynthesisResult, ApiError], int]
VoicesOutcome = Tuple[Union[List[str], Any, ApiError], int]
ModesOutcome = Tuple[Union[List[str], ApiError], int]


def parse_flag(value: Optional[str]) -> bool:
    """True for true/1/yes/on, case-insensitive."""
    return value is not None and value.strip().lower() in _TRUE_VALUES


class Dispatcher:
    """
    Applies the auth gate, validates, invokes adapters and normalizes errors.

    Args:
        registry: Mode registry; read-only, shared by all requests.
        auth_key: Shared secret for the Authorization header. None or
            empty disables the gate.
    """

    def __init__(self, registry: ModeRegistry, auth_key: Optional[str] = None):
        self.registry = registry
        self._auth_key = auth_key or None

    @property
    def auth_enabled(self) -> bool:
        return self._auth_key is not None

    def check_auth(self, authorization: Optional[str]) -> None:
        """
        Raises:
            AuthError: A secret is configured and the header is missing
                or different.
        """
        if self._auth_key is None:
            return
        if authorization is None or not hmac.compare_digest(
            authorization.encode("utf-8"), self._auth_key.encode("utf-8")
        ):
            raise AuthError("Authorization header missing or invalid")

    def _fail(self, exc: BaseException, endpoint: str, mode: Optional[str] = None) -> ApiError:
        err = normalize_error(exc)
        metrics.record_error(err.code)
        log = warn if err.status_code >= 500 else info
        log(
            _LOG,
            "request_failed",
            endpoint=endpoint,
            mode=mode or "-",
            code=int(err.code),
            status=err.status_code,
            display=err.display,
        )
        return err

    async def handle_tts(
        self,
        query: Mapping[str, Any],
        authorization: Optional[str] = None,
    ) -> TTSOutcome:
        t0 = perf_counter()
        mode_label = "unknown"
        try:
            self.check_auth(authorization)
            adapter, request = await validate_tts_query(query, self.registry)
            mode_label = adapter.mode
            verbose(
                _LOG,
                "tts_dispatch",
                mode=adapter.mode,
                voice=request.voice,
                chars=len(request.text),
                format=request.output_format.value,
            )
            result = await adapter.synthesize(request)
        except Exception as exc:
            err = self._fail(exc, "tts", mode_label)
            metrics.record_request(mode_label, err.status_code, perf_counter() - t0)
            return err, err.status_code

        seconds = perf_counter() - t0
        metrics.record_request(mode_label, 200, seconds, audio_bytes=len(result.audio))
        info(
            _LOG,
            "tts_request",
            mode=mode_label,
            status=200,
            bytes=len(result.audio),
            content_type=result.content_type,
            seconds=round(seconds, 4),
        )
        return result, 200

    async def handle_voices(
        self,
        mode: Optional[str],
        raw: Union[bool, str, None] = False,
        authorization: Optional[str] = None,
    ) -> VoicesOutcome:
        """
        Voice ids for ``mode``, or the backend's native payload when
        ``raw`` is set.
        """
        try:
            self.check_auth(authorization)
            adapter = self.registry.resolve(mode)
            if adapter is None:
                raise UnknownModeError(mode)
            raw_flag = raw if isinstance(raw, bool) else parse_flag(raw)
            if raw_flag:
                return await adapter.list_raw_voices(), 200
            return [v.id for v in await adapter.list_voices()], 200
        except Exception as exc:
            err = self._fail(exc, "voices", mode)
            return err, err.status_code

    async def handle_modes(self, authorization: Optional[str] = None) -> ModesOutcome:
        try:
            self.check_auth(authorization)
        except AuthError as exc:
            err = self._fail(exc, "modes")
            return err, err.status_code
        return self.registry.list_modes(), 200

    def health_info(self) -> dict:
        """
        Service health summary; the caller is responsible for the auth gate.
        """
        from tts_service import __version__

        daemon = None
        deadline_hit = False
        for adapter in self.registry.adapters():
            status = adapter.status()
            if status.get("deadline_hit"):
                deadline_hit = True
            if adapter.mode == "gwent":
                daemon = status
        return {
            "ok": True,
            "version": __version__,
            "modes": self.registry.list_modes(),
            "deadline_hit": deadline_hit,
            "daemon": daemon,
        }

    async def startup(self) -> None:
        await self.registry.startup()

    async def aclose(self) -> None:
        await self.registry.aclose()


# =============================================================================
# Dispatcher Factory (Singleton Pattern)
# =============================================================================

_dispatcher: Optional[Dispatcher] = None
_dispatcher_lock = threading.Lock()


def create_dispatcher(config: ServiceConfig) -> Dispatcher:
    return Dispatcher(build_registry(config), auth_key=config.server.auth_key)


def get_dispatcher(config: Optional[ServiceConfig] = None) -> Dispatcher:
    """
    Get or create the process-wide Dispatcher.

    Loads settings from $TTS_SERVICE_SETTINGS (or config/settings.yaml)
    when no config is given.
    """
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                if config is None:
                    from tts_service.core.config import load_settings

                    config = load_settings().get_service_config()
                _dispatcher = create_dispatcher(config)
    return _dispatcher


def reset_dispatcher() -> None:
    """Reset the global dispatcher (for testing)."""
    global _dispatcher
    with _dispatcher_lock:
        _dispatcher = None
