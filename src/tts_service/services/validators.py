"""
Request Validator for /tts.

Turns the raw query mapping into an (adapter, SynthesisRequest) pair or
raises an ApiError. Checks run in a fixed order and the first failure
wins:

    0. parameters parse (text present, numeric fields numeric)   code 0
    1. mode resolves in the registry                             code 0
    2. text fits max_length and the backend's own limit          code 2
    3. speaking_rate within the adapter's bounds (inclusive)     code 3
    4. lang is in the adapter's current voice list               code 1
    5. preferred_format negotiated; unsupported -> default, never an error

The only side effect is the voice list fetch in step 4. If that fetch
fails, the adapter's own error propagates unchanged.

Usage:
    adapter, request = await validate_tts_query(query, registry)
    result = await adapter.synthesize(request)
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

from pydantic import ValidationError

from tts_service.api.schemas import TTSQuery
from tts_service.core.logging import debug, get_logger
from tts_service.services.errors import (
    InvalidRequestError,
    MaxLengthExceededError,
    SpeakingRateExceededError,
    UnknownModeError,
    UnknownVoiceError,
)
from tts_service.tts.adapter import BaseAdapter, Capabilities, SynthesisRequest
from tts_service.tts.registry import ModeRegistry

_LOG = get_logger("tts-service.validators")


def parse_query(query: Mapping[str, Any]) -> TTSQuery:
    """
    Parse raw query parameters.

    Raises:
        InvalidRequestError: Missing text or a non-numeric numeric field.
    """
    try:
        return TTSQuery.model_validate(dict(query))
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "query"
        if field == "text":
            raise InvalidRequestError("Missing text") from None
        raise InvalidRequestError(f"Invalid {field}: {first.get('msg', 'invalid value')}") from None


def check_length(text: str, max_length: Optional[int], caps: Capabilities, mode: str) -> None:
    """
    Raises:
        MaxLengthExceededError: Text longer than max_length or the
            backend's own limit.
    """
    length = len(text)
    if max_length is not None and length > max_length:
        raise MaxLengthExceededError(f"Text length {length} exceeds max_length {max_length}")
    if caps.max_text_length is not None and length > caps.max_text_length:
        raise MaxLengthExceededError(
            f"Text length {length} exceeds the {mode} limit of {caps.max_text_length} characters"
        )
    if caps.max_text_bytes is not None:
        size = len(text.encode("utf-8"))
        if size > caps.max_text_bytes:
            raise MaxLengthExceededError(
                f"Text size {size} bytes exceeds the {mode} limit of {caps.max_text_bytes} bytes"
            )


def check_speaking_rate(rate: Optional[float], caps: Capabilities, mode: str) -> float:
    """
    Return the rate to use; the adapter default when ``rate`` is None.

    Raises:
        SpeakingRateExceededError: Rate outside the inclusive bounds.
    """
    if rate is None:
        return caps.default_rate
    bounds = caps.rate_range
    if rate < bounds.min:
        raise SpeakingRateExceededError(
            f"Speaking rate {rate:g} is below the {mode} minimum of {bounds.min:g}"
        )
    if bounds.max is not None and rate > bounds.max:
        raise SpeakingRateExceededError(
            f"Speaking rate {rate:g} exceeds the {mode} maximum of {bounds.max:g}"
        )
    return rate


async def check_voice(lang: Optional[str], adapter: BaseAdapter) -> str:
    """
    Return the voice id to use.

    Raises:
        UnknownVoiceError: Voice not in the adapter's voice list, or no
            voice given and the adapter has no default.
        AdapterError: The voice list could not be fetched.
    """
    voice = lang or adapter.capabilities().default_voice
    if not voice:
        raise UnknownVoiceError(f"No voice given and mode {adapter.mode} has no default voice")

    voices = await adapter.list_voices()
    if not any(v.id == voice for v in voices):
        raise UnknownVoiceError(f"Unknown voice {voice!r} for mode {adapter.mode}")
    return voice


async def validate_tts_query(
    query: Mapping[str, Any],
    registry: ModeRegistry,
) -> Tuple[BaseAdapter, SynthesisRequest]:
    """
    Validate a raw /tts query against the registry.

    Returns:
        The resolved adapter and the validated request.

    Raises:
        ApiError subclasses for validation failures (codes 0-3).
        AdapterError if the voice list fetch fails.
    """
    parsed = parse_query(query)

    adapter = registry.resolve(parsed.mode)
    if adapter is None:
        raise UnknownModeError(parsed.mode)

    caps = adapter.capabilities()
    check_length(parsed.text, parsed.max_length, caps, adapter.mode)
    rate = check_speaking_rate(parsed.speaking_rate, caps, adapter.mode)
    voice = await check_voice(parsed.lang, adapter)
    fmt = adapter.negotiate_format(parsed.preferred_format)

    request = SynthesisRequest(
        text=parsed.text,
        voice=voice,
        speaking_rate=rate,
        output_format=fmt,
        max_length=parsed.max_length,
        preferred_format=parsed.preferred_format,
    )
    debug(_LOG, "validated", mode=adapter.mode, voice=voice, rate=rate, format=fmt.value)
    return adapter, request
