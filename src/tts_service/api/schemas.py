"""
API Request/Response Schemas.

Pydantic models for the HTTP surface:
    TTSQuery: typed view of the /tts query string
    ErrorBody: {code, display} error response
    HealthResponse: /health body

All /tts query parameters arrive as strings. They are parsed into
TTSQuery only after the auth gate has passed, so a malformed parameter
can never reveal anything to an unauthenticated caller. Empty strings
are treated as absent.

Example Request:
    GET /tts?text=Hello&lang=en&mode=espeak&speaking_rate=1.25&preferred_format=wav
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TTSQuery(BaseModel):
    """
    Parsed /tts query.

    Attributes:
        text: Text to synthesize, kept exactly as sent. It must contain
            at least one non-whitespace character.
        lang: Voice id for the selected mode.
        mode: Backend mode identifier.
        speaking_rate: Rate multiplier; bounds depend on the mode.
        max_length: Caller's cap on the text length in characters.
        preferred_format: Output container hint (ogg, mp3, wav).
    """
    model_config = ConfigDict(extra="ignore")

    text: str = Field(..., min_length=1)
    lang: Optional[str] = None
    mode: Optional[str] = None
    speaking_rate: Optional[float] = Field(default=None, allow_inf_nan=False)
    max_length: Optional[int] = Field(default=None, ge=0)
    preferred_format: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        # length checks and synthesis see the original string
        if not value.strip():
            raise ValueError("text is blank")
        return value

    @field_validator("lang", "mode", "speaking_rate", "max_length", "preferred_format", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return value


class ErrorBody(BaseModel):
    code: int
    display: str


class HealthResponse(BaseModel):
    """
    /health response.

    Attributes:
        ok: Always true when the service answers.
        version: Package version.
        modes: Enabled modes in registration order.
        deadline_hit: True once any backend call exceeded the slow-call
            threshold since startup.
        daemon: gwent adapter state (permit stats), when gwent is enabled.
    """
    ok: bool = True
    version: str
    modes: List[str]
    deadline_hit: bool = False
    daemon: Optional[Dict[str, Any]] = None
