"""
HTTP API Routes.

Endpoints:
    GET /tts      - Synthesize text; audio bytes or {code, display}
    GET /voices   - Voice ids for a mode (native payload with raw=true)
    GET /modes    - Enabled mode ids, in registration order
    GET /health   - Service health (behind the auth gate)
    GET /metrics  - Prometheus metrics (not gated, for scrapers)

Query parameters are declared as plain optional strings so that FastAPI's
own validation can never answer before the auth gate. Parsing happens in
the Dispatcher.

Error responses:
    {"code": <0-4>, "display": "<human readable message>"}

    status 400 for validation errors, 403 for auth, 429/502/503/504 for
    backend failures, 500 for unexpected errors.

Example Usage:
    curl -o hello.wav "http://localhost:3000/tts?text=Hello&lang=en&mode=espeak"
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Header, Request, Response
from fastapi.responses import JSONResponse

from tts_service.api.schemas import ErrorBody, HealthResponse
from tts_service.core.metrics import metrics
from tts_service.services.dispatcher import Dispatcher, get_dispatcher
from tts_service.services.errors import ApiError, AuthError

router = APIRouter()


def _get_dispatcher(request: Request) -> Dispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        dispatcher = get_dispatcher()
        request.app.state.dispatcher = dispatcher
    return dispatcher


def _error_response(error: ApiError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@router.get(
    "/tts",
    response_class=Response,
    responses={
        200: {"content": {"audio/wav": {}, "audio/mpeg": {}, "audio/ogg": {}}},
        400: {"model": ErrorBody},
        403: {"model": ErrorBody},
    },
)
async def tts(
    request: Request,
    text: Optional[str] = None,
    lang: Optional[str] = None,
    mode: Optional[str] = None,
    speaking_rate: Optional[str] = None,
    max_length: Optional[str] = None,
    preferred_format: Optional[str] = None,
    authorization: Optional[str] = Header(default=None),
):
    """
    Synthesize ``text`` with the backend selected by ``mode``.

    Returns the audio bytes with the backend's Content-Type.
    """
    query = {
        "text": text,
        "lang": lang,
        "mode": mode,
        "speaking_rate": speaking_rate,
        "max_length": max_length,
        "preferred_format": preferred_format,
    }
    result, status = await _get_dispatcher(request).handle_tts(query, authorization=authorization)
    if isinstance(result, ApiError):
        return _error_response(result)
    return Response(content=result.audio, media_type=result.content_type, status_code=status)


@router.get("/voices", responses={400: {"model": ErrorBody}, 403: {"model": ErrorBody}})
async def voices(
    request: Request,
    mode: Optional[str] = None,
    raw: Optional[str] = None,
    authorization: Optional[str] = Header(default=None),
):
    """Voice ids for ``mode``; ``raw=true`` returns the backend's native shape."""
    result, status = await _get_dispatcher(request).handle_voices(mode, raw, authorization=authorization)
    if isinstance(result, ApiError):
        return _error_response(result)
    return JSONResponse(status_code=status, content=result)


@router.get("/modes", responses={403: {"model": ErrorBody}})
async def modes(request: Request, authorization: Optional[str] = Header(default=None)):
    result, status = await _get_dispatcher(request).handle_modes(authorization=authorization)
    if isinstance(result, ApiError):
        return _error_response(result)
    return JSONResponse(status_code=status, content=result)


@router.get("/health", response_model=HealthResponse, responses={403: {"model": ErrorBody}})
async def health(request: Request, authorization: Optional[str] = Header(default=None)):
    """
    Health summary for probes and operators.

    ``deadline_hit`` turns true once any gwent call ran longer than the
    slow-call threshold.
    """
    dispatcher = _get_dispatcher(request)
    try:
        dispatcher.check_auth(authorization)
    except AuthError as exc:
        return _error_response(exc)
    return HealthResponse(**dispatcher.health_info())


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
