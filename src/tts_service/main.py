"""
FastAPI Application Entry Point.

Creates the tts-service application: routes, logging, the per-request id
middleware and the lifespan that probes and closes the adapters.

Usage:
    # Run with uvicorn
    uvicorn tts_service.main:app --host 0.0.0.0 --port 3000

    # Or through the CLI (uses server.bind_addr from settings)
    tts-service --serve
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from tts_service import __version__
from tts_service.api.routes import router
from tts_service.core.logging import configure_logging, get_logger, info, set_request_id
from tts_service.services.dispatcher import Dispatcher, get_dispatcher

_LOG = get_logger("tts-service.main")


def create_app(dispatcher: Optional[Dispatcher] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        dispatcher: Dispatcher to serve with. When None, the process-wide
            one is built from settings at startup.

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "dispatcher", None) is None:
            app.state.dispatcher = get_dispatcher()
        d: Dispatcher = app.state.dispatcher
        await d.startup()
        info(_LOG, "service_ready", modes=",".join(d.registry.list_modes()), auth=d.auth_enabled)
        try:
            yield
        finally:
            await d.aclose()
            info(_LOG, "service_stopped")

    app = FastAPI(title="tts-service", version=__version__, lifespan=lifespan)
    app.state.dispatcher = dispatcher

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        rid = str(uuid.uuid4())[:12]
        set_request_id(rid)
        response = await call_next(request)
        response.headers["X-Request-Id"] = rid
        return response

    app.include_router(router)
    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
