"""
FastAPI HTTP Layer for tts-service.

This package defines all HTTP endpoints:
    - routes.py: /tts, /voices, /modes, /health, /metrics
    - schemas.py: Request/response Pydantic models
"""
