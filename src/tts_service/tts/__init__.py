"""
Backend Adapter Layer.

This package provides all backend-facing functionality:
    - adapter.py: Entities and the BaseAdapter contract
    - adapters/: One adapter per mode (espeak, gtts, gcloud, polly, gwent)
    - registry.py: Mode id -> adapter mapping
    - daemon_client.py: Bounded HTTP client for the gwent daemon
    - concurrency.py: Permit pool limiting in-flight daemon calls
    - cache.py: Per-adapter voice list TTL cache
    - errors.py: Adapter failure hierarchy
"""
