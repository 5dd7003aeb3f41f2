"""
Utility Modules for tts-service.

    - timeit.py: Timing context manager and slow backend call monitor
"""
