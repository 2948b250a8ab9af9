"""Rate limiting adapters.

This package provides a small abstraction layer so the HTTP layer depends on
an admission interface while the counters live in a shared store (Redis in
production, an in-memory store locally).
"""
