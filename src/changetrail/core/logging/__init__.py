"""Structured logging setup and request tracking."""

from changetrail.core.logging.config import configure_logging
from changetrail.core.logging.middleware import RequestLoggingMiddleware


__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
]
