"""HTTP query surface for audit records."""

from changetrail.api.app import create_app


__all__ = ["create_app"]
