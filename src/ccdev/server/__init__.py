"""HTTP and WebSocket surface for ccdev."""

from ccdev.server.app import create_app

__all__ = ["create_app"]
