"""HTTP daemon: application factory, middleware and lifecycle."""

from audex.server.app import create_app

__all__ = ["create_app"]
