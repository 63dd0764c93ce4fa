"""HTTP API for the tutoring backend."""

from .app import create_app

__all__ = ["create_app"]
