"""HTTP API for conversations with personas."""

from .app import create_app

__all__ = ["create_app"]
