"""Status API layer for nanocd.

Exposes:
    create_app -- FastAPI application factory.
"""

from nanocd.api.app import create_app

__all__ = ["create_app"]
