"""Status and control API (FastAPI)."""

from __future__ import annotations

__all__ = ["create_api_app"]

from .server import create_api_app
