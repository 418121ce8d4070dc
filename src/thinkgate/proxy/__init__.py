"""Transforming reverse proxy.

Exports:
    ThinkingProxy: TCP proxy in front of the backend.
    apply_thinking_transform: Body rewrite applied to POST requests.
"""

from __future__ import annotations

__all__ = [
    "ThinkingProxy",
    "apply_thinking_transform",
]

from .server import ThinkingProxy
from .thinking import apply_thinking_transform
