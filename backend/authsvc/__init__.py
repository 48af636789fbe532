"""Expose the application factory at package level.

Provide convenient access to :func:`authsvc.factory.create_app` so callers
can ``from authsvc import create_app``.
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
