"""Repository package exposing persistence-layer access for all models."""

from __future__ import annotations

from authsvc.repositories.app import AppRepository
from authsvc.repositories.base import BaseRepository, order_by_tokens
from authsvc.repositories.refresh_token import RefreshTokenRepository
from authsvc.repositories.user import UserRepository

__all__ = [
    "AppRepository",
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
    "order_by_tokens",
]
