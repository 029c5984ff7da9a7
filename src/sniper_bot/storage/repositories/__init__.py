"""Repository classes for the token history store."""
from .base import BaseRepository
from .token_history_repo import TokenHistoryRepository

__all__ = ["BaseRepository", "TokenHistoryRepository"]
