"""
Storage layer: asyncpg connection pool and the token history repository.
"""
from .database import Database, DatabaseConfig
from .models import HistoryRecord
from .repositories import TokenHistoryRepository

__all__ = ["Database", "DatabaseConfig", "HistoryRecord", "TokenHistoryRepository"]
