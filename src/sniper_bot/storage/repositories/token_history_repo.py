"""
Token history repository.

Backs duplicate detection in the admission engine: every evaluated
token is recorded once, and later tokens are looked up by name or
creator to catch relaunches of the same project.
"""
from __future__ import annotations

from sniper_bot.storage.models import HistoryRecord
from sniper_bot.storage.repositories.base import BaseRepository


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS tokens (
        id SERIAL PRIMARY KEY,
        time BIGINT NOT NULL,
        name TEXT NOT NULL,
        mint TEXT NOT NULL,
        creator TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tokens_name ON tokens (name)",
    "CREATE INDEX IF NOT EXISTS idx_tokens_mint ON tokens (mint)",
    "CREATE INDEX IF NOT EXISTS idx_tokens_creator ON tokens (creator)",
)


class TokenHistoryRepository(BaseRepository[HistoryRecord]):
    """Repository for previously seen tokens."""

    table_name = "tokens"
    model_class = HistoryRecord

    async def ensure_schema(self) -> None:
        """Create the tokens table and its lookup indexes if missing."""
        for statement in SCHEMA_STATEMENTS:
            await self.db.execute(statement)

    async def query(self, name: str, creator: str) -> list[HistoryRecord]:
        """Tokens that share the given name or the given creator."""
        query = """
            SELECT time, mint, name, creator FROM tokens
            WHERE name = $1 OR creator = $2
        """
        records = await self.db.fetch(query, name, creator)
        return self._records_to_models(records)

    async def insert(self, record: HistoryRecord) -> None:
        query = """
            INSERT INTO tokens (time, mint, name, creator)
            VALUES ($1, $2, $3, $4)
        """
        await self.db.execute(query, record.time, record.mint, record.name, record.creator)
