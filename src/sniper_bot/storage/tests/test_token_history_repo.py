"""
Token history repository tests.
"""

import pytest

from sniper_bot.storage.models import HistoryRecord


@pytest.mark.asyncio
class TestTokenHistoryRepository:

    async def test_ensure_schema_creates_table_and_indexes(self, history_repo, mock_db):
        await history_repo.ensure_schema()

        statements = [c.args[0] for c in mock_db.execute.await_args_list]
        assert any("CREATE TABLE IF NOT EXISTS tokens" in s for s in statements)
        for column in ("name", "mint", "creator"):
            assert any(f"idx_tokens_{column}" in s for s in statements)

    async def test_query_matches_name_or_creator(self, history_repo, mock_db):
        mock_db.fetch.return_value = [
            {"time": 1700000000000, "mint": "MINT1", "name": "Good Token", "creator": "C1"},
        ]

        records = await history_repo.query("Good Token", "C2")

        query, name, creator = mock_db.fetch.await_args.args
        assert "name = $1 OR creator = $2" in query
        assert (name, creator) == ("Good Token", "C2")
        assert records == [
            HistoryRecord(time=1700000000000, mint="MINT1", name="Good Token", creator="C1")
        ]

    async def test_insert(self, history_repo, mock_db):
        record = HistoryRecord(time=1700000000000, mint="MINT1", name="Good Token", creator="C1")

        await history_repo.insert(record)

        args = mock_db.execute.await_args.args
        assert "INSERT INTO tokens" in args[0]
        assert args[1:] == (1700000000000, "MINT1", "Good Token", "C1")

    async def test_count(self, history_repo, mock_db):
        mock_db.fetchval.return_value = 4

        assert await history_repo.count() == 4


def test_history_record_time_defaults_to_now_ms():
    record = HistoryRecord(mint="M", name="N", creator="C")

    assert record.time > 1_600_000_000_000
