"""
Tests for SnipePipeline.

These tests verify:
- Each check mode gates the buy as configured
- Simulation mode never executes
- Failures anywhere abandon the event without raising
- Stats reflect each outcome
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sniper_bot.admission.engine import AdmissionResult
from sniper_bot.core.pipeline import CheckMode, PipelineSettings, SnipePipeline
from sniper_bot.ingestion.client import MintAuthorities


@pytest.fixture
def resolver():
    mock = MagicMock()
    mock.resolve = AsyncMock(return_value="MINTXYZ")
    return mock


@pytest.fixture
def authority_source():
    mock = MagicMock()
    mock.get_mint_authorities = AsyncMock(
        return_value=MintAuthorities(mint_authority=None, freeze_authority=None)
    )
    return mock


def make_pipeline(resolver, executor, settings, stats, **kwargs):
    return SnipePipeline(resolver, executor, settings, stats=stats, **kwargs)


class TestFullCheck:

    @pytest.mark.asyncio
    async def test_accepted_token_is_bought(self, resolver, executor, engine, settings, stats):
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        assert await pipeline.process("SIG123") is True

        engine.check.assert_awaited_once_with("MINTXYZ")
        executor.execute.assert_awaited_once_with("MINTXYZ", 0.1, True, 30.0, 15.0)
        assert stats.resolved == 1
        assert stats.accepted == 1
        assert stats.executed == 1

    @pytest.mark.asyncio
    async def test_rejected_token_not_bought(self, resolver, executor, engine, settings, stats):
        engine.check.return_value = AdmissionResult.reject("Token is marked as rugged")
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        assert await pipeline.process("SIG123") is False

        executor.execute.assert_not_called()
        assert stats.rejected == 1

    @pytest.mark.asyncio
    async def test_pump_suffix_skips_report(self, resolver, executor, engine, settings, stats):
        resolver.resolve.return_value = "AbCdEfpump"
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        assert await pipeline.process("SIG123") is False

        engine.check.assert_not_called()
        executor.execute.assert_not_called()


class TestOtherModes:

    @pytest.mark.asyncio
    async def test_none_mode_buys_without_checks(self, resolver, executor, engine, stats):
        settings = PipelineSettings(check_mode=CheckMode.NONE)
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        assert await pipeline.process("SIG123") is True

        engine.check.assert_not_called()

    @pytest.mark.asyncio
    async def test_snipe_mode_secure_mint(self, resolver, executor, authority_source, stats):
        settings = PipelineSettings(check_mode=CheckMode.SNIPE)
        pipeline = make_pipeline(
            resolver, executor, settings, stats, authority_source=authority_source
        )

        assert await pipeline.process("SIG123") is True

        authority_source.get_mint_authorities.assert_awaited_once_with("MINTXYZ")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "authorities",
        [
            MintAuthorities(mint_authority="Minter111", freeze_authority=None),
            MintAuthorities(mint_authority=None, freeze_authority="Freezer111"),
            None,
        ],
    )
    async def test_snipe_mode_rejects(
        self, resolver, executor, authority_source, stats, authorities
    ):
        authority_source.get_mint_authorities.return_value = authorities
        settings = PipelineSettings(check_mode=CheckMode.SNIPE)
        pipeline = make_pipeline(
            resolver, executor, settings, stats, authority_source=authority_source
        )

        assert await pipeline.process("SIG123") is False

        executor.execute.assert_not_called()
        assert stats.rejected == 1


class TestExecution:

    @pytest.mark.asyncio
    async def test_simulation_mode_never_executes(self, resolver, executor, engine, stats):
        settings = PipelineSettings(simulation_mode=True)
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        assert await pipeline.process("SIG123") is False

        executor.execute.assert_not_called()
        assert stats.accepted == 1
        assert stats.executed == 0

    @pytest.mark.asyncio
    async def test_execution_failure_counted(self, resolver, executor, engine, settings, stats):
        executor.execute.return_value = False
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        assert await pipeline.process("SIG123") is False

        assert stats.execution_failed == 1

    @pytest.mark.asyncio
    async def test_sound_on_buy(self, resolver, executor, engine, stats):
        settings = PipelineSettings(play_sound=True)
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        with patch("sniper_bot.core.pipeline.play_sound") as bell:
            await pipeline.process("SIG123")

        bell.assert_called_once()


class TestFailures:

    @pytest.mark.asyncio
    async def test_unresolved_signature_abandoned(self, resolver, executor, engine, settings, stats):
        resolver.resolve.return_value = None
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        assert await pipeline.process("SIG123") is False

        engine.check.assert_not_called()
        assert stats.unresolved == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, resolver, executor, engine, settings, stats):
        engine.check.side_effect = RuntimeError("boom")
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine)

        # Should not raise
        assert await pipeline.process("SIG123") is False

        assert stats.errors == 1


class TestNotifications:

    @pytest.mark.asyncio
    async def test_new_token_and_bought_alerts(self, resolver, executor, engine, settings, stats, alerts):
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine, alerts=alerts)

        await pipeline.process("SIG123")
        await asyncio.gather(*pipeline._background, return_exceptions=True)

        alerts.alert_new_token.assert_called_once_with("MINTXYZ", "SIG123")
        alerts.alert_token_bought.assert_called_once_with("MINTXYZ", 0.1)

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_block_buy(
        self, resolver, executor, engine, settings, stats, alerts
    ):
        alerts.alert_new_token.side_effect = RuntimeError("telegram down")
        pipeline = make_pipeline(resolver, executor, settings, stats, engine=engine, alerts=alerts)

        assert await pipeline.process("SIG123") is True

        await asyncio.gather(*pipeline._background, return_exceptions=True)
        executor.execute.assert_awaited_once()
