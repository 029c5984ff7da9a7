"""
Test fixtures for the core layer.

The ledger, report source and executor are always mocks.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sniper_bot.admission.engine import AdmissionResult
from sniper_bot.core.pipeline import CheckMode, PipelineSettings, PipelineStats
from sniper_bot.core.resolver import WSOL_MINT


def make_transaction(*mints, key="postTokenBalances"):
    """A jsonParsed getTransaction result with the given balance mints."""
    return {
        "slot": 1,
        "meta": {key: [{"accountIndex": i, "mint": mint} for i, mint in enumerate(mints)]},
    }


@pytest.fixture
def transaction():
    return make_transaction


@pytest.fixture
def ledger():
    mock = MagicMock()
    mock.get_transaction = AsyncMock(return_value=make_transaction(WSOL_MINT, "MINTXYZ"))
    return mock


@pytest.fixture
def executor():
    mock = MagicMock()
    mock.execute = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def engine():
    mock = MagicMock()
    mock.check = AsyncMock(return_value=AdmissionResult.accept())
    return mock


@pytest.fixture
def alerts():
    return MagicMock()


@pytest.fixture
def stats():
    return PipelineStats()


@pytest.fixture
def settings():
    return PipelineSettings(
        check_mode=CheckMode.FULL,
        buy_amount_sol=0.1,
        sell_enabled=True,
        take_profit_pct=30.0,
        stop_loss_pct=15.0,
    )
