"""
Test fixtures for the admission layer.

Reports are built from a clean baseline that passes every condition
under permissive thresholds; each test breaks exactly what it checks.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sniper_bot.admission.models import TokenReport
from sniper_bot.admission.rules import AdmissionSettings


def report_payload(**overrides):
    """Raw rugcheck.xyz JSON for a token that passes permissive settings."""
    payload = {
        "mint": "MINTXYZ",
        "creator": "Creator111",
        "score": 1,
        "rugged": False,
        "risks": [],
        "token": {"mintAuthority": None, "freezeAuthority": None, "isInitialized": True},
        "tokenMeta": {"name": "Good Token", "symbol": "GOOD", "mutable": False},
        "topHolders": [
            {"address": "Holder1", "pct": 10.0, "insider": False},
            {"address": "Holder2", "pct": 5.0, "insider": False},
        ],
        "markets": [
            {"liquidityA": "VaultA", "liquidityB": "VaultB", "liquidity": 10000.0},
        ],
        "totalLPProviders": 3,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_report():
    def _make(**overrides):
        return TokenReport.model_validate(report_payload(**overrides))
    return _make


@pytest.fixture
def payload():
    return report_payload


@pytest.fixture
def settings():
    """Default thresholds except the LP/market counts, which reject nearly everything."""
    return AdmissionSettings(min_total_lp_providers=1, min_total_markets=1)


@pytest.fixture
def history_store():
    store = MagicMock()
    store.query = AsyncMock(return_value=[])
    store.insert = AsyncMock()
    return store


@pytest.fixture
def report_source(make_report):
    source = MagicMock()
    source.get_report = AsyncMock(return_value=make_report())
    return source
