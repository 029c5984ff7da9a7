"""
Integration test fixtures.

External services (Helius, RugCheck, Sniperoo, Telegram) are mocked;
everything between the stream frame and the buy call is real.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sniper_bot.core.resolver import WSOL_MINT

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration


@pytest.fixture
def ledger():
    mock = MagicMock()
    mock.get_transaction = AsyncMock(
        return_value={
            "meta": {
                "postTokenBalances": [{"mint": WSOL_MINT}, {"mint": "MINTXYZ"}],
            }
        }
    )
    return mock


@pytest.fixture
def executor():
    mock = MagicMock()
    mock.execute = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def create_pool_frame():
    return {
        "jsonrpc": "2.0",
        "method": "logsNotification",
        "params": {
            "result": {
                "context": {"slot": 1},
                "value": {
                    "signature": "SIG123",
                    "err": None,
                    "logs": [
                        "Program pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA invoke [1]",
                        "Program log: Instruction: CreatePool",
                    ],
                },
            },
            "subscription": 1,
        },
    }
