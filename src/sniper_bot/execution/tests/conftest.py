"""
Test fixtures for the execution layer.

IMPORTANT: The Sniperoo API must never be called from tests.
"""

from unittest.mock import AsyncMock

import pytest

from sniper_bot.execution.client import SniperooClient


@pytest.fixture
def sniperoo():
    client = SniperooClient(api_key="test-key", wallet_pubkey="Wallet111")
    client._request = AsyncMock(return_value={"success": True})
    return client
