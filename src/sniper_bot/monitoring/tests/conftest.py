"""
Test fixtures for monitoring.
"""

from unittest.mock import MagicMock

import pytest

from sniper_bot.monitoring.alerting import AlertManager


@pytest.fixture
def mock_telegram_api():
    return MagicMock()


@pytest.fixture
def alert_manager(mock_telegram_api):
    return AlertManager(
        telegram_bot_token="test-token",
        telegram_chat_id="12345",
        _telegram_api=mock_telegram_api,
    )
