"""
Shared test fixtures spanning multiple components.

Component-specific fixtures live in src/sniper_bot/{component}/tests/conftest.py.
"""

import pytest

CONFIG_ENV_VARS = (
    "HELIUS_WSS_URI",
    "HELIUS_HTTPS_URI",
    "DATABASE_URL",
    "SNIPEROO_API_KEY",
    "SNIPEROO_PUBKEY",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "CHECK_MODE",
    "SIMULATION_MODE",
    "CONCURRENT_TRANSACTIONS",
    "BUY_AMOUNT_SOL",
    "SELL_ENABLED",
    "TAKE_PROFIT_PERCENT",
    "STOP_LOSS_PERCENT",
    "PLAY_SOUND",
    "MAX_RECONNECT_RETRIES",
    "BLOCK_SYMBOLS",
    "BLOCK_NAMES",
    "MAX_TOPHOLDER_PCT",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Environment with no bot configuration set."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def live_env(clean_env):
    """Minimal environment for a live (non-simulated) bot."""
    clean_env.setenv("HELIUS_WSS_URI", "wss://mainnet.helius-rpc.com/?api-key=test")
    clean_env.setenv("HELIUS_HTTPS_URI", "https://mainnet.helius-rpc.com/?api-key=test")
    clean_env.setenv("SNIPEROO_API_KEY", "test-key")
    clean_env.setenv("SNIPEROO_PUBKEY", "Wallet111")
    return clean_env
