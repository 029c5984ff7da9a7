"""
Test fixtures for ingestion layer.

IMPORTANT: All network I/O must be mocked.
Never open real websocket or RPC connections in tests.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from sniper_bot.core.gate import ConcurrencyGate
from sniper_bot.core.pipeline import PipelineStats
from sniper_bot.ingestion.subscriptions import Subscription, SubscriptionRegistry

CREATE_POOL = "Program log: Instruction: CreatePool"


def log_notification(logs, signature="SIG123"):
    """A logsSubscribe notification as sent by the RPC node."""
    return {
        "jsonrpc": "2.0",
        "method": "logsNotification",
        "params": {
            "subscription": 42,
            "result": {
                "context": {"slot": 1},
                "value": {"signature": signature, "err": None, "logs": logs},
            },
        },
    }


@pytest.fixture
def registry():
    return SubscriptionRegistry(
        [
            Subscription(
                id="pump1",
                name="pumpswap",
                program="PumpProgram1111111111111111111111111111111",
                match_text=CREATE_POOL,
            )
        ]
    )


@pytest.fixture
def gate():
    return ConcurrencyGate(capacity=1)


@pytest.fixture
def stats():
    return PipelineStats()


@pytest.fixture
def pipeline():
    return AsyncMock(return_value=True)


def make_fake_connection(frames=None, block=True):
    """
    Fake websockets connection.

    recv() returns the given frames in order, then either blocks forever
    (block=True) or raises the next frame if it is an exception.
    """
    conn = MagicMock()
    conn.send = AsyncMock()
    conn.close = AsyncMock()
    queue = list(frames or [])

    async def recv():
        if queue:
            item = queue.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        if block:
            await asyncio.Event().wait()
        raise AssertionError("recv() called after frames were exhausted")

    conn.recv = recv
    return conn


@pytest.fixture
def fake_connection():
    return make_fake_connection


@pytest.fixture
def notification():
    return log_notification
