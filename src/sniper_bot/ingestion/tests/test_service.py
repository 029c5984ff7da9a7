"""
Tests for IngestionService wiring.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sniper_bot.ingestion.dispatcher import EventDispatcher
from sniper_bot.ingestion.models import ConnectionState
from sniper_bot.ingestion.service import IngestionConfig, IngestionService, ServiceState


@pytest.fixture
def service(registry, gate, pipeline, stats):
    dispatcher = EventDispatcher(registry, gate, pipeline, stats=stats)
    return IngestionService(IngestionConfig(websocket_url="wss://example.invalid"), registry, dispatcher)


class TestResubscribe:

    @pytest.mark.asyncio
    async def test_every_connect_sends_subscriptions(self, service, registry):
        websocket = MagicMock()
        websocket.send = AsyncMock(return_value=True)
        service._websocket = websocket

        await service._handle_connected()
        await service._handle_connected()

        expected = registry.build_subscribe_requests()
        assert [c.args[0] for c in websocket.send.await_args_list] == expected * 2

    @pytest.mark.asyncio
    async def test_connected_without_websocket_is_ignored(self, service):
        # Should not raise
        await service._handle_connected()

        assert service.websocket is None


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, service, fake_connection):
        await service.start()
        service.websocket._open = AsyncMock(return_value=fake_connection())

        assert service.is_running

        await service.stop()

        assert service.state == ServiceState.STOPPED
        assert service.websocket.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("drain", [True, False])
    async def test_stop_drains_only_when_asked(self, service, fake_connection, drain):
        service._dispatcher.drain = AsyncMock()
        await service.start()
        service.websocket._open = AsyncMock(return_value=fake_connection())

        await service.stop(drain=drain)

        assert service._dispatcher.drain.await_count == (1 if drain else 0)
        assert service.state == ServiceState.STOPPED

    @pytest.mark.asyncio
    async def test_retries_exhausted_forwarded(self, registry, gate, pipeline, stats):
        exhausted = AsyncMock()
        dispatcher = EventDispatcher(registry, gate, pipeline, stats=stats)
        service = IngestionService(
            IngestionConfig(websocket_url="wss://example.invalid"),
            registry,
            dispatcher,
            on_retries_exhausted=exhausted,
        )

        await service._handle_retries_exhausted(5)

        exhausted.assert_awaited_once_with(5)
        assert service.state == ServiceState.FAILED

    def test_health_before_start(self, service):
        health = service.health()

        assert not health.healthy
        assert health.connection_state == ConnectionState.DISCONNECTED
