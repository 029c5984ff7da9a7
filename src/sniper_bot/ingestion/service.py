"""
Ingestion service orchestrator.

Wires the log stream websocket to the dispatcher and re-sends every
enabled logsSubscribe request after each successful (re)connect, since
subscriptions do not survive a dropped connection.
"""
from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .dispatcher import EventDispatcher
from .models import CloseInfo, ConnectionState
from .subscriptions import SubscriptionRegistry
from .websocket import LogStreamWebSocket

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    """Service lifecycle state."""
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


@dataclass
class IngestionConfig:
    """Configuration for the ingestion service."""

    websocket_url: str = ""
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    max_retries: Optional[int] = None
    drain_timeout: float = 10.0

    # Health check
    max_message_age_seconds: float = 120.0


@dataclass
class HealthStatus:
    healthy: bool
    state: ServiceState
    connection_state: ConnectionState
    retry_count: int
    last_message_age_seconds: Optional[float]
    in_flight: int
    details: dict[str, Any] = field(default_factory=dict)


class IngestionService:
    """
    Owns the websocket lifecycle for the bot.

    Usage:
        service = IngestionService(config, registry, dispatcher)
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        config: IngestionConfig,
        registry: SubscriptionRegistry,
        dispatcher: EventDispatcher,
        on_retries_exhausted: Optional[Callable[[int], Any]] = None,
    ):
        self._config = config
        self._registry = registry
        self._dispatcher = dispatcher
        self._external_exhausted = on_retries_exhausted

        self._state = ServiceState.STOPPED
        self._websocket: Optional[LogStreamWebSocket] = None

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def websocket(self) -> Optional[LogStreamWebSocket]:
        return self._websocket

    @property
    def is_running(self) -> bool:
        return self._state == ServiceState.RUNNING

    async def start(self) -> None:
        if self._state != ServiceState.STOPPED:
            logger.warning(f"Cannot start: already in state {self._state.value}")
            return

        logger.info(
            f"Starting ingestion: {len(self._registry.enabled)} enabled subscription(s)"
        )
        self._websocket = LogStreamWebSocket(
            self._config.websocket_url,
            on_message=self._dispatcher.handle_message,
            on_connected=self._handle_connected,
            on_disconnected=self._handle_disconnected,
            on_error=self._handle_error,
            on_retries_exhausted=self._handle_retries_exhausted,
            initial_backoff=self._config.initial_backoff,
            max_backoff=self._config.max_backoff,
            max_retries=self._config.max_retries,
        )
        await self._websocket.connect()
        self._state = ServiceState.RUNNING

    async def stop(self, drain: bool = True) -> None:
        """
        Stop reconnecting and close the socket.

        Args:
            drain: Also wait for (then cancel) in-flight pipelines. A restart
                passes False so pipelines outlive the stream they came from.
        """
        if self._state in (ServiceState.STOPPED, ServiceState.STOPPING):
            return

        logger.info("Stopping ingestion service...")
        self._state = ServiceState.STOPPING

        if self._websocket is not None:
            try:
                await self._websocket.disconnect()
            except Exception as e:
                logger.warning(f"Error stopping WebSocket: {e}")

        if drain:
            await self._dispatcher.drain(self._config.drain_timeout)

        self._state = ServiceState.STOPPED
        logger.info("Ingestion service stopped")

    def health(self) -> HealthStatus:
        ws = self._websocket
        connection_state = ws.state if ws else ConnectionState.DISCONNECTED

        age = None
        if ws and ws.last_message_time is not None:
            age = time.monotonic() - ws.last_message_time

        healthy = (
            self._state == ServiceState.RUNNING
            and connection_state == ConnectionState.CONNECTED
            and (age is None or age < self._config.max_message_age_seconds)
        )
        return HealthStatus(
            healthy=healthy,
            state=self._state,
            connection_state=connection_state,
            retry_count=ws.retry_count if ws else 0,
            last_message_age_seconds=age,
            in_flight=self._dispatcher.in_flight,
        )

    async def _handle_connected(self) -> None:
        ws = self._websocket
        if ws is None:
            logger.warning("Connected callback without a websocket, skipping subscriptions")
            return
        logger.info("Log stream connected, subscribing...")
        for request in self._registry.build_subscribe_requests():
            sent = await ws.send(request)
            if not sent:
                logger.warning(f"Failed to send subscription {request['id']}")

    def _handle_disconnected(self, info: CloseInfo) -> None:
        logger.warning(f"Log stream closed (code={info.code}, reason={info.reason!r})")

    def _handle_error(self, error: Exception) -> None:
        logger.error(f"Log stream error: {error}")

    async def _handle_retries_exhausted(self, retries: int) -> None:
        logger.error(f"Log stream gave up after {retries} reconnect attempts")
        self._state = ServiceState.FAILED
        if self._external_exhausted is not None:
            result = self._external_exhausted(retries)
            if inspect.isawaitable(result):
                await result
