"""
Resilient WebSocket client for the Solana log subscription stream.

Features:
    - Explicit connection state machine (see ConnectionState)
    - Auto-reconnect with capped exponential backoff
    - Optional retry budget with a distinct "retries exhausted" signal
    - Optimistic JSON parsing of every frame (raw text on failure)
    - Observer callbacks for lifecycle and inbound messages

Resubscription is NOT handled here. Subscribers re-send their requests
from the on_connected callback, which fires after every (re)connect.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from .models import CloseInfo, ConnectionState, StateChange

logger = logging.getLogger(__name__)


# Callbacks may be plain functions or coroutines
MessageCallback = Callable[[Any], Union[None, Awaitable[None]]]
StateCallback = Callable[[StateChange], Union[None, Awaitable[None]]]
ConnectedCallback = Callable[[], Union[None, Awaitable[None]]]
DisconnectedCallback = Callable[[CloseInfo], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[None]]]
ExhaustedCallback = Callable[[int], Union[None, Awaitable[None]]]


def compute_backoff(retry_count: int, initial: float, maximum: float) -> float:
    """
    Delay before reconnect attempt number retry_count (1-based).

    Examples:
        >>> [compute_backoff(n, 1.0, 30.0) for n in range(1, 7)]
        [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]
    """
    if retry_count < 1:
        raise ValueError(f"retry_count must be >= 1, got {retry_count}")
    return min(initial * (2 ** (retry_count - 1)), maximum)


class LogStreamWebSocket:
    """
    Owns one persistent streaming connection.

    State machine:
        DISCONNECTED -> CONNECTING       connect()
        CONNECTING   -> CONNECTED        handshake ok, retry count reset
        CONNECTING   -> ERROR            handshake failed
        CONNECTED    -> RECONNECTING     unexpected close
        CONNECTED    -> ERROR            transport error
        ERROR        -> RECONNECTING     unless already DISCONNECTED
        RECONNECTING -> CONNECTING       after backoff delay
        any          -> DISCONNECTED     disconnect() or retry budget exhausted

    Usage:
        async def handle(message):
            print(message)

        ws = LogStreamWebSocket(url, on_message=handle)
        await ws.connect()
        ...
        await ws.disconnect()
    """

    def __init__(
        self,
        url: str,
        on_message: MessageCallback,
        on_state_change: Optional[StateCallback] = None,
        on_connected: Optional[ConnectedCallback] = None,
        on_disconnected: Optional[DisconnectedCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_retries_exhausted: Optional[ExhaustedCallback] = None,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        max_retries: Optional[int] = None,
        ping_interval: float = 20.0,
        ping_timeout: float = 10.0,
    ):
        """
        Initialize the client.

        Args:
            url: WebSocket endpoint (ws:// or wss://)
            on_message: Called with every parsed inbound frame
            on_state_change: Called with every StateChange
            on_connected: Called after each successful handshake
            on_disconnected: Called after an unexpected close
            on_error: Called with transport/handshake errors
            on_retries_exhausted: Called once when the retry budget runs out
            initial_backoff: Delay in seconds before the first reconnect
            max_backoff: Upper bound for the reconnect delay
            max_retries: Reconnect budget; None for unlimited
            ping_interval: Protocol-level keepalive interval
            ping_timeout: Protocol-level keepalive timeout
        """
        self._url = url
        self._on_message = on_message
        self._on_state_change = on_state_change
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._on_error = on_error
        self._on_retries_exhausted = on_retries_exhausted

        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._max_retries = max_retries
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout

        self._state = ConnectionState.DISCONNECTED
        self._ws: Optional[websockets.WebSocketClientProtocol] = None
        self._retry_count = 0
        self._run_task: Optional[asyncio.Task] = None
        self._last_message_time: Optional[float] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def retry_count(self) -> int:
        """Reconnect attempts since the last successful handshake."""
        return self._retry_count

    @property
    def last_message_time(self) -> Optional[float]:
        """Event loop time of the last received frame."""
        return self._last_message_time

    # =========================================================================
    # Public API
    # =========================================================================

    async def connect(self) -> None:
        """
        Begin establishing the stream.

        Returns as soon as the supervisor task is scheduled; the
        handshake result is reported through state changes.
        """
        if self._state != ConnectionState.DISCONNECTED:
            logger.warning(f"Already {self._state.value}, ignoring connect()")
            return

        self._retry_count = 0
        await self._set_state(ConnectionState.CONNECTING)
        logger.info(f"Connecting to {self._url}...")
        self._run_task = asyncio.create_task(self._run())

    async def send(self, payload: Union[dict, str]) -> bool:
        """
        Send a frame if connected.

        Returns:
            True if the frame was written, False otherwise (never raises)
        """
        if self._state != ConnectionState.CONNECTED or self._ws is None:
            logger.error("Cannot send data: WebSocket not connected")
            return False

        try:
            message = payload if isinstance(payload, str) else json.dumps(payload)
            await self._ws.send(message)
            logger.debug(f"Sent: {message}")
            return True
        except Exception as e:
            logger.error(f"Failed to send data: {e}")
            return False

    async def disconnect(self) -> None:
        """
        Stop the stream.

        Cancels any pending reconnect, closes the socket and forces
        DISCONNECTED regardless of the current state.
        """
        logger.info("Disconnecting WebSocket...")
        task = self._run_task
        self._run_task = None

        # Set first so a concurrent close is not treated as unexpected
        await self._set_state(ConnectionState.DISCONNECTED)
        self._retry_count = 0

        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Connection task ended with error: {e}")

        ws = self._ws
        self._ws = None
        if ws is not None:
            await self._close_socket(ws)

    # =========================================================================
    # Connection supervisor
    # =========================================================================

    async def _run(self) -> None:
        """Connect, receive, and reconnect until DISCONNECTED."""
        while self._state != ConnectionState.DISCONNECTED:
            try:
                ws = await self._open()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to connect: {e}")
                await self._handle_transport_error(e)
            else:
                await self._handle_open(ws)
                try:
                    close_info = await self._receive_loop(ws)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Error in receive loop: {e}")
                    self._ws = None
                    await self._close_socket(ws)
                    await self._handle_transport_error(e)
                else:
                    self._ws = None
                    if self._state == ConnectionState.DISCONNECTED:
                        return
                    await self._set_state(ConnectionState.RECONNECTING)
                    await self._emit(self._on_disconnected, close_info)

            if not await self._wait_for_retry():
                return
            await self._set_state(ConnectionState.CONNECTING)

    async def _open(self) -> Any:
        return await websockets.connect(
            self._url,
            ping_interval=self._ping_interval,
            ping_timeout=self._ping_timeout,
            close_timeout=5,
        )

    async def _handle_open(self, ws: Any) -> None:
        self._ws = ws
        self._retry_count = 0
        self._last_message_time = asyncio.get_running_loop().time()
        await self._set_state(ConnectionState.CONNECTED)
        logger.info(f"Connected to {self._url}")
        await self._emit(self._on_connected)

    async def _handle_transport_error(self, error: Exception) -> None:
        if self._state == ConnectionState.DISCONNECTED:
            return
        await self._set_state(ConnectionState.ERROR)
        await self._emit(self._on_error, error)
        # The error callback may have called disconnect()
        if self._state != ConnectionState.DISCONNECTED:
            await self._set_state(ConnectionState.RECONNECTING)

    async def _wait_for_retry(self) -> bool:
        """
        Sleep for the next backoff delay.

        Returns:
            False if the manager should stop (explicit disconnect or
            retry budget exhausted), True to attempt another connect.
        """
        if self._state == ConnectionState.DISCONNECTED:
            return False

        if self._max_retries is not None and self._retry_count >= self._max_retries:
            logger.error(
                f"Maximum retry attempts ({self._max_retries}) reached. Giving up."
            )
            await self._set_state(ConnectionState.DISCONNECTED)
            await self._emit(self._on_retries_exhausted, self._retry_count)
            return False

        self._retry_count += 1
        delay = compute_backoff(self._retry_count, self._initial_backoff, self._max_backoff)
        budget = self._max_retries if self._max_retries is not None else "unlimited"
        logger.info(f"Attempting reconnect {self._retry_count}/{budget} in {delay:.1f}s...")

        await asyncio.sleep(delay)
        return self._state != ConnectionState.DISCONNECTED

    async def _receive_loop(self, ws: Any) -> CloseInfo:
        """Read frames until the connection closes."""
        try:
            while True:
                raw = await ws.recv()
                self._last_message_time = asyncio.get_running_loop().time()
                await self._handle_frame(raw)

        except ConnectionClosedOK as e:
            logger.info("WebSocket closed normally")
            return _close_info(e)

        except ConnectionClosed as e:
            logger.warning(f"WebSocket connection closed: {e}")
            return _close_info(e)

    async def _handle_frame(self, raw: Union[str, bytes]) -> None:
        """Decode a frame and hand it to on_message. Never raises."""
        try:
            if isinstance(raw, (bytes, bytearray)):
                text = raw.decode("utf-8", errors="replace")
            else:
                text = str(raw)

            try:
                data: Any = json.loads(text)
            except ValueError:
                data = text

        except Exception as e:
            logger.error(f"Error processing message: {e}")
            return

        await self._emit(self._on_message, data)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _close_socket(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")

    async def _set_state(self, state: ConnectionState) -> None:
        """Update state and notify the state callback."""
        if self._state == state:
            return
        change = StateChange(from_state=self._state, to_state=state)
        self._state = state
        logger.info(f"WebSocket state: {change.from_state.value} -> {state.value}")
        await self._emit(self._on_state_change, change)

    async def _emit(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        """Invoke a callback, logging instead of propagating its errors."""
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            name = getattr(callback, "__name__", repr(callback))
            logger.error(f"Error in {name} callback: {e}")


def _close_info(exc: ConnectionClosed) -> CloseInfo:
    rcvd = getattr(exc, "rcvd", None)
    if rcvd is None:
        return CloseInfo()
    return CloseInfo(code=rcvd.code, reason=rcvd.reason or "")
