"""
Routes inbound stream messages to snipe pipelines.

Message handling itself is sequential (called from the websocket
receive loop). Each matched event gets its own asyncio.Task while
holding a gate slot; when the gate is full the event is dropped, never
queued.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from sniper_bot.core.gate import ConcurrencyGate, PipelineSlot
from sniper_bot.core.pipeline import PipelineStats

from .models import InboundMessage, MessageKind
from .subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)

PipelineCallable = Callable[[str], Awaitable[Any]]


class EventDispatcher:
    """
    Classifies messages, filters log events and launches pipelines.

    Usage:
        dispatcher = EventDispatcher(registry, gate, pipeline.process)
        ws = LogStreamWebSocket(url, on_message=dispatcher.handle_message)
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        gate: ConcurrencyGate,
        pipeline: PipelineCallable,
        stats: Optional[PipelineStats] = None,
    ) -> None:
        self._registry = registry
        self._gate = gate
        self._pipeline = pipeline
        self.stats = stats or PipelineStats()
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def handle_message(self, payload: Any) -> Optional[asyncio.Task]:
        """
        Handle one parsed inbound frame.

        Returns:
            The pipeline task if one was started, else None
        """
        message = InboundMessage.classify(payload)

        if message.kind == MessageKind.ACK:
            logger.info(f"Subscription confirmed for ID: {payload.get('id')}")
            return None

        if message.kind == MessageKind.RPC_ERROR:
            logger.error(f"RPC error from stream: {payload.get('error')}")
            return None

        if message.kind != MessageKind.LOG_EVENT or message.event is None:
            logger.debug(f"Ignoring unrecognized message: {str(payload)[:200]}")
            return None

        event = message.event
        if not event.logs:
            return None

        signature = event.signature
        if not isinstance(signature, str) or not signature:
            return None

        if not self._registry.matches(event.logs):
            return None

        self.stats.matched += 1
        slot = self._gate.try_acquire()
        if slot is None:
            self.stats.dropped_busy += 1
            logger.info(f"Max concurrent transactions reached, skipping {signature}")
            return None

        task = asyncio.create_task(self._run(signature, slot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, signature: str, slot: PipelineSlot) -> None:
        try:
            await self._pipeline(signature)
        except asyncio.CancelledError:
            logger.debug(f"Pipeline for {signature} cancelled")
            raise
        except Exception as e:
            self.stats.errors += 1
            logger.exception(f"Unhandled pipeline error for {signature}: {e}")
        finally:
            self._gate.release(slot)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait up to timeout for in-flight pipelines, then cancel the rest."""
        if not self._tasks:
            return

        pending = set(self._tasks)
        logger.info(f"Waiting for {len(pending)} in-flight pipeline(s)...")
        done, still_pending = await asyncio.wait(pending, timeout=timeout)

        if still_pending:
            logger.warning(f"Cancelling {len(still_pending)} pipeline(s) after {timeout}s")
            for task in still_pending:
                task.cancel()
            await asyncio.gather(*still_pending, return_exceptions=True)
