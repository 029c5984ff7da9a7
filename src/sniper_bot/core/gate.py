"""
Concurrency gate for admission pipelines.

Caps how many resolve-and-admit pipelines run at once. Acquisition never
waits: a full gate rejects immediately and the caller drops the event.
"""
from __future__ import annotations

import itertools
import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class SlotReleaseError(RuntimeError):
    """A slot was released twice or released to the wrong gate."""
    pass


class PipelineSlot:
    """
    Ownership token for one in-flight pipeline.

    Consumed once: the owning gate marks it released and refuses a
    second release.
    """

    __slots__ = ("slot_id", "_gate", "_released")

    def __init__(self, slot_id: int, gate: "ConcurrencyGate") -> None:
        self.slot_id = slot_id
        self._gate = gate
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"PipelineSlot(id={self.slot_id}, {state})"


class ConcurrencyGate:
    """
    Non-blocking, capacity-limited slot issuer.

    Usage:
        gate = ConcurrencyGate(capacity=1)
        slot = gate.try_acquire()
        if slot is None:
            return  # busy, drop
        try:
            await run_pipeline()
        finally:
            gate.release(slot)
    """

    def __init__(self, capacity: int = 1) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._in_use = 0
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self._capacity - self._in_use

    def try_acquire(self) -> Optional[PipelineSlot]:
        """Return a slot, or None if the gate is full."""
        with self._lock:
            if self._in_use >= self._capacity:
                return None
            self._in_use += 1
            return PipelineSlot(next(self._ids), self)

    def release(self, slot: PipelineSlot) -> None:
        """
        Return a slot's capacity to the gate.

        Raises:
            SlotReleaseError: If the slot was already released or
                belongs to another gate
        """
        with self._lock:
            if slot._gate is not self:
                raise SlotReleaseError(f"{slot!r} was not issued by this gate")
            if slot._released:
                raise SlotReleaseError(f"{slot!r} already released")
            slot._released = True
            self._in_use -= 1
