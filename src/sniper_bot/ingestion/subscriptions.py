"""
Watched liquidity pool programs.

Each Subscription pairs a program address (the logsSubscribe "mentions"
filter) with the log text that marks a new pool. The registry is loaded
once at startup and never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Subscription:
    """A watched program and the log line that identifies a pool creation."""

    id: str
    name: str
    program: str
    match_text: str
    enabled: bool = True


DEFAULT_SUBSCRIPTIONS: tuple[Subscription, ...] = (
    Subscription(
        id="pump1",
        name="pumpswap",
        program="6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
        match_text="Program log: Instruction: CreatePool",
        enabled=True,
    ),
    Subscription(
        id="rad1",
        name="Raydium",
        program="6EFBrrcethRSDBkzoznN8uv78hRvfcKJubJ14MSuBEwF6P",
        match_text="Program log: initialize2: InitializeInstruction2",
        enabled=False,
    ),
)


class SubscriptionRegistry:
    """
    Read-only table of watched sources.

    Usage:
        registry = SubscriptionRegistry(DEFAULT_SUBSCRIPTIONS)
        for request in registry.build_subscribe_requests():
            await ws.send(request)
    """

    def __init__(
        self,
        subscriptions: Iterable[Subscription] = DEFAULT_SUBSCRIPTIONS,
        commitment: str = "processed",
    ) -> None:
        self._subscriptions = tuple(subscriptions)
        self._commitment = commitment

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return self._subscriptions

    @property
    def enabled(self) -> tuple[Subscription, ...]:
        return tuple(s for s in self._subscriptions if s.enabled)

    def match_texts(self) -> tuple[str, ...]:
        """Match criteria of every enabled subscription."""
        return tuple(s.match_text for s in self.enabled)

    def matches(self, logs: Iterable[object]) -> bool:
        """True if any enabled match text appears in any log line."""
        texts = self.match_texts()
        if not texts:
            return False
        lines = [line for line in logs if isinstance(line, str)]
        return any(text in line for text in texts for line in lines)

    def build_subscribe_requests(self) -> list[dict]:
        """One logsSubscribe request per enabled subscription."""
        return [
            {
                "jsonrpc": "2.0",
                "id": sub.id,
                "method": "logsSubscribe",
                "params": [
                    {"mentions": [sub.program]},
                    {"commitment": self._commitment},
                ],
            }
            for sub in self.enabled
        ]
