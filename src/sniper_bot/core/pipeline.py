"""
Snipe pipeline: signature -> mint -> admission -> buy.

One pipeline run per matched pool-creation event. Every failure inside
a run is logged and abandons that event only; nothing here raises to
the dispatcher.

Check modes:
    none  - buy every resolved mint
    snipe - on-chain mint/freeze authority check only
    full  - "pump" mint suffix pre-check, then full report admission
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from sniper_bot.admission.rules import AdmissionSettings, ends_with_pump
from sniper_bot.monitoring.alerting import play_sound

logger = logging.getLogger(__name__)


class CheckMode(str, Enum):
    NONE = "none"
    SNIPE = "snipe"
    FULL = "full"


@dataclass
class PipelineStats:
    """Event counters, logged periodically by the bot."""

    matched: int = 0
    dropped_busy: int = 0
    resolved: int = 0
    unresolved: int = 0
    accepted: int = 0
    rejected: int = 0
    executed: int = 0
    execution_failed: int = 0
    errors: int = 0

    def snapshot(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class PipelineSettings:
    check_mode: CheckMode = CheckMode.FULL
    simulation_mode: bool = False
    buy_amount_sol: float = 0.05
    sell_enabled: bool = False
    take_profit_pct: float = 50.0
    stop_loss_pct: float = 15.0
    play_sound: bool = False
    admission: AdmissionSettings = field(default_factory=AdmissionSettings)


class MintResolver(Protocol):
    async def resolve(self, signature: Any) -> Optional[str]:
        ...


class Executor(Protocol):
    async def execute(
        self,
        mint: str,
        amount: float,
        enable_auto_close: bool = False,
        take_profit_pct: float = 0,
        stop_loss_pct: float = 0,
    ) -> bool:
        ...


class SnipePipeline:
    """
    Runs one matched signature through resolve, check and buy.

    Usage:
        pipeline = SnipePipeline(resolver, executor, settings, engine=engine)
        await pipeline.process(signature)
    """

    def __init__(
        self,
        resolver: MintResolver,
        executor: Optional[Executor],
        settings: Optional[PipelineSettings] = None,
        engine: Optional[Any] = None,
        authority_source: Optional[Any] = None,
        alerts: Optional[Any] = None,
        stats: Optional[PipelineStats] = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.stats = stats or PipelineStats()
        self._resolver = resolver
        self._executor = executor
        self._engine = engine
        self._authorities = authority_source
        self._alerts = alerts
        self._background: set[asyncio.Task] = set()

    async def __call__(self, signature: str) -> bool:
        return await self.process(signature)

    async def process(self, signature: str) -> bool:
        """
        Process one pool-creation signature.

        Returns:
            True if a buy was executed
        """
        try:
            return await self._process(signature)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.stats.errors += 1
            logger.exception(f"Pipeline error for {signature}: {e}")
            return False

    async def _process(self, signature: str) -> bool:
        logger.info(f"New liquidity pool signature found: https://solscan.io/tx/{signature}")

        mint = await self._resolver.resolve(signature)
        if not mint:
            self.stats.unresolved += 1
            logger.info(f"No valid token mint could be extracted from {signature}")
            return False

        self.stats.resolved += 1
        logger.info(f"Token mint extracted: {mint}")

        if self._alerts is not None:
            self._notify(self._alerts.alert_new_token, mint, signature)

        if not await self._admit(mint):
            self.stats.rejected += 1
            return False
        self.stats.accepted += 1

        settings = self.settings
        if settings.simulation_mode or self._executor is None:
            logger.warning(f"Token {mint} not bought: simulation mode is on")
            return False

        logger.info(f"Sniping token {mint} for {settings.buy_amount_sol} SOL")
        ok = await self._executor.execute(
            mint,
            settings.buy_amount_sol,
            settings.sell_enabled,
            settings.take_profit_pct,
            settings.stop_loss_pct,
        )
        if not ok:
            self.stats.execution_failed += 1
            logger.warning(f"Token {mint} not bought: execution failed")
            return False

        self.stats.executed += 1
        logger.info(f"Token {mint} bought successfully")
        if settings.play_sound:
            play_sound()
        if self._alerts is not None:
            self._notify(self._alerts.alert_token_bought, mint, settings.buy_amount_sol)
        return True

    async def _admit(self, mint: str) -> bool:
        mode = self.settings.check_mode
        if mode == CheckMode.NONE:
            return True

        if mode == CheckMode.SNIPE:
            return await self._check_authorities(mint)

        admission = self.settings.admission
        if admission.ignore_ends_with_pump and ends_with_pump(mint):
            logger.info(f"Token {mint} ends with pump, skipping")
            return False

        if self._engine is None:
            logger.warning(f"No admission engine configured, skipping {mint}")
            return False

        result = await self._engine.check(mint)
        if not result.accepted:
            logger.info(f"Full check not passed for {mint}: {result.reason}")
        return result.accepted

    async def _check_authorities(self, mint: str) -> bool:
        if self._authorities is None:
            logger.warning(f"No mint account source configured, skipping {mint}")
            return False

        authorities = await self._authorities.get_mint_authorities(mint)
        if authorities is None:
            logger.info(f"Mint account for {mint} unavailable, skipping")
            return False

        admission = self.settings.admission
        if not admission.allow_mint_authority and authorities.mint_authority is not None:
            logger.info(f"Token {mint} has mint authority, skipping")
            return False
        if not admission.allow_freeze_authority and authorities.freeze_authority is not None:
            logger.info(f"Token {mint} has freeze authority, skipping")
            return False
        return True

    def _notify(self, send: Callable[..., Any], *args: Any) -> None:
        """Run a blocking notification in a thread without awaiting it."""
        task = asyncio.create_task(asyncio.to_thread(send, *args))
        self._background.add(task)
        task.add_done_callback(self._notification_done)

    def _notification_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Notification failed: {error}")
