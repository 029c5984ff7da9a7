"""
Token admission engine.

Runs a token report through the ordered conditions in rules.py, then
through duplicate detection against the token history store. Every
evaluated token is recorded in the history store regardless of the
verdict so relaunches are caught next time.

Failure handling:
    - Report fetch failure: rejected as inconclusive ("Report unavailable")
    - History query failure: logged, duplicate check skipped
    - History insert failure: logged, never affects the verdict
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from sniper_bot.storage.models import HistoryRecord

from .models import TokenHolder, TokenReport
from .rules import (
    AdmissionCondition,
    AdmissionSettings,
    build_conditions,
    filter_lp_holders,
    first_failing_condition,
)

logger = logging.getLogger(__name__)

REPORT_UNAVAILABLE = "Report unavailable"
RETURNING_NAME = "Token with this name was already created"
RETURNING_CREATOR = "Token from this creator was already created"


@dataclass(frozen=True)
class AdmissionResult:
    """Verdict for one token."""

    accepted: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "AdmissionResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "AdmissionResult":
        return cls(accepted=False, reason=reason)


class HistoryStore(Protocol):
    async def query(self, name: str, creator: str) -> Sequence[HistoryRecord]:
        ...

    async def insert(self, record: HistoryRecord) -> None:
        ...


class ReportSource(Protocol):
    async def get_report(self, mint: str) -> Optional[TokenReport]:
        ...


class AdmissionRuleEngine:
    """
    Decides whether a freshly created token may be bought.

    Usage:
        engine = AdmissionRuleEngine(settings, history_store=repo, report_source=rugcheck)
        result = await engine.check(mint)
        if result.accepted:
            ...
    """

    def __init__(
        self,
        settings: Optional[AdmissionSettings] = None,
        history_store: Optional[HistoryStore] = None,
        report_source: Optional[ReportSource] = None,
    ) -> None:
        self.settings = settings or AdmissionSettings()
        self._history = history_store
        self._reports = report_source
        self._conditions = build_conditions(self.settings)

    @property
    def conditions(self) -> tuple[AdmissionCondition, ...]:
        return self._conditions

    async def check(self, mint: str) -> AdmissionResult:
        """Fetch the report for mint and evaluate it."""
        if self._reports is None:
            logger.warning("No report source configured, rejecting token")
            return AdmissionResult.reject(REPORT_UNAVAILABLE)

        try:
            report = await self._reports.get_report(mint)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch report for {mint}: {e}")
            return AdmissionResult.reject(REPORT_UNAVAILABLE)

        if report is None:
            logger.warning(f"Empty report for {mint}")
            return AdmissionResult.reject(REPORT_UNAVAILABLE)

        if not report.mint:
            report = report.model_copy(update={"mint": mint})

        return await self.evaluate(report)

    async def evaluate(self, report: TokenReport) -> AdmissionResult:
        """
        Evaluate a report.

        Ordered conditions first; duplicate detection only when none
        rejected. The token is recorded in history either way.
        """
        settings = self.settings
        creator = report.creator or report.mint

        holders: Sequence[TokenHolder] = report.top_holders
        if settings.exclude_lp_from_topholders:
            holders = filter_lp_holders(report)

        if settings.verbose_logs:
            logger.info(f"Token report for {report.mint}: {report.model_dump_json(by_alias=True)}")

        failed = first_failing_condition(self._conditions, report, holders)
        if failed is not None:
            result = AdmissionResult.reject(failed.reason)
        else:
            result = await self._check_duplicates(report.name, creator)

        await self._record(report, creator)

        if result.accepted:
            logger.info(f"Token {report.mint} ({report.symbol}) passed admission")
        else:
            logger.info(f"Token {report.mint} rejected: {result.reason}")
        return result

    async def _check_duplicates(self, name: str, creator: str) -> AdmissionResult:
        settings = self.settings
        if not settings.duplicate_detection_enabled or self._history is None:
            return AdmissionResult.accept()

        try:
            previous = await self._history.query(name, creator)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error checking for duplicate tokens: {e}")
            return AdmissionResult.accept()

        if settings.block_returning_token_names and any(r.name == name for r in previous):
            return AdmissionResult.reject(RETURNING_NAME)
        if settings.block_returning_token_creators and any(r.creator == creator for r in previous):
            return AdmissionResult.reject(RETURNING_CREATOR)
        return AdmissionResult.accept()

    async def _record(self, report: TokenReport, creator: str) -> None:
        if self._history is None:
            return
        record = HistoryRecord(mint=report.mint, name=report.name, creator=creator)
        try:
            await self._history.insert(record)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Unable to store token {report.mint} in history: {e}")
