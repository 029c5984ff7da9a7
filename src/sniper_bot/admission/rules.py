"""
Ordered admission conditions.

Each condition is a (predicate, reason) pair. Conditions are evaluated
in the declared order and the first true predicate rejects the token,
so the order below is part of the behaviour: audit logs and tests rely
on a token with several problems always reporting the same reason.

Order:
    1. Mint authority
    2. Not initialized
    3. Freeze authority
    4. Mutable metadata
    5. Insider top holders
    6. Single holder concentration
    7. LP provider count
    8. Market count
    9. Rugged flag
    10. Risk score
    11. Blocked symbols
    12. Blocked names
    13. "pump" suffix
    14. Per-market liquidity
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .models import TokenHolder, TokenReport

Predicate = Callable[[TokenReport, Sequence[TokenHolder]], bool]


@dataclass
class AdmissionSettings:
    """Thresholds and toggles for token admission."""

    # Dangerous
    allow_mint_authority: bool = False
    allow_freeze_authority: bool = False

    # Critical
    max_allowed_pct_topholders: float = 50.0
    exclude_lp_from_topholders: bool = True
    block_returning_token_names: bool = True
    block_returning_token_creators: bool = True
    allow_insider_topholders: bool = False
    allow_not_initialized: bool = False
    allow_rugged: bool = False
    allow_mutable: bool = False
    block_symbols: list[str] = field(default_factory=lambda: ["XXX"])
    block_names: list[str] = field(default_factory=lambda: ["XXX"])

    # Warning
    min_total_lp_providers: int = 999
    min_total_markets: int = 999
    min_total_market_liquidity: float = 5000.0

    # Misc
    ignore_ends_with_pump: bool = True
    max_score: float = 1.0  # 0 disables the score check
    verbose_logs: bool = False

    @property
    def duplicate_detection_enabled(self) -> bool:
        return self.block_returning_token_names or self.block_returning_token_creators


@dataclass(frozen=True)
class AdmissionCondition:
    """One ordered rejection rule."""

    name: str
    predicate: Predicate
    reason: str

    def rejects(self, report: TokenReport, holders: Sequence[TokenHolder]) -> bool:
        return bool(self.predicate(report, holders))


def ends_with_pump(text: str) -> bool:
    """
    Case-insensitive "pump" suffix check.

    Examples:
        >>> ends_with_pump("9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin")
        False
        >>> ends_with_pump("  AbcPUMP ")
        True
    """
    return bool(text) and text.strip().lower().endswith("pump")


def filter_lp_holders(report: TokenReport) -> list[TokenHolder]:
    """Top holders minus the report's declared pool vault addresses."""
    if not report.markets:
        return list(report.top_holders)
    pools = report.liquidity_addresses()
    return [holder for holder in report.top_holders if holder.address not in pools]


def build_conditions(settings: AdmissionSettings) -> tuple[AdmissionCondition, ...]:
    """Build the ordered condition list for the given settings."""
    s = settings
    return (
        AdmissionCondition(
            "mint_authority",
            lambda r, h: not s.allow_mint_authority and r.token.mint_authority is not None,
            "Mint authority should be null",
        ),
        AdmissionCondition(
            "not_initialized",
            lambda r, h: not s.allow_not_initialized and not r.token.is_initialized,
            "Token is not initialized",
        ),
        AdmissionCondition(
            "freeze_authority",
            lambda r, h: not s.allow_freeze_authority and r.token.freeze_authority is not None,
            "Freeze authority should be null",
        ),
        AdmissionCondition(
            "mutable",
            lambda r, h: not s.allow_mutable and r.token_meta.mutable is not False,
            "Mutable should be false",
        ),
        AdmissionCondition(
            "insider_topholders",
            lambda r, h: not s.allow_insider_topholders and any(x.insider for x in h),
            "Insider accounts should not be part of the top holders",
        ),
        AdmissionCondition(
            "topholder_concentration",
            lambda r, h: any(x.pct > s.max_allowed_pct_topholders for x in h),
            "An individual top holder exceeds the allowed percentage of the total supply",
        ),
        AdmissionCondition(
            "lp_providers",
            lambda r, h: (r.total_lp_providers or 0) < s.min_total_lp_providers,
            "Not enough LP providers",
        ),
        AdmissionCondition(
            "markets",
            lambda r, h: r.market_count < s.min_total_markets,
            "Not enough markets",
        ),
        AdmissionCondition(
            "rugged",
            lambda r, h: not s.allow_rugged and r.rugged,
            "Token is marked as rugged",
        ),
        AdmissionCondition(
            "score",
            lambda r, h: s.max_score > 0 and r.score > s.max_score,
            "Rug score exceeds maximum allowed score",
        ),
        AdmissionCondition(
            "blocked_symbol",
            lambda r, h: r.symbol in s.block_symbols,
            "Token symbol is in the blocked symbols list",
        ),
        AdmissionCondition(
            "blocked_name",
            lambda r, h: r.name in s.block_names,
            "Token name is in the blocked names list",
        ),
        AdmissionCondition(
            "pump_suffix",
            lambda r, h: s.ignore_ends_with_pump and (ends_with_pump(r.name) or ends_with_pump(r.symbol)),
            "Token name or symbol ends with 'pump'",
        ),
        AdmissionCondition(
            "market_liquidity",
            lambda r, h: any(
                (m.liquidity or 0) < s.min_total_market_liquidity for m in r.markets or []
            ),
            "Market liquidity is below minimum required amount",
        ),
    )


def first_failing_condition(
    conditions: Sequence[AdmissionCondition],
    report: TokenReport,
    holders: Sequence[TokenHolder],
) -> Optional[AdmissionCondition]:
    """Return the first condition that rejects, or None if all pass."""
    for condition in conditions:
        if condition.rejects(report, holders):
            return condition
    return None
