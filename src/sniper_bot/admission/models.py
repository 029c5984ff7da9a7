"""
Pydantic models for rug check token reports.

Field aliases match the rugcheck.xyz JSON (camelCase); unknown fields
are ignored so API additions never break parsing.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _ReportModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RiskItem(_ReportModel):
    name: str = ""
    description: str = ""
    level: str = ""
    value: str = ""


class TokenHolder(_ReportModel):
    address: str
    pct: float = 0.0
    insider: bool = False


class Market(_ReportModel):
    liquidity_a: Optional[str] = Field(default=None, alias="liquidityA")
    liquidity_b: Optional[str] = Field(default=None, alias="liquidityB")
    liquidity: Optional[float] = None


class TokenInfo(_ReportModel):
    mint_authority: Optional[str] = Field(default=None, alias="mintAuthority")
    freeze_authority: Optional[str] = Field(default=None, alias="freezeAuthority")
    is_initialized: bool = Field(default=False, alias="isInitialized")


class TokenMeta(_ReportModel):
    name: str = ""
    symbol: str = ""
    mutable: bool = True


class TokenReport(_ReportModel):
    """
    Risk and ownership data for one mint.

    Fetched fresh for every mint, never cached.
    """

    mint: str = ""
    score: float = 0.0
    risks: list[RiskItem] = Field(default_factory=list)
    rugged: bool = False
    creator: Optional[str] = None
    token: TokenInfo = Field(default_factory=TokenInfo)
    token_meta: TokenMeta = Field(default_factory=TokenMeta, alias="tokenMeta")
    top_holders: list[TokenHolder] = Field(default_factory=list, alias="topHolders")
    markets: Optional[list[Market]] = None
    total_lp_providers: Optional[int] = Field(default=0, alias="totalLPProviders")

    @property
    def name(self) -> str:
        return self.token_meta.name

    @property
    def symbol(self) -> str:
        return self.token_meta.symbol

    @property
    def market_count(self) -> int:
        return len(self.markets) if self.markets else 0

    def liquidity_addresses(self) -> set[str]:
        """Pool vault addresses declared by the report's markets."""
        addresses: set[str] = set()
        for market in self.markets or []:
            for address in (market.liquidity_a, market.liquidity_b):
                if address:
                    addresses.add(address)
        return addresses
