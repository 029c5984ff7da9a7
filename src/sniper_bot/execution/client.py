"""
Sniperoo buy client.

Single buy-token call with optional auto-sell (take profit / stop loss)
handled on the Sniperoo side. The buy is never retried: a timeout after
the request was sent could otherwise buy twice.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from sniper_bot.http_client import ApiError, JsonApiClient

logger = logging.getLogger(__name__)

SNIPEROO_BUY_URL = "https://api.sniperoo.app/trading/buy-token?toastFrontendId=0"


class SniperooClient(JsonApiClient):
    """
    Executes buys through the Sniperoo trading API.

    Usage:
        async with SniperooClient(api_key, wallet_pubkey) as client:
            ok = await client.execute(mint, 0.05, True, 50, 15)
    """

    def __init__(
        self,
        api_key: str,
        wallet_pubkey: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
        buy_url: str = SNIPEROO_BUY_URL,
    ):
        super().__init__(session=session, timeout=timeout, max_retries=1)
        self._api_key = api_key
        self._wallet_pubkey = wallet_pubkey
        self._buy_url = buy_url

    def build_buy_request(
        self,
        mint: str,
        amount: float,
        enable_auto_close: bool,
        take_profit_pct: float,
        stop_loss_pct: float,
    ) -> dict:
        # Auto-sell needs both targets
        if not take_profit_pct or not stop_loss_pct:
            enable_auto_close = False

        return {
            "walletAddresses": [self._wallet_pubkey],
            "tokenAddress": mint,
            "inputAmount": amount,
            "isBuying": True,
            "autoSell": {
                "enabled": enable_auto_close,
                "strategy": {
                    "strategyName": "simple",
                    "profitPercentage": take_profit_pct,
                    "stopLossPercentage": stop_loss_pct,
                },
            },
        }

    async def execute(
        self,
        mint: str,
        amount: float,
        enable_auto_close: bool = False,
        take_profit_pct: float = 0,
        stop_loss_pct: float = 0,
    ) -> bool:
        """
        Buy `amount` SOL worth of `mint`.

        Returns:
            True if the API accepted the buy, False on invalid input or any error
        """
        if not isinstance(mint, str) or not mint.strip():
            logger.warning("Refusing to buy: empty mint")
            return False
        if amount <= 0:
            logger.warning(f"Refusing to buy {mint}: amount must be positive, got {amount}")
            return False

        body = self.build_buy_request(
            mint, amount, enable_auto_close, take_profit_pct, stop_loss_pct
        )
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            await self._request("POST", self._buy_url, json=body, headers=headers)
        except asyncio.CancelledError:
            raise
        except ApiError as e:
            logger.error(f"Sniperoo API error ({e.status_code or 'unknown'}): {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error buying {mint}: {e}")
            return False

        logger.info(f"Buy order accepted for {mint} ({amount} SOL)")
        return True
