"""
Solana JSON-RPC client (HTTP).

Only the two ledger lookups the pipeline needs:
    - getTransaction: balance changes of a pool creation transaction
    - getAccountInfo: mint/freeze authorities of a token mint
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from sniper_bot.http_client import ApiError, JsonApiClient

logger = logging.getLogger(__name__)


class RpcError(ApiError):
    """The RPC node answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class MintAuthorities:
    """Authority state of a token mint account."""

    mint_authority: Optional[str]
    freeze_authority: Optional[str]

    @property
    def is_secure(self) -> bool:
        return self.mint_authority is None and self.freeze_authority is None


class SolanaRpcClient(JsonApiClient):
    """
    Async Solana JSON-RPC client.

    Usage:
        async with SolanaRpcClient(rpc_url) as rpc:
            tx = await rpc.get_transaction(signature)
    """

    def __init__(
        self,
        url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
        max_retries: int = 2,
        commitment: str = "confirmed",
    ):
        super().__init__(session=session, timeout=timeout, max_retries=max_retries)
        self._url = url
        self._commitment = commitment
        self._ids = itertools.count(1)

    @property
    def url(self) -> str:
        return self._url

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        data = await self._request("POST", self._url, json=payload)

        if not isinstance(data, dict):
            raise RpcError(f"{method}: unexpected response type {type(data).__name__}")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(f"{method}: {error.get('message')}", code=error.get("code"))
            raise RpcError(f"{method}: {error}")

        return data.get("result")

    async def get_transaction(self, signature: str) -> Optional[dict]:
        """
        Fetch a parsed transaction.

        Returns:
            The transaction dict, or None if the node does not have it yet
        """
        result = await self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self._commitment,
                },
            ],
        )
        return result if isinstance(result, dict) else None

    async def get_mint_authorities(self, mint: str) -> Optional[MintAuthorities]:
        """
        Read mint and freeze authority from a mint account.

        Returns:
            MintAuthorities, or None if the account is missing or not a
            parsed SPL mint
        """
        result = await self._rpc(
            "getAccountInfo",
            [mint, {"encoding": "jsonParsed", "commitment": self._commitment}],
        )
        if not isinstance(result, dict):
            return None

        value = result.get("value")
        if not isinstance(value, dict):
            return None

        data = value.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None
        info = parsed.get("info") if isinstance(parsed, dict) else None
        if not isinstance(info, dict):
            logger.debug(f"Account {mint} is not a parsed mint")
            return None

        return MintAuthorities(
            mint_authority=info.get("mintAuthority"),
            freeze_authority=info.get("freezeAuthority"),
        )
