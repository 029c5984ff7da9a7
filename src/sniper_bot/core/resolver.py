"""
Signature -> token mint resolution.

A pool creation transaction moves exactly the new token and the
reference currency (WSOL), so the new mint is whichever token balance
entry is not the reference mint.

Fresh transactions are often not yet visible to the RPC node when the
log notification arrives, so lookups are retried with a fixed delay.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from .retry import retry_async

logger = logging.getLogger(__name__)

WSOL_MINT = "So11111111111111111111111111111111111111112"


class TransactionSource(Protocol):
    """Anything that can fetch a parsed transaction by signature."""

    async def get_transaction(self, signature: str) -> Optional[dict]:
        ...


def extract_mint(meta: dict[str, Any], reference_mint: str = WSOL_MINT) -> Optional[str]:
    """
    Pick the new token's mint out of a transaction's balance changes.

    Post-change balances are used unless absent, then pre-change.

    Rules:
        - 2 entries: the one that is not the reference mint. If both or
          neither are the reference mint, the first entry's mint.
        - any other count: the first non-reference mint, else None.
        - no entries: None.

    Examples:
        >>> extract_mint({"postTokenBalances": [{"mint": WSOL_MINT}, {"mint": "NEW"}]})
        'NEW'
        >>> extract_mint({"postTokenBalances": [{"mint": WSOL_MINT}, {"mint": WSOL_MINT}]})
        'So11111111111111111111111111111111111111112'
    """
    balances = meta.get("postTokenBalances")
    if balances is None:
        balances = meta.get("preTokenBalances")

    if not balances:
        return None

    mints = [entry.get("mint") if isinstance(entry, dict) else None for entry in balances]

    if len(mints) == 2:
        first, second = mints
        if first == reference_mint and second != reference_mint:
            return second
        # Both reference (kept as observed upstream), one non-reference first, or neither
        return first

    for mint in mints:
        if mint and mint != reference_mint:
            return mint

    return None


class IdentifierResolver:
    """
    Resolves a transaction signature to the newly pooled token mint.

    Usage:
        resolver = IdentifierResolver(rpc_client)
        mint = await resolver.resolve(signature)
        if mint is None:
            return  # abandoned
    """

    def __init__(
        self,
        ledger: TransactionSource,
        reference_mint: str = WSOL_MINT,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ) -> None:
        """
        Args:
            ledger: Transaction lookup (SolanaRpcClient in production)
            reference_mint: Counter-asset present in every pool
            max_retries: Total fetch attempts
            retry_delay: Seconds to wait before each retry
        """
        self._ledger = ledger
        self._reference_mint = reference_mint
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    async def resolve(self, signature: Any) -> Optional[str]:
        """
        Resolve a signature to a mint.

        Returns:
            The mint address, or None if the signature is invalid, the
            transaction never became available, or no mint qualifies
        """
        if not isinstance(signature, str) or not signature.strip():
            logger.warning(f"Invalid signature: {signature!r}")
            return None

        async def fetch_meta(attempt: int) -> Optional[dict]:
            tx = await self._ledger.get_transaction(signature)
            if not tx:
                logger.debug(f"Transaction {signature[:16]}... not found (attempt {attempt})")
                return None
            meta = tx.get("meta")
            if not meta:
                logger.debug(f"Transaction {signature[:16]}... has no meta (attempt {attempt})")
                return None
            return meta

        result = await retry_async(
            fetch_meta,
            max_attempts=self._max_retries,
            delay=self._retry_delay,
            label="getTransaction",
        )

        if result.exhausted:
            logger.info(
                f"No transaction metadata for {signature[:16]}... "
                f"after {result.attempts} attempts"
            )
            return None

        mint = extract_mint(result.value, self._reference_mint)
        if mint is None:
            logger.info(f"No token mint in balances of {signature[:16]}...")
        return mint
