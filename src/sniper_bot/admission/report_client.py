"""
rugcheck.xyz token report client.
"""
from __future__ import annotations

import logging
from typing import Optional

import aiohttp
from pydantic import ValidationError

from sniper_bot.http_client import ApiError, JsonApiClient

from .models import TokenReport

logger = logging.getLogger(__name__)

RUGCHECK_BASE_URL = "https://api.rugcheck.xyz/v1"


class RugCheckClient(JsonApiClient):
    """Fetches a fresh risk report for a mint. Reports are never cached."""

    def __init__(
        self,
        base_url: str = RUGCHECK_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
        max_retries: int = 2,
    ):
        super().__init__(session=session, timeout=timeout, max_retries=max_retries)
        self._base_url = base_url.rstrip("/")

    async def get_report(self, mint: str) -> Optional[TokenReport]:
        """
        Get the token report for mint.

        Returns:
            TokenReport, or None if the API returned an empty body

        Raises:
            ApiError: On HTTP failure or an unparseable report
        """
        data = await self._request("GET", f"{self._base_url}/tokens/{mint}/report")
        if not data:
            return None
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected report payload for {mint}: {type(data).__name__}")

        try:
            report = TokenReport.model_validate(data)
        except ValidationError as e:
            raise ApiError(f"Invalid report for {mint}: {e.error_count()} errors") from e

        if not report.mint:
            report.mint = mint
        logger.debug(f"Report for {mint}: score={report.score} rugged={report.rugged}")
        return report
