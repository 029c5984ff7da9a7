"""
Pydantic models matching the token history schema.
"""
from __future__ import annotations

import time

from pydantic import BaseModel, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


class HistoryRecord(BaseModel):
    """A token seen by the admission engine (tokens table)."""

    time: int = Field(default_factory=_now_ms)  # Unix epoch milliseconds
    mint: str
    name: str
    creator: str
