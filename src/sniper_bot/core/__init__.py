"""
Core layer: concurrency gate, bounded retry, mint resolution and the
snipe pipeline that ties admission to execution.
"""
from .gate import ConcurrencyGate, PipelineSlot, SlotReleaseError
from .pipeline import CheckMode, PipelineSettings, PipelineStats, SnipePipeline
from .resolver import WSOL_MINT, IdentifierResolver, extract_mint
from .retry import RetryResult, retry_async

__all__ = [
    "CheckMode",
    "ConcurrencyGate",
    "IdentifierResolver",
    "PipelineSettings",
    "PipelineSlot",
    "PipelineStats",
    "RetryResult",
    "SlotReleaseError",
    "SnipePipeline",
    "WSOL_MINT",
    "extract_mint",
    "retry_async",
]
