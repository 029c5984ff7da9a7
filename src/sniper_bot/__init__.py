"""
Solana liquidity pool sniper.

Layers:
    ingestion  - log stream connection, subscriptions, dispatch
    core       - concurrency gate, retry, mint resolution, pipeline
    admission  - token report rules and duplicate detection
    storage    - token history (PostgreSQL)
    execution  - Sniperoo buy client
    monitoring - Telegram alerts
"""

__version__ = "0.1.0"
