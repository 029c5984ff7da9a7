"""
Ingestion layer: the Solana log stream and everything that turns its
messages into pipeline runs.

Public API:
    LogStreamWebSocket - Reconnecting websocket connection manager
    SubscriptionRegistry, Subscription - Watched programs and match texts
    EventDispatcher - Message classification, filtering and gating
    IngestionService - Lifecycle wiring (subscribe on every connect)
    SolanaRpcClient - JSON-RPC ledger lookups
"""
from .client import MintAuthorities, RpcError, SolanaRpcClient
from .dispatcher import EventDispatcher
from .models import ConnectionState, InboundMessage, LogEvent, MessageKind, StateChange
from .service import IngestionConfig, IngestionService
from .subscriptions import DEFAULT_SUBSCRIPTIONS, Subscription, SubscriptionRegistry
from .websocket import LogStreamWebSocket, compute_backoff

__all__ = [
    "ConnectionState",
    "DEFAULT_SUBSCRIPTIONS",
    "EventDispatcher",
    "InboundMessage",
    "IngestionConfig",
    "IngestionService",
    "LogEvent",
    "LogStreamWebSocket",
    "MessageKind",
    "MintAuthorities",
    "RpcError",
    "SolanaRpcClient",
    "StateChange",
    "Subscription",
    "SubscriptionRegistry",
    "compute_backoff",
]
