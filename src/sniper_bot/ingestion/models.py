"""
Data models for the ingestion layer.

Connection lifecycle types and the classification of inbound
JSON-RPC frames received on the log subscription stream.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ConnectionState(str, Enum):
    """Streaming connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"


@dataclass(frozen=True)
class StateChange:
    """A single connection state transition."""

    from_state: ConnectionState
    to_state: ConnectionState


@dataclass(frozen=True)
class CloseInfo:
    """Details of an unexpected connection close."""

    code: Optional[int] = None
    reason: str = ""


class MessageKind(str, Enum):
    """Classification of an inbound stream message."""
    ACK = "ack"
    RPC_ERROR = "rpc_error"
    LOG_EVENT = "log_event"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class LogEvent:
    """
    A log notification from a logsSubscribe stream.

    logs is the ordered list of program log lines; signature is the
    originating transaction signature. Neither is validated here.
    """

    logs: list[Any]
    signature: Any


@dataclass(frozen=True)
class InboundMessage:
    """A classified inbound message."""

    kind: MessageKind
    payload: Any
    event: Optional[LogEvent] = None

    @classmethod
    def classify(cls, payload: Any) -> "InboundMessage":
        """
        Classify a parsed frame.

        Subscription acks carry a top-level "result" and no "error".
        Log notifications nest logs and signature under
        params.result.value. Anything else (including raw text frames
        that failed to parse as JSON) is unrecognized.
        """
        if not isinstance(payload, dict):
            return cls(MessageKind.UNRECOGNIZED, payload)

        if payload.get("error") is not None:
            return cls(MessageKind.RPC_ERROR, payload)

        if "result" in payload:
            return cls(MessageKind.ACK, payload)

        value = _dig(payload, "params", "result", "value")
        if isinstance(value, dict):
            logs = value.get("logs")
            signature = value.get("signature")
            if isinstance(logs, list) and signature is not None:
                return cls(
                    MessageKind.LOG_EVENT,
                    payload,
                    LogEvent(logs=logs, signature=signature),
                )

        return cls(MessageKind.UNRECOGNIZED, payload)


def _dig(data: Any, *keys: str) -> Any:
    """Follow nested dict keys, returning None on any missing level."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data
