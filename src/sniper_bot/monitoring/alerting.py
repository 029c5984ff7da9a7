"""
Telegram notifications for new pools and buys.

Every send is synchronous (requests). The pipeline runs them through
asyncio.to_thread and never waits on the result, so a slow or broken
Telegram endpoint cannot hold a pipeline slot.
"""
from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SOLSCAN_TX_URL = "https://solscan.io/tx/"
GMGN_TOKEN_URL = "https://gmgn.ai/sol/token/"
BULLX_TOKEN_URL = "https://neo.bullx.io/terminal?chainId=1399811149&address="
TELEGRAM_API_URL = "https://api.telegram.org"

PRIORITY_MARKERS = {
    "critical": "🚨🚨🚨",
    "high": "⚠️",
    "low": "ℹ️",
}


@dataclass
class AlertRecord:
    key: str
    last_sent: float
    cooldown: float
    count: int = 1


def play_sound() -> None:
    """Ring the terminal bell."""
    try:
        sys.stdout.write("\x07")
        sys.stdout.flush()
        logger.info("Sound notification played")
    except OSError as e:
        logger.error(f"Error playing sound: {e}")


def token_links(mint: str, signature: Optional[str] = None) -> Dict[str, str]:
    """Explorer links for a mint (and its creating transaction)."""
    links = {
        "gmgn": f"{GMGN_TOKEN_URL}{mint}",
        "bullx": f"{BULLX_TOKEN_URL}{mint}",
    }
    if signature:
        links["transaction"] = f"{SOLSCAN_TX_URL}{signature}"
    return links


class AlertManager:
    """
    Telegram sink with per-key cooldowns.

    A mint is announced at most once an hour and a buy at most once a
    minute; other alerts use default_cooldown. Without a bot token and
    chat id every send is a logged no-op.

    Usage:
        alerts = AlertManager(telegram_bot_token=token, telegram_chat_id=chat)
        await asyncio.to_thread(alerts.alert_new_token, mint, signature)
    """

    DEFAULT_COOLDOWN = 300

    def __init__(
        self,
        telegram_bot_token: Optional[str] = None,
        telegram_chat_id: Optional[str] = None,
        default_cooldown: int = DEFAULT_COOLDOWN,
        _telegram_api: Optional[Any] = None,
    ) -> None:
        """
        Args:
            telegram_bot_token: Bot token for the sendMessage endpoint
            telegram_chat_id: Destination chat
            default_cooldown: Seconds between repeats of the same key
            _telegram_api: Object with send_message(chat_id, text, parse_mode),
                used instead of HTTP (tests)
        """
        self._bot_token = telegram_bot_token
        self._chat_id = telegram_chat_id
        self._default_cooldown = default_cooldown
        self._telegram_api = _telegram_api
        self._history: Dict[str, AlertRecord] = {}

    @property
    def enabled(self) -> bool:
        return self._telegram_api is not None or bool(self._bot_token and self._chat_id)

    def send_alert(
        self,
        title: str,
        message: str,
        dedup_key: Optional[str] = None,
        cooldown_seconds: Optional[int] = None,
        priority: str = "normal",
    ) -> bool:
        """
        Returns:
            True if Telegram accepted the message; False when suppressed by
            cooldown, unconfigured, or the send failed
        """
        if dedup_key and self._in_cooldown(dedup_key, cooldown_seconds or self._default_cooldown):
            logger.debug(f"Suppressed repeat alert {dedup_key}")
            return False

        marker = PRIORITY_MARKERS.get(priority)
        heading = f"{marker} *{title}*" if marker else f"*{title}*"
        sent = self._deliver(f"{heading}\n\n{message.strip()}")

        if sent and dedup_key:
            self._mark(dedup_key, cooldown_seconds or self._default_cooldown)
        return sent

    def alert_new_token(self, mint: str, signature: str) -> bool:
        links = token_links(mint, signature)
        lines = [
            f"Token CA: `{mint}`",
            f"Transaction: {links['transaction']}",
            f"GMGN: {links['gmgn']}",
            f"BullX: {links['bullx']}",
        ]
        return self.send_alert(
            "🚀 New Token Detected",
            "\n".join(lines),
            dedup_key=f"new_token_{mint}",
            cooldown_seconds=3600,
        )

    def alert_token_bought(self, mint: str, amount_sol: float) -> bool:
        lines = [
            f"Token CA: `{mint}`",
            f"Amount: {amount_sol} SOL",
            f"GMGN: {token_links(mint)['gmgn']}",
        ]
        return self.send_alert(
            "🟢 Token Bought",
            "\n".join(lines),
            dedup_key=f"bought_{mint}",
            cooldown_seconds=60,
        )

    def alert_connection_lost(self, retries: int) -> bool:
        """Log stream gave up reconnecting; ingestion is being restarted."""
        lines = [
            f"Reconnect attempts: {retries}",
            f"At: {datetime.now(timezone.utc).isoformat()}",
        ]
        return self.send_alert(
            "Log stream disconnected",
            "\n".join(lines),
            dedup_key="connection_lost",
            priority="critical",
        )

    def _in_cooldown(self, key: str, cooldown: int) -> bool:
        record = self._history.get(key)
        return record is not None and time.time() - record.last_sent < cooldown

    def _mark(self, key: str, cooldown: float) -> None:
        now = time.time()
        # Entries past their cooldown no longer suppress anything
        expired = [k for k, r in self._history.items() if now - r.last_sent >= r.cooldown]
        for k in expired:
            del self._history[k]

        record = self._history.get(key)
        if record is None:
            self._history[key] = AlertRecord(key=key, last_sent=now, cooldown=cooldown)
        else:
            record.last_sent = now
            record.cooldown = cooldown
            record.count += 1

    def _deliver(self, text: str) -> bool:
        if self._telegram_api is not None:
            try:
                self._telegram_api.send_message(
                    chat_id=self._chat_id, text=text, parse_mode="Markdown"
                )
            except Exception as e:
                logger.error(f"Telegram API error: {e}")
                return False
            return True

        if not self.enabled:
            logger.debug("Telegram not configured, alert dropped")
            return False

        try:
            response = requests.post(
                f"{TELEGRAM_API_URL}/bot{self._bot_token}/sendMessage",
                json={"chat_id": self._chat_id, "text": text, "parse_mode": "Markdown"},
                timeout=10,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Telegram send failed: {e}")
            return False

        logger.info(f"Telegram alert sent: {text[:50]}...")
        return True

    def get_alert_stats(self) -> Dict[str, int]:
        return {
            "unique_alerts": len(self._history),
            "total_sent": sum(r.count for r in self._history.values()),
        }
