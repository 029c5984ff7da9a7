"""Monitoring: Telegram alerts and the buy notification bell."""
from .alerting import AlertManager, play_sound, token_links

__all__ = ["AlertManager", "play_sound", "token_links"]
