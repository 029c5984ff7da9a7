"""Execution layer: hands accepted mints to the Sniperoo buy API."""
from .client import SniperooClient

__all__ = ["SniperooClient"]
