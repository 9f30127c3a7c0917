"""Realtime change stream infrastructure package."""

from .change_relay import ChangeRelay
from .sse_change_feed import SSEChangeFeed

__all__ = ["ChangeRelay", "SSEChangeFeed"]
