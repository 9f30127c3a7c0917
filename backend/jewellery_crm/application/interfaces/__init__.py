from .record_store import RecordStore
from .change_feed import ChangeFeed

__all__ = [
    "RecordStore",
    "ChangeFeed",
]
