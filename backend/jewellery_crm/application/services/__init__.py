from .collection_catalog import CollectionCatalog
from .change_hub import ChangeHub
from .record_normalizer import RecordNormalizer
from .record_fetcher import RecordFetcher
from .live_list_controller import LiveListController
from .mutation_dispatcher import MutationDispatcher
from .screen_registry import ScreenRegistry

__all__ = [
    "CollectionCatalog",
    "ChangeHub",
    "RecordNormalizer",
    "RecordFetcher",
    "LiveListController",
    "MutationDispatcher",
    "ScreenRegistry",
]
