"""Abstract change feed interface (port) — realtime table-change notifications."""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator

from jewellery_crm.domain.entities import ChangeEvent


class ChangeFeed(ABC):
    """Port for a topic-per-table push channel."""

    @abstractmethod
    def subscribe(self, table: str) -> AsyncGenerator[ChangeEvent, None]:
        """Yield change events for ``table`` until the iterator is closed.

        Closing the generator (``aclose()`` or task cancellation) must release
        the subscription.
        """
        ...
