"""Abstract record store interface (port) for the remote CRM backend."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from jewellery_crm.domain.entities import MutationResult


class RecordStore(ABC):
    """Port for the remote source of truth — implemented in the infrastructure layer.

    ``fetch`` returns the raw decoded payload in whatever envelope the backend
    uses; unwrapping is the normalizer's job. Mutations return a
    ``MutationResult`` and raise ``RemoteStoreError`` on transport-level
    rejection.
    """

    @abstractmethod
    async def fetch(self, endpoint: str, filters: Mapping[str, Any] | None = None) -> Any:
        """Retrieve a collection, passing filters through verbatim."""
        ...

    @abstractmethod
    async def create(self, endpoint: str, draft: Mapping[str, Any]) -> MutationResult:
        """Create a record from a complete draft."""
        ...

    @abstractmethod
    async def update(
        self, endpoint: str, record_id: str, changes: Mapping[str, Any]
    ) -> MutationResult:
        """Apply a partial update to one record."""
        ...

    @abstractmethod
    async def delete(self, endpoint: str, record_id: str) -> MutationResult:
        """Hard-delete one record."""
        ...

    @abstractmethod
    async def transition(self, endpoint: str, record_id: str, status: str) -> MutationResult:
        """Move one record to a new status."""
        ...
