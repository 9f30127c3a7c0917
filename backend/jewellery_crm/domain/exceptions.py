"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class RemoteStoreError(Exception):
    """Raised when the remote record store rejects a request."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"[crm-api] {status_code}: {message}")


class InvalidStatusTransitionError(Exception):
    """Raised when a status change is not in the collection's transition table."""

    def __init__(self, collection: str, current: str, target: str):
        self.collection = collection
        self.current = current
        self.target = target
        super().__init__(
            f"{collection}: cannot move from '{current}' to '{target}'"
        )


class CatalogError(Exception):
    """Raised when the collection catalog is structurally invalid."""
