"""Domain entities for the current user and the visibility scope derived from it."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Roles with a dedicated visibility rule. Any other role string is allowed."""

    PLATFORM_ADMIN = "platform_admin"
    BUSINESS_ADMIN = "business_admin"
    MANAGER = "manager"
    FLOOR_MANAGER = "floor_manager"
    INHOUSE_SALES = "inhouse_sales"
    TELE_CALLING = "tele_calling"
    MARKETING = "marketing"


class ScopeType(str, Enum):
    """Coarse visibility level shown next to a list."""

    ALL = "all"
    STORE = "store"
    OWN = "own"
    NONE = "none"


@dataclass(frozen=True)
class UserContext:
    """Request-scoped identity passed explicitly to the scope resolver."""

    id: str
    role: str
    tenant_id: str | None = None
    store_id: str | None = None
    floor: int | None = None


@dataclass(frozen=True)
class UserScope:
    type: ScopeType
    filters: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    @property
    def display_text(self) -> str:
        return _SCOPE_DISPLAY[self.type]


_SCOPE_DISPLAY = {
    ScopeType.ALL: "All Data",
    ScopeType.STORE: "Store Data",
    ScopeType.OWN: "My Data",
    ScopeType.NONE: "No Access",
}
