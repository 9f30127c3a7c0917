"""Scope resolver — decides which records the current user may see.

Every function here is pure: visibility depends only on the user's role and
scope attributes and on the record's scope attributes, never on record
content.

Rules:
    business_admin / platform_admin  everything
    manager                          own tenant, and own store or store unset
    floor_manager                    own floor, plus own records
    tele_calling                     own records, or anything in own tenant
    marketing                        announcement / campaign records only
    inhouse_sales and anything else  own records (owner, assignee or creator)
    no user                          nothing
"""

from collections.abc import Iterable, Mapping
from typing import Any

from jewellery_crm.domain.entities import Record, Role, ScopeType, UserContext, UserScope

MARKETING_RECORD_TYPES = frozenset({"announcement", "marketing_campaign", "campaign"})

_FULL_ACCESS_ROLES = frozenset({Role.BUSINESS_ADMIN.value, Role.PLATFORM_ADMIN.value})


def resolve_scope(records: Iterable[Record], user: UserContext | None) -> list[Record]:
    """Return the visible subset of ``records``, preserving order."""
    if user is None:
        return []
    if user.role in _FULL_ACCESS_ROLES:
        return list(records)
    return [record for record in records if is_visible(record, user)]


def is_visible(record: Record, user: UserContext | None) -> bool:
    if user is None:
        return False

    role = user.role
    if role in _FULL_ACCESS_ROLES:
        return True

    if role == Role.MANAGER.value:
        return _same(record.tenant_id, user.tenant_id) and (
            record.store_id is None or _same(record.store_id, user.store_id)
        )

    if role == Role.FLOOR_MANAGER.value:
        on_floor = user.floor is not None and record.floor == user.floor
        return on_floor or _is_own(record, user)

    if role == Role.TELE_CALLING.value:
        return _is_own(record, user) or _same(record.tenant_id, user.tenant_id)

    if role == Role.MARKETING.value:
        return record.record_type in MARKETING_RECORD_TYPES

    return _is_own(record, user)


def describe_scope(user: UserContext | None) -> UserScope:
    """Summarise the user's visibility as a coarse scope (all / store / own / none)."""
    if user is None:
        return UserScope(ScopeType.NONE, {}, "No access - user not authenticated")

    if user.role in _FULL_ACCESS_ROLES:
        return UserScope(ScopeType.ALL, {}, "Full access to all data")

    if user.role == Role.MANAGER.value:
        filters = {"tenant_id": user.tenant_id, "store_id": user.store_id}
        return UserScope(ScopeType.STORE, filters, "Access to store-specific data")

    if user.role == Role.FLOOR_MANAGER.value:
        return UserScope(ScopeType.STORE, {"floor": user.floor}, "Access to floor-specific data")

    if user.role == Role.MARKETING.value:
        return UserScope(
            ScopeType.OWN,
            {"record_types": sorted(MARKETING_RECORD_TYPES)},
            "Access to announcements and campaigns",
        )

    return UserScope(ScopeType.OWN, {"user_id": user.id}, "Access to own data only")


def scope_query_params(scope: UserScope) -> dict[str, str]:
    """Query parameters that narrow the remote fetch to the user's scope.

    Client-side scoping is still applied afterwards; these only save bandwidth.
    """
    params: dict[str, str] = {}
    if scope.type == ScopeType.STORE:
        for key in ("store_id", "floor"):
            value = scope.filters.get(key)
            if value is not None:
                params[key] = str(value)
    if scope.type == ScopeType.OWN and scope.filters.get("user_id") is not None:
        params["user_id"] = str(scope.filters["user_id"])
    return params


def can_perform_action(
    action: str,
    scope: UserScope,
    record: Record | Mapping[str, Any] | None = None,
) -> bool:
    """Coarse permission check used to enable or hide row actions."""
    if action == "view_all":
        return scope.type == ScopeType.ALL
    if action == "view_store":
        return scope.type in (ScopeType.ALL, ScopeType.STORE)
    if action == "view_own":
        return scope.type in (ScopeType.ALL, ScopeType.STORE, ScopeType.OWN)
    if action in ("edit_own", "delete_own"):
        if scope.type in (ScopeType.ALL, ScopeType.STORE):
            return True
        user_id = scope.filters.get("user_id")
        if scope.type == ScopeType.OWN and record is not None and user_id is not None:
            return str(user_id) in _owner_ids(record)
        return False
    return False


def _is_own(record: Record, user: UserContext) -> bool:
    return str(user.id) in {record.owner_id, record.creator_id}


def _same(left: str | None, right: str | None) -> bool:
    return left is not None and right is not None and str(left) == str(right)


def _owner_ids(record: Record | Mapping[str, Any]) -> set[str]:
    if isinstance(record, Record):
        return {v for v in (record.owner_id, record.creator_id) if v is not None}
    keys = ("user_id", "assigned_to", "sales_representative", "created_by")
    return {str(record[k]) for k in keys if record.get(k) is not None}
