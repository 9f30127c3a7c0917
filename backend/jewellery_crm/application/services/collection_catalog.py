"""Collection catalog — parses data/collections.yaml into CollectionSpec objects.

Loaded once at application startup via the FastAPI lifespan.
"""

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from jewellery_crm.domain.entities import CollectionSpec
from jewellery_crm.domain.exceptions import CatalogError, EntityNotFoundError

logger = logging.getLogger(__name__)


class CollectionCatalog:
    """Read-only registry of the collections a screen can be built on."""

    def __init__(self, collections: list[CollectionSpec]):
        self._by_name: dict[str, CollectionSpec] = {}
        for spec in collections:
            if spec.name in self._by_name:
                raise CatalogError(f"Duplicate collection '{spec.name}'")
            self._by_name[spec.name] = spec

    @classmethod
    def from_file(cls, path: str | Path) -> "CollectionCatalog":
        """Load and validate a catalog YAML file."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise CatalogError(f"Failed to read collection catalog {path}: {exc}") from exc

        catalog = cls.from_dict(data or {})
        logger.info("Loaded %d collections from %s", len(catalog), path)
        return catalog

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionCatalog":
        entries = data.get("collections")
        if not isinstance(entries, list):
            raise CatalogError("Collection catalog must contain a 'collections' list")
        return cls([_parse_collection(entry) for entry in entries])

    def get(self, name: str) -> CollectionSpec:
        spec = self._by_name.get(name)
        if spec is None:
            raise EntityNotFoundError("Collection", name)
        return spec

    def for_table(self, table: str) -> list[CollectionSpec]:
        return [spec for spec in self._by_name.values() if spec.table == table]

    @property
    def names(self) -> list[str]:
        return list(self._by_name)

    @property
    def tables(self) -> list[str]:
        return sorted({spec.table for spec in self._by_name.values()})

    def __iter__(self) -> Iterator[CollectionSpec]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name


def _parse_collection(entry: Any) -> CollectionSpec:
    """Build one CollectionSpec, validating its status tables."""
    if not isinstance(entry, dict) or not entry.get("name"):
        raise CatalogError(f"Invalid collection entry: {entry!r}")

    name = str(entry["name"])
    statuses = tuple(str(s) for s in entry.get("statuses") or [])
    if not statuses:
        raise CatalogError(f"{name}: 'statuses' must not be empty")

    fallback = str(entry.get("fallback_status", statuses[0]))
    if fallback not in statuses:
        raise CatalogError(f"{name}: fallback status '{fallback}' is not a declared status")

    transitions: dict[str, frozenset[str]] = {}
    for source, targets in (entry.get("transitions") or {}).items():
        allowed = frozenset(str(t) for t in targets or [])
        unknown = ({str(source)} | allowed) - set(statuses)
        if unknown:
            raise CatalogError(f"{name}: transitions reference unknown statuses {sorted(unknown)}")
        transitions[str(source)] = allowed

    date_fields = tuple(entry.get("date_fields", ["created_at", "updated_at"]) or ())
    schedule_field = str(entry.get("schedule_field", "created_at"))
    if schedule_field not in date_fields:
        raise CatalogError(f"{name}: schedule field '{schedule_field}' is not a date field")

    return CollectionSpec(
        name=name,
        record_type=str(entry.get("record_type", name)),
        endpoint=str(entry.get("endpoint", name)).strip("/"),
        table=str(entry.get("table", name)),
        statuses=statuses,
        fallback_status=fallback,
        transitions=transitions,
        owner_fields=tuple(entry.get("owner_fields", ["assigned_to"]) or ()),
        creator_fields=tuple(entry.get("creator_fields", ["created_by"]) or ()),
        tenant_field=str(entry.get("tenant_field", "tenant")),
        store_field=str(entry.get("store_field", "store")),
        floor_field=str(entry.get("floor_field", "floor")),
        type_field=entry.get("type_field"),
        date_fields=date_fields,
        defaults=dict(entry.get("defaults") or {}),
        hard_delete=bool(entry.get("hard_delete", False)),
        search_fields=tuple(entry.get("search_fields") or ()),
        schedule_field=schedule_field,
        amount_field=entry.get("amount_field"),
    )
