"""Fetch-and-normalize helpers — envelope unwrapping and field coercion.

Remote payloads arrive in several envelope shapes and with loosely typed
rows. Nothing in this module raises on bad remote data: unknown envelopes
become an empty list, unknown statuses become the collection's fallback,
and unparseable dates become ``None`` (rendered as "Invalid Date").
"""

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from jewellery_crm.domain.entities import CollectionSpec, Record

logger = logging.getLogger(__name__)

INVALID_DATE = "Invalid Date"
MISSING_DATE = "N/A"


class EnvelopeKind(str, Enum):
    """Known response envelope shapes."""

    BARE_LIST = "bare_list"          # [...]
    RESULTS = "results"              # {"results": [...]}
    DATA = "data"                    # {"data": [...]}
    DATA_RESULTS = "data_results"    # {"data": {"results": [...]}}
    UNKNOWN = "unknown"


def classify_envelope(payload: Any) -> EnvelopeKind:
    if isinstance(payload, list):
        return EnvelopeKind.BARE_LIST
    if not isinstance(payload, dict):
        return EnvelopeKind.UNKNOWN
    if isinstance(payload.get("results"), list):
        return EnvelopeKind.RESULTS
    data = payload.get("data")
    if isinstance(data, list):
        return EnvelopeKind.DATA
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        return EnvelopeKind.DATA_RESULTS
    return EnvelopeKind.UNKNOWN


def unwrap_envelope(payload: Any) -> list[dict[str, Any]]:
    """Extract the row list from any known envelope; ``[]`` for anything else."""
    kind = classify_envelope(payload)
    if kind == EnvelopeKind.BARE_LIST:
        rows = payload
    elif kind == EnvelopeKind.RESULTS:
        rows = payload["results"]
    elif kind == EnvelopeKind.DATA:
        rows = payload["data"]
    elif kind == EnvelopeKind.DATA_RESULTS:
        rows = payload["data"]["results"]
    else:
        logger.debug("Unrecognised response envelope (%s)", type(payload).__name__)
        return []
    return [row for row in rows if isinstance(row, dict)]


def parse_date(value: Any) -> datetime | None:
    """Parse a date-like value into an aware datetime (naive input is taken as UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def display_date(value: Any) -> str:
    """Render a date for list display: 'Jan 1, 2024', 'N/A' or 'Invalid Date'."""
    if value is None or value == "":
        return MISSING_DATE
    parsed = parse_date(value)
    if parsed is None:
        return INVALID_DATE
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


class RecordNormalizer:
    """Turns raw rows of one collection into canonical Records."""

    def __init__(self, spec: CollectionSpec):
        self._spec = spec

    @property
    def spec(self) -> CollectionSpec:
        return self._spec

    def normalize_payload(self, payload: Any) -> list[Record]:
        """Unwrap an envelope and normalize every row, dropping rows without an id."""
        records: list[Record] = []
        for row in unwrap_envelope(payload):
            record = self.normalize(row)
            if record is not None:
                records.append(record)
        return records

    def normalize(self, raw: dict[str, Any]) -> Record | None:
        spec = self._spec
        record_id = _as_id(raw.get("id"))
        if record_id is None:
            logger.debug("Dropping %s row without id", spec.record_type)
            return None

        fields = dict(raw)
        for key, default in spec.defaults.items():
            if fields.get(key) is None or fields.get(key) == "":
                fields[key] = default

        status = spec.coerce_status(raw.get("status"))
        fields["status"] = status

        record_type = spec.record_type
        if spec.type_field and isinstance(raw.get(spec.type_field), str):
            record_type = raw[spec.type_field]

        dates = {name: parse_date(raw.get(name)) for name in spec.date_fields}

        return Record(
            id=record_id,
            record_type=record_type,
            status=status,
            owner_id=_first_id(raw, spec.owner_fields),
            creator_id=_first_id(raw, spec.creator_fields),
            tenant_id=_as_id(raw.get(spec.tenant_field)),
            store_id=_as_id(raw.get(spec.store_field)),
            floor=_as_int(raw.get(spec.floor_field)),
            created_at=dates.get("created_at", parse_date(raw.get("created_at"))),
            updated_at=dates.get("updated_at", parse_date(raw.get("updated_at"))),
            fields=fields,
            dates=dates,
        )


def _as_id(value: Any) -> str | None:
    """Coerce an identifier (or an embedded ``{"id": ...}`` object) to a string."""
    if isinstance(value, dict):
        value = value.get("id")
    if value is None or value == "" or isinstance(value, bool):
        return None
    return str(value)


def _first_id(raw: dict[str, Any], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = _as_id(raw.get(name))
        if value is not None:
            return value
    return None


def _as_int(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
