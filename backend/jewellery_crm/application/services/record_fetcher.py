"""Fetch-and-normalize stage — one remote fetch turned into canonical records."""

import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from jewellery_crm.application.interfaces import RecordStore
from jewellery_crm.application.services.record_normalizer import RecordNormalizer
from jewellery_crm.domain.entities import CollectionSpec, FetchOutcome
from jewellery_crm.infrastructure.logging.colored_logger import RefreshLogger, RefreshStage

logger = logging.getLogger(__name__)

plog = RefreshLogger("RecordFetcher")


def clean_filters(filters: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop empty filter values and the 'all' status sentinel; stringify dates."""
    params: dict[str, Any] = {}
    for key, value in (filters or {}).items():
        if value is None or value == "":
            continue
        if key == "status" and value == "all":
            continue
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        params[key] = value
    return params


class RecordFetcher:
    """Calls the record store and always produces a list, never an exception.

    Network errors, HTTP errors and undecodable bodies are logged and turned
    into an empty ``FetchOutcome`` carrying the failure reason.
    """

    def __init__(
        self,
        store: RecordStore,
        spec: CollectionSpec,
        normalizer: RecordNormalizer | None = None,
    ):
        self._store = store
        self._spec = spec
        self._normalizer = normalizer or RecordNormalizer(spec)

    async def fetch(self, filters: Mapping[str, Any] | None = None) -> FetchOutcome:
        params = clean_filters(filters)
        try:
            with plog.timed_step(RefreshStage.FETCH, f"Fetching {self._spec.name}", **params):
                payload = await self._store.fetch(self._spec.endpoint, params)
            records = self._normalizer.normalize_payload(payload)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            logger.warning("Fetch of %s failed: %s", self._spec.name, reason)
            return FetchOutcome(records=[], error=reason)

        plog.step_complete(RefreshStage.NORMALIZE, f"Normalized {self._spec.name}", count=len(records))
        return FetchOutcome(records=records)
