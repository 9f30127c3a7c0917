"""CRM REST API client — implements the RecordStore interface.

Talks to the CRM backend's collection endpoints
(``{base_url}/{endpoint}/`` and ``{base_url}/{endpoint}/{id}/``) over httpx.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from jewellery_crm.application.interfaces import RecordStore
from jewellery_crm.domain.entities import MutationResult
from jewellery_crm.domain.exceptions import RemoteStoreError

logger = logging.getLogger(__name__)


class CrmApiClient(RecordStore):
    """Infrastructure adapter — connects to the CRM REST API.

    ``fetch`` hands back the decoded body untouched; envelope handling lives
    in the normalizer. Mutation bodies are mapped to ``MutationResult``.
    Any non-2xx status raises ``RemoteStoreError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._http_client = http_client

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _collection_url(self, endpoint: str) -> str:
        return f"{self._base_url}/{endpoint.strip('/')}/"

    def _record_url(self, endpoint: str, record_id: str) -> str:
        return f"{self._base_url}/{endpoint.strip('/')}/{record_id}/"

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            response = await client.request(
                method,
                url,
                headers=self._get_headers(),
                params=dict(params) if params else None,
                json=dict(body) if body is not None else None,
            )
            if not response.is_success:
                self._raise_store_error(response)
            return response

        finally:
            if should_close:
                await client.aclose()

    # ── RecordStore ──────────────────────────────────────────────────

    async def fetch(self, endpoint: str, filters: Mapping[str, Any] | None = None) -> Any:
        response = await self._request("GET", self._collection_url(endpoint), params=filters)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def create(self, endpoint: str, draft: Mapping[str, Any]) -> MutationResult:
        response = await self._request("POST", self._collection_url(endpoint), body=draft)
        return self._to_mutation_result(response)

    async def update(
        self, endpoint: str, record_id: str, changes: Mapping[str, Any]
    ) -> MutationResult:
        response = await self._request(
            "PATCH", self._record_url(endpoint, record_id), body=changes
        )
        return self._to_mutation_result(response)

    async def delete(self, endpoint: str, record_id: str) -> MutationResult:
        response = await self._request("DELETE", self._record_url(endpoint, record_id))
        return self._to_mutation_result(response)

    async def transition(self, endpoint: str, record_id: str, status: str) -> MutationResult:
        response = await self._request(
            "PATCH", self._record_url(endpoint, record_id), body={"status": status}
        )
        return self._to_mutation_result(response)

    # ── Response mapping ─────────────────────────────────────────────

    @staticmethod
    def _to_mutation_result(response: httpx.Response) -> MutationResult:
        """Map a 2xx mutation response to a MutationResult.

        ``{success, data?, message?}`` is taken at its word; any other JSON
        object is the record itself; an empty body (204) is a bare success.
        """
        if response.status_code == 204 or not response.content:
            return MutationResult(success=True)

        try:
            data = response.json()
        except ValueError:
            return MutationResult(success=True, message=response.text or None)

        if isinstance(data, dict) and "success" in data:
            return MutationResult(
                success=bool(data.get("success")),
                data=data.get("data"),
                message=data.get("message") or data.get("error"),
            )
        return MutationResult(success=True, data=data)

    @staticmethod
    def _raise_store_error(response: httpx.Response) -> None:
        """Raise RemoteStoreError from a non-2xx httpx Response."""
        try:
            data = response.json()
        except (ValueError, json.JSONDecodeError):
            data = None

        message = response.text or response.reason_phrase
        if isinstance(data, dict):
            for key in ("message", "detail", "error"):
                if isinstance(data.get(key), str) and data[key]:
                    message = data[key]
                    break

        logger.debug("CRM API %s %s -> %d", response.request.method, response.request.url,
                     response.status_code)
        raise RemoteStoreError(status_code=response.status_code, message=message)
