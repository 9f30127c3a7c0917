"""Remote change stream consumer — reads table-change notifications over SSE."""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from jewellery_crm.application.interfaces import ChangeFeed
from jewellery_crm.application.services.change_hub import ALL_TABLES
from jewellery_crm.domain.entities import ChangeEvent
from jewellery_crm.domain.exceptions import RemoteStoreError

logger = logging.getLogger(__name__)


def parse_sse_block(lines: list[str], default_table: str) -> ChangeEvent | None:
    """Turn one SSE block (the lines between blank lines) into a ChangeEvent.

    The event name comes from the ``event:`` line or, failing that, an
    ``event``/``type`` key in the JSON ``data:``. The table comes from the
    data's ``table`` key or the subscribed table. Comment-only and
    keepalive blocks yield None.
    """
    event_name: str | None = None
    data_lines: list[str] = []
    for line in lines:
        if not line or line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event_name = value.strip()
        elif field == "data":
            data_lines.append(value)

    if event_name is None and not data_lines:
        return None

    payload: Any = None
    if data_lines:
        try:
            payload = json.loads("\n".join(data_lines))
        except json.JSONDecodeError:
            payload = None

    table = default_table
    if isinstance(payload, dict):
        table = str(payload.get("table") or default_table)
        if event_name in (None, "change", "message"):
            event_name = payload.get("event") or payload.get("type") or event_name

    if table == ALL_TABLES and not isinstance(payload, dict):
        return None
    return ChangeEvent.parse(table, event_name)


class SSEChangeFeed(ChangeFeed):
    """Infrastructure adapter — streams change events from the remote realtime endpoint.

    ``subscribe("orders")`` opens ``GET {base_url}/orders``; the wildcard
    table opens ``GET {base_url}`` and relies on each event naming its table.
    The iterator ends when the server closes the stream.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._http_client = http_client

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _stream_url(self, table: str) -> str:
        if table == ALL_TABLES:
            return self._base_url
        return f"{self._base_url}/{table}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        # Read timeout disabled: the stream idles between changes.
        return httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))

    async def subscribe(self, table: str) -> AsyncGenerator[ChangeEvent, None]:
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            async with client.stream(
                "GET", self._stream_url(table), headers=self._get_headers()
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise RemoteStoreError(
                        status_code=response.status_code,
                        message=body.decode(errors="replace") or "change stream rejected",
                    )

                block: list[str] = []
                async for line in response.aiter_lines():
                    if line.strip():
                        block.append(line)
                        continue
                    event = parse_sse_block(block, table)
                    block = []
                    if event is not None:
                        yield event

                # Stream closed without a trailing blank line.
                event = parse_sse_block(block, table)
                if event is not None:
                    yield event

        finally:
            if should_close:
                await client.aclose()
