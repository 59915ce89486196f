"""
HTTP transport for the Sheets v4 REST API.

Manifesto:
    One method per store primitive, one request per call.  The only retry is
    the credential refresh: when the store answers 401 and the credential
    is a provider, fetch one fresh token and send the request again.  Any
    other failure goes straight to the caller, classified.

Architecture:
    ::

        HttpTransport(store_id, credentials | api_key)
          │
          ├── _request(method, path, params, json)
          │     ├── Authorization: Bearer <token>   (credentials)
          │     ├── ?key=<api_key>                   (api key, no credentials)
          │     ├── httpx.TransportError → NetworkError
          │     ├── 401 + refreshable   → refresh, retry once
          │     └── non-2xx            → classify_http_error(...)
          │
          └── read_range / batch_read / write_range / append_range /
              clear_range / batch_clear / batch_write /
              structural_update / fetch_metadata

Examples:
    >>> extract_store_id("https://docs.google.com/spreadsheets/d/1AbC-x_9/edit")
    '1AbC-x_9'
    >>> extract_store_id("1AbC-x_9")
    '1AbC-x_9'

Tags:
    transport, http, httpx, sheets, tabspine
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from tabspine.core.auth import Credentials, CredentialSource
from tabspine.core.errors import NetworkError, StoreError, classify_http_error
from tabspine.core.logging import get_logger
from tabspine.core.protocols import Rows, TabInfo, ValueRender
from tabspine.core.settings import DEFAULT_API_BASE_URL

logger = get_logger(__name__)

_STORE_ID_RE = re.compile(r"/d/([a-zA-Z0-9-_]+)")
_VALUE_INPUT = "USER_ENTERED"


def extract_store_id(url_or_id: str) -> str | None:
    """Pull the store id out of a share URL; bare ids pass through."""
    match = _STORE_ID_RE.search(url_or_id)
    if match:
        return match.group(1)
    if "/" not in url_or_id:
        return url_or_id
    return None


def _retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class HttpTransport:
    """Sheets v4 transport over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        store_id: str,
        *,
        credentials: Credentials | None = None,
        api_key: str | None = None,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.store_id = store_id
        self.credentials = credentials
        self.api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    # ── Plumbing ─────────────────────────────────────────────────

    def _url(self, suffix: str = "") -> str:
        return f"{self._base_url}/{self.store_id}{suffix}"

    def _values_url(self, range_: str, action: str = "") -> str:
        return self._url(f"/values/{quote(range_, safe='')}{action}")

    async def _send(
        self,
        method: str,
        url: str,
        params: list[tuple[str, str]],
        json: Any,
        token: str | None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            return await self._client.request(
                method, url, params=params, json=json, headers=headers
            )
        except httpx.TransportError as exc:
            logger.warning("transport.network_error", method=method, url=url, error=str(exc))
            raise NetworkError(f"Network error: {exc}", cause=exc) from exc

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Sequence[tuple[str, str]] = (),
        json: Any = None,
    ) -> httpx.Response:
        query = list(params)
        token = None
        if self.credentials is not None:
            token = await self.credentials.token()
        elif self.api_key:
            query.append(("key", self.api_key))

        response = await self._send(method, url, query, json, token)

        if (
            response.status_code == 401
            and self.credentials is not None
            and self.credentials.refreshable
        ):
            logger.info("transport.auth_refresh", method=method, url=url)
            token = await self.credentials.refresh()
            response = await self._send(method, url, query, json, token)

        if response.is_success:
            return response

        error = classify_http_error(
            response.status_code,
            response.text,
            retry_after=_retry_after(response),
        )
        logger.warning(
            "transport.request_failed",
            method=method,
            url=url,
            status=response.status_code,
            kind=error.kind.value,
        )
        raise error

    # ── Values ───────────────────────────────────────────────────

    async def read_range(
        self, range_: str, render: ValueRender = ValueRender.FORMATTED
    ) -> Rows:
        response = await self._request(
            "GET",
            self._values_url(range_),
            params=[("valueRenderOption", ValueRender(render).value)],
        )
        return response.json().get("values", [])

    async def batch_read(
        self, ranges: Sequence[str], render: ValueRender = ValueRender.FORMATTED
    ) -> list[Rows]:
        if not ranges:
            return []
        params = [("ranges", r) for r in ranges]
        params.append(("valueRenderOption", ValueRender(render).value))
        response = await self._request("GET", self._url("/values:batchGet"), params=params)
        value_ranges = response.json().get("valueRanges", [])
        # The store echoes ranges in request order but normalises their text.
        results: list[Rows] = [vr.get("values", []) for vr in value_ranges]
        if len(results) != len(ranges):
            raise StoreError(
                f"batchGet returned {len(results)} ranges for {len(ranges)} requested",
                body=response.text,
            )
        return results

    async def write_range(self, range_: str, values: Rows) -> None:
        await self._request(
            "PUT",
            self._values_url(range_),
            params=[("valueInputOption", _VALUE_INPUT)],
            json={"range": range_, "values": values},
        )

    async def append_range(self, range_: str, values: Rows) -> None:
        await self._request(
            "POST",
            self._values_url(range_, ":append"),
            params=[("valueInputOption", _VALUE_INPUT)],
            json={"range": range_, "values": values},
        )

    async def clear_range(self, range_: str) -> None:
        await self._request("POST", self._values_url(range_, ":clear"), json={})

    async def batch_clear(self, ranges: Sequence[str]) -> None:
        await self._request(
            "POST", self._url("/values:batchClear"), json={"ranges": list(ranges)}
        )

    async def batch_write(self, data: Sequence[tuple[str, Rows]]) -> None:
        await self._request(
            "POST",
            self._url("/values:batchUpdate"),
            json={
                "valueInputOption": _VALUE_INPUT,
                "data": [{"range": r, "values": v} for r, v in data],
            },
        )

    # ── Structure ────────────────────────────────────────────────

    async def structural_update(self, requests: Sequence[dict[str, Any]]) -> None:
        await self._request(
            "POST", self._url(":batchUpdate"), json={"requests": list(requests)}
        )

    async def fetch_metadata(self) -> list[TabInfo]:
        response = await self._request(
            "GET", self._url(), params=[("fields", "sheets.properties(sheetId,title)")]
        )
        return [
            TabInfo(tab_id=s["properties"]["sheetId"], title=s["properties"]["title"])
            for s in response.json().get("sheets", [])
        ]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


async def create_store(
    title: str,
    auth: CredentialSource | Credentials,
    *,
    base_url: str = DEFAULT_API_BASE_URL,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> tuple[str, str]:
    """Create a new empty store and return ``(store_id, url)``."""
    credentials = auth if isinstance(auth, Credentials) else Credentials(auth)
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        token = await credentials.token()
        try:
            response = await http.post(
                base_url.rstrip("/"),
                json={"properties": {"title": title}},
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error: {exc}", cause=exc) from exc
        if not response.is_success:
            raise classify_http_error(
                response.status_code, response.text, retry_after=_retry_after(response)
            )
        payload = response.json()
        logger.info("store.created", store_id=payload["spreadsheetId"], title=title)
        return payload["spreadsheetId"], payload["spreadsheetUrl"]
    finally:
        if owns_client:
            await http.aclose()


__all__ = ["HttpTransport", "create_store", "extract_store_id"]
