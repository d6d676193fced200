from __future__ import annotations
from typing import Any, Dict, List, Optional, Union
import logging

import httpx

from tradein.errors import DatabaseError, ConfigurationError

logger = logging.getLogger(__name__)

Rows = List[Dict[str, Any]]


def _filter_params(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for col, val in (filters or {}).items():
        if val is None:
            params[col] = "is.null"
        elif isinstance(val, bool):
            params[col] = f"eq.{str(val).lower()}"
        else:
            params[col] = f"eq.{val}"
    return params


class SupabaseClient:
    """
    Thin async client for Supabase's PostgREST endpoint (/rest/v1/<table>).
    Filters are equality matches on columns.
    """

    def __init__(self, url: str, key: str, timeout: float = 20, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = (url or "").rstrip("/")
        self.key = key
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url and self.key)

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Union[Rows, Dict[str, Any], None] = None,
        prefer: Optional[str] = None,
    ) -> Rows:
        if not self.configured:
            raise ConfigurationError(message="Supabase is not configured. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")

        url = f"{self.url}/rest/v1/{table}"
        try:
            async with self._client() as client:
                resp = await client.request(method, url, params=params, json=json, headers=self._headers(prefer))
        except httpx.HTTPError as e:
            logger.error("Supabase %s %s failed: %s", method, table, e)
            raise DatabaseError(message=f"Database request failed: {e}", details={"table": table}) from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
                message = body.get("message") or resp.text
            except ValueError:
                message = resp.text
            logger.error("Supabase %s %s -> %s: %s", method, table, resp.status_code, message)
            raise DatabaseError(message=message or "Database error", details={"table": table, "status": resp.status_code})

        if not resp.content:
            return []
        data = resp.json()
        if isinstance(data, dict):
            return [data]
        return data

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Rows:
        params = {"select": columns, **_filter_params(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return await self._request("GET", table, params=params)

    async def maybe_single(self, table: str, *, columns: str = "*", filters: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, rows: Union[Rows, Dict[str, Any]]) -> Rows:
        return await self._request("POST", table, json=rows, prefer="return=representation")

    async def update(self, table: str, values: Dict[str, Any], filters: Dict[str, Any]) -> Rows:
        return await self._request(
            "PATCH", table, params=_filter_params(filters), json=values, prefer="return=representation"
        )

    async def delete(self, table: str, filters: Dict[str, Any]) -> Rows:
        return await self._request("DELETE", table, params=_filter_params(filters), prefer="return=representation")
