"""Shared fixtures: a fake clock, a fake upstream internet and a test app.

Every outbound request goes through one ``httpx.MockTransport`` that routes
by host. The Supabase host is served by ``FakeSupabase``, a small in-memory
PostgREST with equality filters, ordering and limits.
"""

import itertools
import json
from typing import Any, Callable, Dict, List
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi.testclient import TestClient

from tradein.config import Settings
from tradein.main import create_app
from tradein.services import Services

SUPABASE_HOST = "db.test"


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _matches(value: Any, expr: str) -> bool:
    if expr == "is.null":
        return value is None
    if expr.startswith("eq."):
        expected = expr[3:]
        if isinstance(value, bool):
            return str(value).lower() == expected
        return value is not None and str(value) == expected
    raise AssertionError(f"unsupported filter {expr!r}")


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failing: set = set()
        self._ids = itertools.count(1)

    def seed(self, table: str, *rows: Dict[str, Any]) -> None:
        for row in rows:
            row = dict(row)
            row.setdefault("id", f"{table}-{next(self._ids)}")
            self.tables.setdefault(table, []).append(row)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        filters = {k: v for k, v in params.items() if k not in ("select", "order", "limit")}
        return [r for r in self.rows(table) if all(_matches(r.get(c), e) for c, e in filters.items())]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        if table in self.failing:
            return httpx.Response(500, json={"message": f"{table} is unavailable"})

        params = dict(parse_qsl(request.url.query.decode()))
        if request.method == "GET":
            rows = self._select(table, params)
            for part in reversed((params.get("order") or "").split(",")):
                if not part:
                    continue
                col, _, direction = part.partition(".")
                rows = sorted(rows, key=lambda r: (r.get(col) is None, r.get(col) or ""), reverse=direction == "desc")
            if "limit" in params:
                rows = rows[: int(params["limit"])]
            return httpx.Response(200, json=rows)

        if request.method == "POST":
            body = json.loads(request.content)
            created = []
            for row in body if isinstance(body, list) else [body]:
                row = dict(row)
                row.setdefault("id", f"{table}-{next(self._ids)}")
                self.tables.setdefault(table, []).append(row)
                created.append(row)
            return httpx.Response(201, json=created)

        if request.method == "PATCH":
            values = json.loads(request.content)
            matched = self._select(table, params)
            for row in matched:
                row.update(values)
            return httpx.Response(200, json=matched)

        if request.method == "DELETE":
            matched = self._select(table, params)
            self.tables[table] = [r for r in self.rows(table) if r not in matched]
            return httpx.Response(200, json=matched)

        return httpx.Response(405)


Handler = Callable[[httpx.Request], httpx.Response]


class Upstream:
    """Dispatches requests to per-host handlers and remembers every request."""

    def __init__(self):
        self.handlers: Dict[str, Handler] = {}
        self.requests: List[httpx.Request] = []

    def on(self, host: str, handler: Handler) -> None:
        self.handlers[host] = handler

    def calls(self, host: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.handlers.get(request.url.host)
        if handler is None:
            raise httpx.ConnectError(f"no route to {request.url.host}", request=request)
        return handler(request)


def make_settings(**overrides: Any) -> Settings:
    values = dict(
        environment="production",
        supabase_url=f"https://{SUPABASE_HOST}",
        supabase_key="service-key",
        tcgplayer_public_key="tcg-public",
        tcgplayer_private_key="tcg-private",
        ebay_client_id="ebay-id",
        ebay_client_secret="ebay-secret",
        justtcg_api_key="justtcg-key",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def upstream(supabase) -> Upstream:
    up = Upstream()
    up.on(SUPABASE_HOST, supabase)
    return up


@pytest.fixture
def transport(upstream) -> httpx.MockTransport:
    return httpx.MockTransport(upstream)


@pytest.fixture
def settings_obj() -> Settings:
    return make_settings()


@pytest.fixture
def services(settings_obj, transport, clock) -> Services:
    return Services.build(settings_obj, transport=transport, clock=clock)


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(create_app(services))


def html_response(body: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, text=body, headers={"content-type": "text/html"})


def sales_table(rows: List[tuple]) -> str:
    """130point-style sales table; rows are (date, title, price_text)."""
    body = "".join(
        f"<tr><td>{d}</td><td><a href='https://ebay.com/itm/{i}'>{t}</a></td>"
        f"<td>Auction</td><td>3</td><td>{p}</td></tr>"
        for i, (d, t, p) in enumerate(rows)
    )
    return (
        "<html><body><table class='sales-table'>"
        "<tr><th>Date</th><th>Title</th><th>Type</th><th>Bids</th><th>Price</th></tr>"
        f"{body}</table></body></html>"
    )


def json_response(payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload)