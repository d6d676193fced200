"""Tests for the fetch -> extract -> trimmed mean -> cache helper."""

import pytest

from tradein.cache import TTLCache
from tradein.pricing import NoSalesFound, PriceLookup, Sale, summarize_sales

from conftest import FakeClock


def _extract(document):
    return [Sale(price=float(p), title=f"sale {p}") for p in document.split(",") if p]


class CountingFetch:
    def __init__(self, document):
        self.document = document
        self.calls = 0

    async def __call__(self, query):
        self.calls += 1
        return self.document, f"https://example.test/search?q={query}"


def test_summarize_sales_keeps_surviving_subset():
    sales = [Sale(price=p) for p in (100, 110, 90, 400)]
    summary = summarize_sales(sales, query="q", search_url="u")

    assert summary.sales_count == 4
    assert summary.filtered_sales_count == 3
    assert summary.average_price == 100
    assert [s.price for s in summary.sales] == [100, 110, 90]

    body = summary.to_dict()
    assert body["averagePrice"] == 100
    assert body["filteredSalesCount"] == 3
    assert len(body["allSales"]) == 4
    assert body["searchUrl"] == "u"
    # the spread covers every sale, outliers included
    assert (body["stats"]["count"], body["stats"]["median"], body["stats"]["high"]) == (4, 105, 400)


def test_average_is_rounded_to_cents():
    summary = summarize_sales([Sale(price=p) for p in (10, 10, 10.01)], query="q")
    assert summary.average_price == 10.0


@pytest.mark.asyncio
async def test_lookup_caches_by_key_parts():
    clock = FakeClock()
    fetch = CountingFetch("50,55,60")
    lookup = PriceLookup("test", fetch=fetch, extract=_extract, cache=TTLCache(3600, clock=clock))

    first = await lookup.lookup("Pikachu PSA 10", key_parts=("Pikachu", "10"))
    second = await lookup.lookup("Pikachu PSA 10", key_parts=("pikachu ", "10"))
    assert first is second
    assert fetch.calls == 1
    assert first.average_price == 55

    clock.advance(3600)
    await lookup.lookup("Pikachu PSA 10", key_parts=("Pikachu", "10"))
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_lookup_caps_sales_before_averaging():
    fetch = CountingFetch("10,10,10,10,10,99,99")
    lookup = PriceLookup("test", fetch=fetch, extract=_extract, cache=TTLCache(60), max_sales=5)

    summary = await lookup.lookup("q")
    assert summary.sales_count == 5
    assert summary.average_price == 10


@pytest.mark.asyncio
async def test_lookup_without_sales_raises_with_search_url():
    cache = TTLCache(60)
    lookup = PriceLookup("test", fetch=CountingFetch(""), extract=_extract, cache=cache)

    with pytest.raises(NoSalesFound) as exc:
        await lookup.lookup("nothing")
    assert exc.value.status_code == 404
    assert exc.value.details["searchUrl"] == "https://example.test/search?q=nothing"
    assert len(cache) == 0
