"""Tests for the TCGplayer API client and product-page price scraper."""

import httpx
import pytest

from tradein.cache import TTLCache
from tradein.errors import ConfigurationError, UpstreamError
from tradein.providers.tcgplayer import TCGPlayerClient, parse_price_guide, pick_sell_price, product_page_url

from conftest import FakeClock, html_response

PRODUCT_PAGE = """
<html><body>
  <section class="price-guide">
    <span data-testid="price-guide-price">$1,234.56</span>
  </section>
</body></html>
"""


class FakeTCG:
    def __init__(self, page=PRODUCT_PAGE):
        self.page = page
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.url.host == "www.tcgplayer.com":
            return html_response(self.page)
        if request.url.path == "/token":
            return httpx.Response(200, json={"access_token": "bearer-token"})
        if request.url.path == "/catalog/products":
            return httpx.Response(200, json={"results": [{
                "productId": 42382, "name": "Charizard", "imageUrl": "https://img/1.jpg", "url": "https://tcg/42382",
                "extendedData": [
                    {"name": "Number", "value": "4/102"},
                    {"name": "Rarity", "value": "Holo Rare"},
                    {"name": "Set Name", "value": "Base Set"},
                ],
            }]})
        if request.url.path.startswith("/pricing/product/"):
            return httpx.Response(200, json={"results": [
                {"subTypeName": "Holofoil", "marketPrice": 410.0, "lowPrice": 350.0},
                {"subTypeName": "Normal", "marketPrice": None},
            ]})
        return httpx.Response(404)


def _client(fake, public_key="pub", private_key="priv"):
    cache = TTLCache(1800, clock=FakeClock())
    return TCGPlayerClient(public_key, private_key, cache, transport=httpx.MockTransport(fake))


def test_product_page_url_filters():
    url = product_page_url("42382", "lightly_played", "English", first_edition=True, holo=True)
    assert url == (
        "https://www.tcgplayer.com/product/42382?page=1&Language=English"
        "&Condition=Lightly+Played&Printing=1st+Edition&Treatment=Holofoil"
    )


def test_parse_price_guide():
    assert parse_price_guide(PRODUCT_PAGE) == "1234.56"
    assert parse_price_guide("<html></html>") is None


def test_pick_sell_price_prefers_normal():
    assert pick_sell_price([{"subTypeName": "Holofoil", "marketPrice": 5}, {"subTypeName": "Normal", "marketPrice": 2}]) == 2
    assert pick_sell_price([{"subTypeName": "Holofoil", "marketPrice": 5}]) == 5
    assert pick_sell_price([]) is None


@pytest.mark.asyncio
async def test_search_products_maps_extended_data_and_reuses_token():
    fake = FakeTCG()
    client = _client(fake)

    results = await client.search_products("Pokemon", "Charizard", limit=100)
    await client.search_products("pokemon", "Blastoise")

    assert results == [{
        "source": "tcgplayer", "game": "pokemon", "productId": 42382, "name": "Charizard",
        "imageUrl": "https://img/1.jpg", "url": "https://tcg/42382", "set": "Base Set",
        "number": "4/102", "rarity": "Holo Rare", "printedType": None,
    }]
    search = [r for r in fake.requests if r.url.path == "/catalog/products"][0]
    assert search.url.params["categoryId"] == "3"
    assert search.url.params["pageSize"] == "50"
    assert search.headers["authorization"] == "bearer bearer-token"
    assert len([r for r in fake.requests if r.url.path == "/token"]) == 1


@pytest.mark.asyncio
async def test_get_prices():
    prices = await _client(FakeTCG()).get_prices(42382)
    assert prices["productId"] == 42382
    assert prices["prices"][0]["marketPrice"] == 410.0
    assert pick_sell_price(prices["prices"]) == 410.0


@pytest.mark.asyncio
async def test_missing_keys():
    with pytest.raises(ConfigurationError):
        await _client(FakeTCG(), public_key="").get_prices(1)


@pytest.mark.asyncio
async def test_scrape_market_price_caches_per_variant():
    fake = FakeTCG()
    client = _client(fake)

    first = await client.scrape_market_price("42382", "near_mint")
    again = await client.scrape_market_price("42382", "near_mint")
    await client.scrape_market_price("42382", "near_mint", holo=True)

    assert first == {"price": "1234.56", "productId": "42382", "url": product_page_url("42382", "near_mint")}
    assert again["cached"] is True
    assert len(fake.requests) == 2
    assert fake.requests[0].url.params["Condition"] == "Near Mint"


@pytest.mark.asyncio
async def test_scrape_market_price_without_price_element():
    client = _client(FakeTCG(page="<html><body>Loading...</body></html>"))
    with pytest.raises(UpstreamError):
        await client.scrape_market_price("1")
