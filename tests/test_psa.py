"""Tests for PSA certificate lookups (public API and cert page)."""

import httpx
import pytest

from tradein.cache import TTLCache
from tradein.errors import ConfigurationError, NotFoundError, UpstreamError
from tradein.providers.psa import PSAClient, determine_game, map_category, mock_cert, parse_cert_page

from conftest import FakeClock, html_response

CERT_PAGE = """
<html><body>
  <div class="cert-details"><h1>2016 Pokemon XY Evolutions Charizard Holo</h1></div>
  <div class="cert-grade">GRADE: GEM MT 10</div>
  <div class="cert-set">Pokemon XY Evolutions</div>
  <div class="cert-year">2016</div>
  <div class="cert-number">#11</div>
  <div class="cert-image"><img src="/images/cert/12345678.jpg"></div>
  <div class="cert-date">March 3, 2021</div>
</body></html>
"""


def _token(value):
    async def source():
        return value
    return source


def _client(handler, token="psa-token", allow_mock=False):
    clock = FakeClock()
    return PSAClient(
        token_source=_token(token),
        api_cache=TTLCache(3600, clock=clock),
        page_cache=TTLCache(86400, clock=clock),
        allow_mock=allow_mock,
        transport=httpx.MockTransport(handler),
    )


def test_map_category_and_determine_game():
    assert map_category("POKEMON CARDS") == "pokemon"
    assert map_category("BASEBALL CARDS") == "sports"
    assert map_category("") == "other"
    assert determine_game("Charizard Holo", "Base Set") == "pokemon"
    assert determine_game("Black Lotus", "Magic Alpha") == "magic"
    assert determine_game("Mickey Mantle", "Topps 1952") == "other"
    assert determine_game("Topps Mickey Mantle", "") == "sports"


def test_parse_cert_page_extracts_fields():
    data = parse_cert_page(CERT_PAGE, "12345678")

    assert data["cardName"] == "2016 Pokemon XY Evolutions Charizard Holo"
    assert data["grade"] == "GEM MT 10"
    assert data["set"] == "Pokemon XY Evolutions"
    assert data["year"] == "2016"
    assert data["cardNumber"] == "11"
    assert data["imageUrl"] == "https://www.psacard.com/images/cert/12345678.jpg"
    assert data["certificationDate"].startswith("2021-03-03")
    assert data["game"] == "pokemon"


def test_parse_cert_page_without_identifying_fields():
    assert parse_cert_page("<html><body><p>Access denied</p></body></html>", "1") is None


def test_mock_cert_is_deterministic():
    first, second = mock_cert("10000021"), mock_cert("10000021")
    first.pop("certificationDate")
    second.pop("certificationDate")
    assert first == second
    assert first["game"] == "magic"
    assert first["cardName"] == "Time Walk"
    assert first["grade"] == "9.5"


@pytest.mark.asyncio
async def test_lookup_cert_maps_api_payload_and_caches():
    calls = []

    def handler(request):
        calls.append(request)
        assert request.headers["authorization"] == "Bearer psa-token"
        return httpx.Response(200, json={"PSACert": {
            "CertNumber": "12345678", "Subject": "CHARIZARD-HOLO", "CardGrade": "GEM MT 10",
            "Year": "1999", "Brand": "POKEMON GAME", "CardNumber": "4", "Category": "TCG CARDS POKEMON",
        }})

    client = _client(handler)
    first = await client.lookup_cert("12345678")
    second = await client.lookup_cert("12345678")

    assert calls[0].url.path == "/publicapi/cert/GetByCertNumber/12345678"
    assert first["data"]["cardName"] == "CHARIZARD-HOLO"
    assert first["data"]["game"] == "pokemon"
    assert "fromCache" not in first
    assert second["fromCache"] is True
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_lookup_cert_not_found_and_upstream_error():
    with pytest.raises(NotFoundError):
        await _client(lambda r: httpx.Response(404)).lookup_cert("1")
    with pytest.raises(UpstreamError):
        await _client(lambda r: httpx.Response(503, text="down")).lookup_cert("1")


@pytest.mark.asyncio
async def test_lookup_cert_without_token():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(ConfigurationError):
        await _client(handler, token=None).lookup_cert("1")

    result = await _client(handler, token=None, allow_mock=True).lookup_cert("10000021")
    assert result["isMockData"] is True
    assert result["data"]["cardName"] == "Time Walk"


@pytest.mark.asyncio
async def test_scrape_cert_parses_and_caches_page():
    calls = []

    def handler(request):
        calls.append(request)
        return html_response(CERT_PAGE)

    client = _client(handler)
    result = await client.scrape_cert("12345678")
    again = await client.scrape_cert("12345678")

    assert str(calls[0].url) == "https://www.psacard.com/cert/12345678"
    assert result["data"]["grade"] == "GEM MT 10"
    assert again["fromCache"] is True
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_scrape_cert_blocked_page_yields_fallback():
    result = await _client(lambda r: html_response("Forbidden", 403)).scrape_cert("42")
    assert result["isFallback"] is True
    assert result["data"]["certNumber"] == "42"


@pytest.mark.asyncio
async def test_scrape_cert_unreachable_yields_fallback():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    result = await _client(handler).scrape_cert("42")
    assert result["isFallback"] is True


@pytest.mark.asyncio
async def test_scrape_cert_missing_page():
    with pytest.raises(NotFoundError):
        await _client(lambda r: html_response("not here", 404)).scrape_cert("42")
