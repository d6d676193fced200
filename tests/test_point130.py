"""Tests for the 130point sold-listing search and table parser."""

from urllib.parse import parse_qs

import httpx
import pytest

from tradein.errors import UpstreamError
from tradein.providers.point130 import Point130Client, build_psa_query, cards_search_url, parse_sales

from conftest import html_response, sales_table


def test_build_psa_query():
    assert build_psa_query("Charizard", "Base Set", "4", "10") == "Charizard Base Set #4 PSA 10"
    assert build_psa_query("Charizard") == "Charizard PSA"


def test_cards_search_url_is_encoded():
    assert cards_search_url("Charizard #4 PSA 10") == (
        "https://130point.com/cards/?search=Charizard%20%234%20PSA%2010&searchButton=&sortBy=date_desc"
    )


def test_parse_sales_reads_rows_and_skips_bad_ones():
    html = sales_table([
        ("2024-05-01", "Charizard PSA 10", "$1,250.00"),
        ("2024-04-28", "Charizard PSA 10 Shadowless", "Best offer"),
        ("2024-04-20", "Charizard PSA 10", "$980"),
    ])
    html = html.replace("</table>", "<tr><td>short</td></tr></table>")

    sales = parse_sales(html)

    assert [s.price for s in sales] == [1250.0, 980.0]
    assert sales[0].title == "Charizard PSA 10"
    assert sales[0].date == "2024-05-01"
    assert sales[0].link == "https://ebay.com/itm/0"
    assert sales[0].auction == "Auction"
    assert sales[0].bids == "3"


def test_parse_sales_without_table():
    assert parse_sales("<html><body>No results</body></html>") == []


@pytest.mark.asyncio
async def test_search_html_posts_form_with_browser_headers():
    seen = {}

    def handler(request):
        seen["request"] = request
        return html_response("<html>results</html>")

    client = Point130Client(transport=httpx.MockTransport(handler))
    html = await client.search_html("Pikachu PSA 9", user_agent="Mozilla/5.0 Firefox/120.0")

    req = seen["request"]
    assert html == "<html>results</html>"
    assert req.method == "POST"
    assert str(req.url) == "https://130point.com/sales/"
    assert parse_qs(req.content.decode(), keep_blank_values=True) == {
        "search": ["Pikachu PSA 9"], "searchButton": [""], "sortBy": ["date_desc"],
    }
    assert req.headers["user-agent"] == "Mozilla/5.0 Firefox/120.0"
    assert "image/avif" in req.headers["accept"]
    assert req.headers["referer"] == "https://130point.com/sales/"


@pytest.mark.asyncio
async def test_search_html_error_status():
    client = Point130Client(transport=httpx.MockTransport(lambda r: html_response("blocked", 403)))
    with pytest.raises(UpstreamError) as exc:
        await client.search_html("Pikachu")
    assert exc.value.details["upstream_status"] == 403


@pytest.mark.asyncio
async def test_fetch_cards_page_returns_document_and_url():
    client = Point130Client(transport=httpx.MockTransport(lambda r: html_response("<html></html>")))
    html, url = await client.fetch_cards_page("Mew PSA 10")
    assert html == "<html></html>"
    assert url == cards_search_url("Mew PSA 10")
