"""
130point.com sold-listing search.

The site has no API; searches are a form POST returning an HTML table of
recent eBay sales (date, title/link, auction type, bids, price).
"""
from __future__ import annotations
from typing import List, Optional, Tuple
from urllib.parse import quote
import logging
import re

import httpx
from bs4 import BeautifulSoup

from tradein.errors import UpstreamError
from tradein.pricing import Sale

logger = logging.getLogger(__name__)

SALES_FORM_URL = "https://130point.com/sales/"
CARDS_SEARCH_URL = "https://130point.com/cards/"

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)

_PRICE_RE = re.compile(r"[\d,.]+")


def build_psa_query(card_name: str, set_name: Optional[str] = None, card_number: Optional[str] = None,
                    grade: Optional[str] = None) -> str:
    q = card_name.strip()
    if set_name:
        q += f" {set_name.strip()}"
    if card_number:
        q += f" #{card_number.strip()}"
    q += f" PSA {grade or ''}".rstrip()
    return q


def cards_search_url(query: str) -> str:
    return f"{CARDS_SEARCH_URL}?search={quote(query)}&searchButton=&sortBy=date_desc"


def _accept_for(user_agent: str) -> str:
    if "Firefox" in user_agent:
        return "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
    if "Chrome" in user_agent:
        return ("text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
                "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7")
    if "Safari" in user_agent:
        return "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    return "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def parse_sales(html: str) -> List[Sale]:
    """Rows of ``table.sales-table``; the header row and short rows are skipped."""
    soup = BeautifulSoup(html, "html.parser")
    sales: List[Sale] = []
    for row in soup.select("table.sales-table tr")[1:]:
        cells = row.find_all("td")
        if len(cells) < 5:
            continue
        m = _PRICE_RE.search(cells[4].get_text(strip=True))
        if not m:
            continue
        try:
            price = float(m.group(0).replace(",", ""))
        except ValueError:
            continue
        link = cells[1].find("a")
        sales.append(Sale(
            price=price,
            title=cells[1].get_text(strip=True),
            date=cells[0].get_text(strip=True),
            link=(link.get("href") or "") if link else "",
            auction=cells[2].get_text(strip=True),
            bids=cells[3].get_text(strip=True),
        ))
    return sales


class Point130Client:
    def __init__(self, timeout: float = 30, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True)

    async def search_html(self, query: str, user_agent: Optional[str] = None) -> str:
        ua = user_agent or DEFAULT_UA
        headers = {
            "User-Agent": ua,
            "Accept": _accept_for(ua),
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": SALES_FORM_URL,
            "Content-Type": "application/x-www-form-urlencoded",
            "Upgrade-Insecure-Requests": "1",
        }
        data = {"search": query, "searchButton": "", "sortBy": "date_desc"}

        logger.info("Searching 130point.com for: %s", query)
        async with self._client() as client:
            resp = await client.post(SALES_FORM_URL, headers=headers, data=data)
        if resp.status_code >= 400:
            raise UpstreamError(source="130point", message=f"Request failed with status: {resp.status_code}",
                                upstream_status=resp.status_code)
        return resp.text

    async def fetch_cards_page(self, query: str) -> Tuple[str, str]:
        url = cards_search_url(query)
        headers = {
            "User-Agent": DEFAULT_UA,
            "Accept": "text/html,application/xhtml+xml,application/xml",
            "Accept-Language": "en-US,en;q=0.9",
        }
        async with self._client() as client:
            resp = await client.get(url, headers=headers)
        if resp.status_code >= 400:
            raise UpstreamError(source="130point", message=f"Error fetching price data: {resp.status_code}",
                                upstream_status=resp.status_code)
        return resp.text, url
