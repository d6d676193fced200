from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote_plus
import base64
import logging
import time

import httpx

from tradein.errors import ConfigurationError, UpstreamError
from tradein.pricing import Sale
from tradein.statistics import percentile_trimmed_average, price_spread

logger = logging.getLogger(__name__)

EBAY_TOKEN_URL = "https://api.ebay.com/identity/v1/oauth2/token"
EBAY_BROWSE_SEARCH = "https://api.ebay.com/buy/browse/v1/item_summary/search"
EBAY_SOLD_SEARCH_PAGE = "https://www.ebay.com/sch/i.html"

# refresh this many seconds before eBay says the token expires
EXPIRY_BUFFER_SECONDS = 60


def build_psa_query(game: str, card_name: str, card_number: str, psa_grade: str) -> str:
    parts = [game, card_name]
    if card_number:
        parts.append(card_number)
    parts.append(f"PSA {psa_grade}")
    return " ".join(p for p in parts if p).strip()


def sold_search_url(query: str) -> str:
    return f"{EBAY_SOLD_SEARCH_PAGE}?_nkw={quote_plus(query)}&LH_Complete=1&LH_Sold=1"


class EbayClient:
    def __init__(self, client_id: str, client_secret: str, marketplace_id: str,
                 scope: str = "https://api.ebay.com/oauth/api_scope",
                 timeout: float = 20, transport: Optional[httpx.AsyncBaseTransport] = None,
                 clock: Callable[[], float] = time.time):
        self.client_id = client_id
        self.client_secret = client_secret
        self.marketplace_id = marketplace_id
        self.scope = scope
        self.timeout = timeout
        self.transport = transport
        self._clock = clock
        self._token: Optional[Dict[str, Any]] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def _basic_auth_header(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        return base64.b64encode(raw).decode("utf-8")

    def _token_valid(self) -> bool:
        if not self._token:
            return False
        return self._clock() < self._token["expires_at"] - EXPIRY_BUFFER_SECONDS

    async def get_token(self) -> Dict[str, Any]:
        """Client-credentials token, reused until shortly before it expires."""
        if self._token_valid():
            return self._token

        if not self.client_id or not self.client_secret:
            raise ConfigurationError(message="eBay credentials not configured - missing EBAY_CLIENT_ID or EBAY_CLIENT_SECRET")

        headers = {
            "Authorization": f"Basic {self._basic_auth_header()}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        data = {"grant_type": "client_credentials", "scope": self.scope}

        async with self._client() as client:
            resp = await client.post(EBAY_TOKEN_URL, headers=headers, data=data)
        if resp.status_code >= 400:
            logger.error("eBay OAuth token request failed: %s - %s", resp.status_code, resp.text[:200])
            raise UpstreamError(source="ebay", message=f"Failed to get eBay token: {resp.status_code}",
                                upstream_status=resp.status_code)

        payload = resp.json()
        expires_in = int(payload.get("expires_in") or 7200)
        self._token = {
            "access_token": payload["access_token"],
            "expires_in": expires_in,
            "token_type": payload.get("token_type", "Application Access Token"),
            "expires_at": self._clock() + expires_in,
        }
        logger.info("eBay token refreshed, expires in %ss", expires_in)
        return self._token

    async def search_sold(self, q: str, limit: int = 5) -> List[Sale]:
        """Most recent sold listings for ``q``; USD items with a positive price only."""
        token = (await self.get_token())["access_token"]
        headers = {
            "Authorization": f"Bearer {token}",
            "X-EBAY-C-MARKETPLACE-ID": self.marketplace_id,
        }
        params = {
            "q": q,
            "filter": "buyingOptions:{AUCTION|FIXED_PRICE},soldItemsOnly:true,conditions:{1000}",
            "limit": str(limit),
            "sort": "endTimeNewest",
        }

        async with self._client() as client:
            resp = await client.get(EBAY_BROWSE_SEARCH, headers=headers, params=params)
        if resp.status_code >= 400:
            raise UpstreamError(source="ebay", message=f"eBay API error: {resp.status_code}", upstream_status=resp.status_code)

        sales: List[Sale] = []
        for it in resp.json().get("itemSummaries") or []:
            price = it.get("price") or {}
            try:
                value = float(price.get("value"))
            except (TypeError, ValueError):
                continue
            if value <= 0 or (price.get("currency") or "USD") != "USD":
                continue
            sales.append(Sale(
                price=value,
                title=it.get("title") or "Unknown Title",
                date=it.get("itemEndDate") or "",
                link=it.get("itemWebUrl") or "",
            ))
        return sales


def price_from_sold(sales: List[Sale], query: str) -> Dict[str, Any]:
    trim = percentile_trimmed_average([s.price for s in sales])
    items = [
        {"title": s.title, "price": s.price, "url": s.link, "currency": "USD", "isOutlier": out}
        for s, out in zip(sales, trim.outliers)
    ]
    prices = [s.price for s in sales]
    return {
        "average_price": trim.average,
        "search_url": sold_search_url(query),
        "sold_items": items,
        "query": query,
        "sales_count": sum(1 for i in items if not i["isOutlier"]),
        "price_range": {"min": min(prices), "max": max(prices)} if prices else {"min": 0, "max": 0},
        "outliers_removed": trim.outliers_removed,
        "calculation_method": trim.method,
        "stats": price_spread(prices).to_dict(),
    }
