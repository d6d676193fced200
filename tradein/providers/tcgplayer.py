from __future__ import annotations
from typing import Any, Dict, List, Optional
import base64
import logging
import re

import httpx
from bs4 import BeautifulSoup

from tradein.cache import TTLCache, make_key
from tradein.errors import BadRequestError, ConfigurationError, UpstreamError
from tradein.valuation import normalize_game_type

logger = logging.getLogger(__name__)

TCG_AUTH_URL = "https://api.tcgplayer.com/token"
TCG_API_BASE = "https://api.tcgplayer.com"
TCG_SITE = "https://www.tcgplayer.com"

PRICE_SELECTOR = '[data-testid="price-guide-price"]'

DEFAULT_CATEGORY_IDS = {
    "magic": 1,
    "pokemon": 3,
    "japanese-pokemon": 85,
}

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


def product_page_url(product_id: str, condition: str = "", language: str = "English",
                     first_edition: bool = False, holo: bool = False) -> str:
    url = f"{TCG_SITE}/product/{product_id}?page=1&Language={language}"
    if condition:
        # near_mint -> Near+Mint
        url += "&Condition=" + "+".join(w.capitalize() for w in condition.split("_"))
    if first_edition:
        url += "&Printing=1st+Edition"
    if holo:
        url += "&Treatment=Holofoil"
    return url


def parse_price_guide(html: str) -> Optional[str]:
    """Market price text from the product page, digits and dot only."""
    soup = BeautifulSoup(html, "html.parser")
    el = soup.select_one(PRICE_SELECTOR)
    if el is None:
        return None
    price = re.sub(r"[^0-9.]", "", el.get_text(strip=True))
    return price or None


class TCGPlayerClient:
    def __init__(self, public_key: str, private_key: str, cache: TTLCache,
                 timeout: float = 20, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.public_key = public_key
        self.private_key = private_key
        self.cache = cache
        self.timeout = timeout
        self.transport = transport

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, **kwargs)

    def _basic_auth_header(self) -> str:
        raw = f"{self.public_key}:{self.private_key}".encode("utf-8")
        return base64.b64encode(raw).decode("utf-8")

    async def _get_access_token(self) -> str:
        cache_key = "tcg:token"
        cached = self.cache.get(cache_key)
        if cached:
            return cached

        if not self.public_key or not self.private_key:
            raise ConfigurationError(message="Missing TCGplayer keys. Set TCGPLAYER_PUBLIC_KEY and TCGPLAYER_PRIVATE_KEY in .env")

        headers = {
            "Authorization": f"Basic {self._basic_auth_header()}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        data = {"grant_type": "client_credentials"}

        async with self._client() as client:
            resp = await client.post(TCG_AUTH_URL, headers=headers, data=data)
            resp.raise_for_status()
            payload = resp.json()

        token = payload["access_token"]
        self.cache.set(cache_key, token)
        return token

    async def search_products(self, game: str, q: str, limit: int = 20) -> List[Dict[str, Any]]:
        game_key = normalize_game_type(game)
        category_id = DEFAULT_CATEGORY_IDS.get(game_key)
        if not category_id:
            raise BadRequestError(message=f"Unsupported game: {game}")

        token = await self._get_access_token()
        url = f"{TCG_API_BASE}/catalog/products"
        headers = {"Authorization": f"bearer {token}"}
        params = {
            "categoryId": category_id,
            "productName": q,
            "getExtendedFields": "true",
            "pageSize": min(limit, 50),
        }

        async with self._client() as client:
            resp = await client.get(url, headers=headers, params=params)
            resp.raise_for_status()
            data = resp.json()

        results: List[Dict[str, Any]] = []
        for item in data.get("results", []):
            ext = {f.get("name"): f.get("value") for f in item.get("extendedData", []) if isinstance(f, dict)}
            results.append({
                "source": "tcgplayer",
                "game": game_key,
                "productId": item.get("productId"),
                "name": item.get("name"),
                "imageUrl": item.get("imageUrl"),
                "url": item.get("url"),
                "set": ext.get("Set Name") or ext.get("Set") or ext.get("Expansion"),
                "number": ext.get("Number") or ext.get("Card Number"),
                "rarity": ext.get("Rarity"),
                "printedType": ext.get("Printed Type") or ext.get("Card Type"),
            })
        return results

    async def get_prices(self, product_id: int) -> Dict[str, Any]:
        token = await self._get_access_token()
        url = f"{TCG_API_BASE}/pricing/product/{product_id}"
        headers = {"Authorization": f"bearer {token}"}

        async with self._client() as client:
            resp = await client.get(url, headers=headers)
            resp.raise_for_status()
            data = resp.json()

        rows = data.get("results", [])
        prices = []
        for r in rows:
            prices.append({
                "subTypeName": r.get("subTypeName"),
                "marketPrice": r.get("marketPrice"),
                "lowPrice": r.get("lowPrice"),
                "midPrice": r.get("midPrice"),
                "highPrice": r.get("highPrice"),
                "directLowPrice": r.get("directLowPrice"),
            })

        return {"source": "tcgplayer", "productId": product_id, "prices": prices}

    async def scrape_market_price(self, product_id: str, condition: str = "near_mint", language: str = "English",
                                  first_edition: bool = False, holo: bool = False) -> Dict[str, Any]:
        """Market price from the public product page for one condition/printing."""
        key = make_key("tcgpage", product_id, condition, language, first_edition, holo)
        cached = self.cache.get(key)
        if cached is not None:
            return {**cached, "cached": True}

        url = product_page_url(product_id, condition, language, first_edition, holo)
        async with self._client(follow_redirects=True) as client:
            resp = await client.get(url, headers={"User-Agent": BROWSER_UA, "Accept": "text/html"})
        if resp.status_code >= 400:
            raise UpstreamError(source="tcgplayer", message=f"Request failed with status: {resp.status_code}",
                                upstream_status=resp.status_code)

        price = parse_price_guide(resp.text)
        if not price:
            logger.warning("Price element not found for product %s (%d bytes)", product_id, len(resp.text))
            raise UpstreamError(source="tcgplayer", message="Price element not found")

        result = {"price": price, "productId": product_id, "url": url}
        self.cache.set(key, result)
        return result


def pick_sell_price(prices: List[Dict[str, Any]]) -> Optional[float]:
    # prefer the "Normal" printing's market price, else the first market price
    for row in prices:
        if (row.get("subTypeName") or "").lower() == "normal" and row.get("marketPrice"):
            return row["marketPrice"]
    for row in prices:
        if row.get("marketPrice"):
            return row["marketPrice"]
    return None
