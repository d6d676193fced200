from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

import httpx

from tradein.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

JUSTTCG_API = "https://api.justtcg.com/v1"

# best to worst
CONDITION_ORDER = ["mint", "near_mint", "lightly_played", "moderately_played", "heavily_played", "damaged"]
FALLBACK_ORDER = CONDITION_ORDER[1:]

CONDITION_ALIASES = {
    "mint": ["mint", "m"],
    "near_mint": ["near_mint", "nearMint", "nm"],
    "lightly_played": ["lightly_played", "lightlyPlayed", "lp"],
    "moderately_played": ["moderately_played", "moderatelyPlayed", "mp"],
    "heavily_played": ["heavily_played", "heavilyPlayed", "hp"],
    "damaged": ["damaged", "poor", "dp"],
}

PRICE_FIELDS = ["marketPrice", "market", "avg", "average", "mid", "price", "low"]

# card search parameters passed through to GET /cards
CARD_QUERY_FIELDS = ("q", "printing", "condition", "limit", "offset", "game", "set",
                     "tcgplayerId", "cardId", "variantId")


def _as_number(val: Any) -> Optional[float]:
    if isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val)
    if isinstance(val, str):
        try:
            return float(val.replace("$", ""))
        except ValueError:
            return None
    return None


def pick_number(obj: Any, keys: List[str]) -> Optional[float]:
    if not isinstance(obj, dict):
        return None
    for key in keys:
        n = _as_number(obj.get(key))
        if n is not None:
            return n
    return None


def price_for_condition(card: Dict[str, Any], condition: str) -> Optional[float]:
    """The API has returned several shapes over time; try each known container."""
    containers = [card.get("prices"), card.get("marketPrices"), (card.get("tcgplayer") or {}).get("prices")]
    for container in containers:
        if not isinstance(container, dict):
            continue
        for key in CONDITION_ALIASES.get(condition, [condition]):
            entry = container.get(key)
            if entry is None:
                continue
            n = pick_number(entry, PRICE_FIELDS) if isinstance(entry, dict) else _as_number(entry)
            if n is not None:
                return n
    return pick_number(card, PRICE_FIELDS)


def variant_score(card: Dict[str, Any], first_edition: Optional[bool], holo: Optional[bool],
                  reverse_holo: Optional[bool]) -> int:
    fe = card.get("firstEdition", card.get("first_edition"))
    h = card.get("holo", card.get("isHolo", card.get("foil")))
    rh = card.get("reverseHolo", card.get("reverse_holo", card.get("isReverseHolo")))
    score = 0
    if first_edition is True and fe is True:
        score += 2
    if holo is True and h is True:
        score += 1
    if reverse_holo is True and rh is True:
        score += 1
    return score


def select_price(card: Dict[str, Any], condition: str) -> Dict[str, Any]:
    """
    Condition prices are forced non-increasing from mint to damaged, then the
    requested condition is used, else the first priced fallback condition.
    """
    prices = {c: price_for_condition(card, c) for c in CONDITION_ORDER}

    adjustments = []
    prev = None
    for c in CONDITION_ORDER:
        cur = prices[c]
        if prev is not None and cur is not None and cur > prev:
            prices[c] = prev
            adjustments.append(f"{c} capped to {prev:.2f}")
        if prices[c] is not None:
            prev = prices[c]

    def _priced(c: str) -> Optional[float]:
        v = prices.get(c)
        return v if v is not None and v > 0 else None

    chosen_cond = condition
    chosen = _priced(condition)
    if chosen is None:
        for c in FALLBACK_ORDER:
            chosen = _priced(c)
            if chosen is not None:
                chosen_cond = c
                break

    out: Dict[str, Any] = {
        "method": "justtcg",
        "conditionAnomalyAdjusted": bool(adjustments),
    }
    if adjustments:
        out["adjustmentNote"] = "; ".join(adjustments)
    if chosen is None:
        out.update({"price": "0.00", "unavailable": True})
    else:
        out.update({"price": round(chosen, 2), "actualCondition": chosen_cond})
    return out


class JustTCGClient:
    """JustTCG catalog (games, sets, cards) and condition-aware pricing."""

    def __init__(self, api_key: str, timeout: float = 20, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = (api_key or "").strip().strip("'\"")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                       json: Any = None) -> Any:
        if not self.api_key:
            raise ConfigurationError(message="Missing JUSTTCG_API_KEY")

        headers = {"x-api-key": self.api_key, "accept": "application/json"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.request(method, f"{JUSTTCG_API}{path}", params=params, json=json, headers=headers)
        logger.debug("JustTCG %s %s -> %s", method, path, resp.status_code)
        if resp.status_code >= 400:
            logger.warning("JustTCG %s %s failed: %s", method, path, resp.status_code)
            raise UpstreamError(source="justtcg", message="JustTCG request failed", upstream_status=resp.status_code)
        return resp.json()

    async def list_games(self) -> Any:
        return await self._request("GET", "/games")

    async def list_sets(self, game: str) -> Any:
        return await self._request("GET", "/sets", params={"game": game})

    async def search_cards(self, **query: Any) -> Any:
        """GET /cards with every non-empty known parameter."""
        params = {k: str(query[k]) for k in CARD_QUERY_FIELDS if query.get(k) not in (None, "")}
        return await self._request("GET", "/cards", params=params)

    async def lookup_cards(self, lookups: List[Dict[str, Any]]) -> Any:
        """Batch lookup: POST /cards with a list of {tcgplayerId|cardId|variantId, ...}."""
        return await self._request("POST", "/cards", json=lookups)

    async def get_price(self, product_id: str, condition: str = "near_mint",
                        first_edition: Optional[bool] = None, holo: Optional[bool] = None,
                        reverse_holo: Optional[bool] = None) -> Dict[str, Any]:
        payload = await self.search_cards(tcgplayerId=product_id)
        if isinstance(payload, list):
            cards = payload
        else:
            cards = payload.get("cards") or payload.get("data") or payload.get("results") or []
        if not isinstance(cards, list) or not cards:
            return {"price": "0.00", "unavailable": True, "method": "justtcg"}

        selected = max(cards, key=lambda c: variant_score(c, first_edition, holo, reverse_holo))
        return select_price(selected, condition or "near_mint")
