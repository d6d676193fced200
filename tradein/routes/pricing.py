from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from tradein.cache import make_key
from tradein.errors import BadRequestError, RateLimitedError
from tradein.providers import ebay as ebay_provider
from tradein.providers import point130 as point130_provider
from tradein.ratelimit import client_ip
from tradein.schemas import CertIn, JustTcgPriceIn, Point130SearchIn, PsaEbayPriceIn, PsaPriceLookupIn, ScrapePriceIn
from tradein.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pricing"])


@router.get("/search")
async def api_search(
    game: str = Query(...),
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=50),
    services: Services = Depends(get_services),
):
    cache = services.caches["search"]
    key = make_key("search", game, q, limit)
    cached = cache.get(key)
    if cached is not None:
        return cached

    results = await services.tcg.search_products(game=game, q=q, limit=limit)
    cache.set(key, results)
    return results


@router.post("/scrape-130point")
async def scrape_130point(payload: Point130SearchIn, request: Request, services: Services = Depends(get_services)):
    query = payload.searchQuery.strip()
    if not query:
        raise BadRequestError(message="Search query is required")

    cache = services.caches["point130"]
    key = make_key("130point", query)
    cached = cache.get(key)
    if cached is not None:
        logger.info("Cache hit for query: %s", query)
        return cached

    # cache hits above are not counted against the limit
    ip = client_ip(request)
    if not services.limiter.hit(ip):
        logger.warning("Rate limit exceeded for %s", ip)
        raise RateLimitedError(retry_after=services.limiter.retry_after(ip))

    html = await services.point130.search_html(query, user_agent=payload.userAgent)
    result = {"html": html}
    cache.set(key, result)
    return result


@router.post("/psa-price-lookup")
async def psa_price_lookup(payload: PsaPriceLookupIn, services: Services = Depends(get_services)):
    if not payload.cardName.strip():
        raise BadRequestError(message="Card name is required")

    query = point130_provider.build_psa_query(payload.cardName, payload.setName, payload.cardNumber, payload.grade)
    summary = await services.psa_prices.lookup(
        query, key_parts=(payload.cardName, payload.setName, payload.cardNumber, payload.grade)
    )
    return summary.to_dict()


@router.post("/psa-ebay-price")
async def psa_ebay_price(payload: PsaEbayPriceIn, services: Services = Depends(get_services)):
    if not (payload.game and payload.card_name and payload.psa_grade):
        raise BadRequestError(message="Missing required fields: game, card_name, and psa_grade are required")

    query = ebay_provider.build_psa_query(payload.game, payload.card_name, payload.card_number, payload.psa_grade)
    logger.info("Searching eBay for recent sales: %s", query)
    sales = await services.ebay.search_sold(query, limit=services.settings.ebay_sold_limit)
    result = ebay_provider.price_from_sold(sales, query)

    await services.psa_search_log.record(
        payload.game, payload.card_name, payload.card_number, payload.psa_grade,
        result["average_price"], result["sales_count"],
    )
    return result


@router.post("/psa-scraper")
async def psa_scraper(payload: CertIn, services: Services = Depends(get_services)):
    cert = payload.certNumber.strip()
    if not cert:
        raise BadRequestError(message="Certificate number is required")
    return await services.psa.scrape_cert(cert)


@router.post("/cert-lookup")
async def cert_lookup(payload: CertIn, services: Services = Depends(get_services)):
    cert = payload.certNumber.strip()
    if not cert:
        raise BadRequestError(message="Certificate number is required")
    return await services.psa.lookup_cert(cert)


@router.post("/scrape-price")
async def scrape_price(payload: ScrapePriceIn, services: Services = Depends(get_services)):
    if not payload.productId.strip():
        raise BadRequestError(message="Product ID is required")
    return await services.tcg.scrape_market_price(
        payload.productId.strip(),
        condition=payload.condition,
        language=payload.language,
        first_edition=payload.isFirstEdition,
        holo=payload.isHolo,
    )


@router.post("/justtcg-price")
async def justtcg_price(payload: JustTcgPriceIn, services: Services = Depends(get_services)):
    if not payload.productId:
        raise BadRequestError(message="productId is required")
    return await services.justtcg.get_price(
        payload.productId,
        condition=payload.condition,
        first_edition=payload.isFirstEdition,
        holo=payload.isHolo,
        reverse_holo=payload.isReverseHolo,
    )


@router.get("/justtcg/games")
async def justtcg_games(services: Services = Depends(get_services)):
    return await services.justtcg.list_games()


@router.get("/justtcg/sets")
async def justtcg_sets(game: str = Query(""), services: Services = Depends(get_services)):
    if not game.strip():
        raise BadRequestError(message="Missing required 'game' parameter")
    return await services.justtcg.list_sets(game.strip())


@router.get("/justtcg/cards")
async def justtcg_cards(
    q: Optional[str] = Query(None),
    game: Optional[str] = Query(None),
    set_id: Optional[str] = Query(None, alias="set"),
    printing: Optional[str] = Query(None),
    condition: Optional[str] = Query(None),
    tcgplayerId: Optional[str] = Query(None),
    cardId: Optional[str] = Query(None),
    variantId: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    offset: Optional[int] = Query(None, ge=0),
    services: Services = Depends(get_services),
):
    return await services.justtcg.search_cards(
        q=q, game=game, set=set_id, printing=printing, condition=condition,
        tcgplayerId=tcgplayerId, cardId=cardId, variantId=variantId, limit=limit, offset=offset,
    )


@router.post("/justtcg/cards")
async def justtcg_cards_batch(lookups: List[Dict[str, Any]] = Body(...), services: Services = Depends(get_services)):
    if not lookups:
        raise BadRequestError(message="At least one card lookup is required")
    return await services.justtcg.lookup_cards(lookups)

@router.get("/ebay-token")
async def ebay_token(services: Services = Depends(get_services)):
    token = await services.ebay.get_token()
    return {
        "access_token": token["access_token"],
        "expires_in": token["expires_in"],
        "token_type": token["token_type"],
    }
