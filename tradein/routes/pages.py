from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from tradein.cache import make_key
from tradein.providers.tcgplayer import pick_sell_price
from tradein.services import Services, get_services
from tradein.valuation import calculate_trade_value, normalize_game_type

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(request, "index.html", {})


@router.get("/cards/{product_id}", response_class=HTMLResponse)
async def card_page(
    request: Request,
    product_id: int,
    game: str = Query("pokemon"),
    name: str = Query(""),
    services: Services = Depends(get_services),
):
    game_key = normalize_game_type(game)

    cache = services.caches["search"]
    price_key = make_key("tcgprice", product_id)
    tcg_prices = cache.get(price_key)
    if tcg_prices is None:
        tcg_prices = await services.tcg.get_prices(product_id)
        cache.set(price_key, tcg_prices)

    sell_price = pick_sell_price(tcg_prices.get("prices", []))
    values = None
    if sell_price:
        values = await calculate_trade_value(
            services.settings_store, services.fallback_log, game_key, float(sell_price),
            fallback=services.fallback,
        )

    ctx = {
        "card": {"productId": product_id, "game": game_key, "name": name or f"Product {product_id}"},
        "tcg_prices": tcg_prices,
        "sell_price": sell_price,
        "values": values,
    }
    return templates.TemplateResponse(request, "card.html", ctx)
