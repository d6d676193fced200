from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from tradein.errors import BadRequestError
from tradein.schemas import CalculateValueIn, ClearCacheIn, SaveSettingsIn
from tradein.services import Services, get_services
from tradein.valuation import calculate_trade_value, normalize_game_type, parse_base_value

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["valuation"])


@router.post("/calculate-value")
async def calculate_value(payload: CalculateValueIn, services: Services = Depends(get_services)):
    base_value = parse_base_value(payload.baseValue)
    if base_value is None:
        raise BadRequestError(message="Invalid baseValue", details={"baseValue": payload.baseValue})

    result = await calculate_trade_value(
        services.settings_store,
        services.fallback_log,
        payload.game,
        base_value,
        user_id=payload.userId,
        fallback=services.fallback,
    )
    return result.to_dict()


@router.get("/trade-value-settings")
async def get_trade_value_settings(
    game: str = Query("pokemon"),
    services: Services = Depends(get_services),
):
    return await services.settings_store.get_game_settings(normalize_game_type(game))


@router.post("/trade-value-settings")
async def save_trade_value_settings(payload: SaveSettingsIn, services: Services = Depends(get_services)):
    if not isinstance(payload.settings, list):
        raise BadRequestError(message="Invalid settings format")
    saved = await services.settings_store.replace_game_settings(normalize_game_type(payload.game), payload.settings)
    return {"success": True, "saved": saved}


@router.post("/clear-settings-cache")
async def clear_settings_cache(payload: ClearCacheIn, services: Services = Depends(get_services)):
    game = normalize_game_type(payload.game) if payload.game else None
    services.settings_store.clear(game)
    return {"success": True, "message": f"Cache clear request processed for {game or 'all games'}"}
