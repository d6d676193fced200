from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

from tradein.cache import TTLCache
from tradein.db import SupabaseClient
from tradein.errors import BadRequestError

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "trade_value_settings"
API_KEYS_TABLE = "api_keys"

_SETTING_FIELDS = ("min_value", "max_value", "cash_percentage", "trade_percentage",
                   "fixed_cash_value", "fixed_trade_value")


class SettingsStore:
    """trade_value_settings rows per game, cached for the configured TTL."""

    def __init__(self, db: SupabaseClient, cache: TTLCache):
        self.db = db
        self.cache = cache

    async def get_game_settings(self, game: str) -> List[Dict[str, Any]]:
        key = game.lower()
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached settings for %s, age %.0fs", key, self.cache.age(key) or 0)
            return cached

        rows = await self.db.select(SETTINGS_TABLE, filters={"game": key})
        logger.info("Loaded %d trade value setting(s) for %s", len(rows), key)
        self.cache.set(key, rows)
        return rows

    async def replace_game_settings(self, game: str, settings: List[Dict[str, Any]]) -> int:
        key = game.lower()
        rows = []
        for s in settings:
            if not isinstance(s, dict):
                raise BadRequestError(message="Invalid settings format")
            row = {k: s.get(k) for k in _SETTING_FIELDS}
            row["game"] = key
            rows.append(row)

        await self.db.delete(SETTINGS_TABLE, {"game": key})
        if rows:
            await self.db.insert(SETTINGS_TABLE, rows)
        self.clear(key)
        logger.info("Saved %d trade value setting(s) for %s", len(rows), key)
        return len(rows)

    def clear(self, game: Optional[str] = None) -> None:
        if game:
            if self.cache.delete(game.lower()):
                logger.info("Cleared settings cache for %s", game.lower())
        else:
            self.cache.clear()
            logger.info("Cleared entire settings cache")


class ApiKeyStore:
    def __init__(self, db: SupabaseClient):
        self.db = db

    async def get(self, name: str) -> Optional[str]:
        row = await self.db.maybe_single(API_KEYS_TABLE, columns="key_value", filters={"key_name": name, "is_active": True})
        if not row:
            return None
        value = (row.get("key_value") or "").strip()
        return value or None
