"""
Long-lived objects shared by every request: caches, the database client,
stores and upstream clients. Built once per app and kept on app.state.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import httpx
from fastapi import FastAPI, Request

from tradein.cache import TTLCache, run_sweeper
from tradein.config import Settings
from tradein.db import SupabaseClient
from tradein.pricing import PriceLookup
from tradein.providers.ebay import EbayClient
from tradein.providers.justtcg import JustTCGClient
from tradein.providers.point130 import Point130Client, parse_sales
from tradein.providers.psa import PSAClient
from tradein.providers.shopify import ShopifyClient
from tradein.providers.tcgplayer import TCGPlayerClient
from tradein.ratelimit import SlidingWindowLimiter
from tradein.stores.inventory import InventoryStore
from tradein.stores.logs import FallbackLog, PsaSearchLog
from tradein.stores.settings import ApiKeyStore, SettingsStore
from tradein.stores.tradeins import CustomerStore, TradeInStore
from tradein.valuation import FallbackPercentages

logger = logging.getLogger(__name__)

PSA_API_KEY_NAME = "PSA_API_TOKEN"


@dataclass
class Services:
    settings: Settings
    caches: Dict[str, TTLCache]
    db: SupabaseClient
    settings_store: SettingsStore
    api_keys: ApiKeyStore
    fallback_log: FallbackLog
    psa_search_log: PsaSearchLog
    customers: CustomerStore
    trade_ins: TradeInStore
    inventory: InventoryStore
    tcg: TCGPlayerClient
    ebay: EbayClient
    point130: Point130Client
    psa: PSAClient
    justtcg: JustTCGClient
    psa_prices: PriceLookup
    limiter: SlidingWindowLimiter
    fallback: FallbackPercentages = field(default_factory=FallbackPercentages)
    transport: Optional[httpx.AsyncBaseTransport] = None

    def shopify(self, shop_domain: str, access_token: str) -> ShopifyClient:
        return ShopifyClient(shop_domain, access_token, timeout=self.settings.http_timeout_seconds,
                             transport=self.transport)

    @classmethod
    def build(
        cls,
        cfg: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> "Services":
        timeout = cfg.http_timeout_seconds
        caches = {
            "search": TTLCache(cfg.search_cache_ttl_seconds, clock=clock),
            "point130": TTLCache(cfg.point130_cache_ttl_seconds, clock=clock),
            "cert": TTLCache(cfg.cert_cache_ttl_seconds, clock=clock),
            "cert_page": TTLCache(cfg.cert_scrape_cache_ttl_seconds, clock=clock),
            "scrape_price": TTLCache(cfg.scrape_price_cache_ttl_seconds, clock=clock),
            "settings": TTLCache(cfg.settings_cache_ttl_seconds, clock=clock),
        }

        db = SupabaseClient(cfg.supabase_url, cfg.supabase_key, timeout=timeout, transport=transport)
        api_keys = ApiKeyStore(db)
        point130 = Point130Client(timeout=timeout, transport=transport)

        return cls(
            settings=cfg,
            caches=caches,
            db=db,
            settings_store=SettingsStore(db, caches["settings"]),
            api_keys=api_keys,
            fallback_log=FallbackLog(db),
            psa_search_log=PsaSearchLog(db),
            customers=CustomerStore(db),
            trade_ins=TradeInStore(db),
            inventory=InventoryStore(db),
            tcg=TCGPlayerClient(
                public_key=cfg.tcgplayer_public_key,
                private_key=cfg.tcgplayer_private_key,
                cache=caches["search"],
                timeout=timeout,
                transport=transport,
            ),
            ebay=EbayClient(
                client_id=cfg.ebay_client_id,
                client_secret=cfg.ebay_client_secret,
                marketplace_id=cfg.ebay_marketplace_id,
                scope=cfg.ebay_scope,
                timeout=timeout,
                transport=transport,
                clock=clock,
            ),
            point130=point130,
            psa=PSAClient(
                token_source=lambda: api_keys.get(PSA_API_KEY_NAME),
                api_cache=caches["cert"],
                page_cache=caches["cert_page"],
                allow_mock=cfg.is_dev,
                timeout=timeout,
                transport=transport,
            ),
            justtcg=JustTCGClient(cfg.justtcg_api_key, timeout=timeout, transport=transport),
            psa_prices=PriceLookup(
                "psa-price",
                fetch=point130.fetch_cards_page,
                extract=parse_sales,
                cache=caches["point130"],
                band=cfg.trim_band,
                max_sales=cfg.psa_max_sales,
            ),
            limiter=SlidingWindowLimiter(cfg.rate_limit_per_minute, clock=clock),
            fallback=FallbackPercentages(cash=cfg.fallback_cash_percentage, trade=cfg.fallback_trade_percentage),
            transport=transport,
        )


async def get_services(request: Request) -> Services:
    return request.app.state.services


@asynccontextmanager
async def sweeper_lifespan(app: FastAPI):
    """Runs the cache sweeper for as long as the app is up."""
    services: Services = app.state.services
    sweepable = {**services.caches, "rate-limit": services.limiter}
    task = asyncio.create_task(run_sweeper(sweepable, services.settings.cache_sweep_interval_seconds))
    logger.info("Cache sweeper started (every %ss)", services.settings.cache_sweep_interval_seconds)
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Cache sweeper stopped")
