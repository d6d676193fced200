import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

def _f(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default

def _i(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default

@dataclass(frozen=True)
class Settings:
    environment: str = os.getenv("ENVIRONMENT", "production")

    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY", "")

    tcgplayer_public_key: str = os.getenv("TCGPLAYER_PUBLIC_KEY", "")
    tcgplayer_private_key: str = os.getenv("TCGPLAYER_PRIVATE_KEY", "")

    ebay_client_id: str = os.getenv("EBAY_CLIENT_ID", "")
    ebay_client_secret: str = os.getenv("EBAY_CLIENT_SECRET", "")
    ebay_marketplace_id: str = os.getenv("EBAY_MARKETPLACE_ID", "EBAY_US")
    ebay_scope: str = os.getenv("EBAY_SCOPE", "https://api.ebay.com/oauth/api_scope")

    justtcg_api_key: str = os.getenv("JUSTTCG_API_KEY", "")

    http_timeout_seconds: float = _f("HTTP_TIMEOUT_SECONDS", 30.0)

    # TTLs per endpoint, seconds
    search_cache_ttl_seconds: int = _i("SEARCH_CACHE_TTL_SECONDS", 1800)
    point130_cache_ttl_seconds: int = _i("POINT130_CACHE_TTL_SECONDS", 3600)
    cert_cache_ttl_seconds: int = _i("CERT_CACHE_TTL_SECONDS", 3600)
    cert_scrape_cache_ttl_seconds: int = _i("CERT_SCRAPE_CACHE_TTL_SECONDS", 86400)
    scrape_price_cache_ttl_seconds: int = _i("SCRAPE_PRICE_CACHE_TTL_SECONDS", 43200)
    settings_cache_ttl_seconds: int = _i("SETTINGS_CACHE_TTL_SECONDS", 300)
    cache_sweep_interval_seconds: int = _i("CACHE_SWEEP_INTERVAL_SECONDS", 600)

    rate_limit_per_minute: int = _i("RATE_LIMIT_PER_MINUTE", 10)

    trim_band: float = _f("TRIM_BAND", 0.5)
    psa_max_sales: int = _i("PSA_MAX_SALES", 5)
    ebay_sold_limit: int = _i("EBAY_SOLD_LIMIT", 5)

    fallback_cash_percentage: float = _f("FALLBACK_CASH_PERCENTAGE", 35.0)
    fallback_trade_percentage: float = _f("FALLBACK_TRADE_PERCENTAGE", 50.0)

    @property
    def is_dev(self) -> bool:
        return self.environment.lower() in {"development", "test"}

settings = Settings()
