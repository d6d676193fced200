from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
import logging

from tradein.cache import TTLCache, make_key
from tradein.errors import AppError
from tradein.statistics import price_spread, trimmed_mean

logger = logging.getLogger(__name__)


@dataclass
class Sale:
    price: float
    title: str = ""
    date: str = ""
    link: str = ""
    auction: str = ""
    bids: str = ""


@dataclass
class PriceSummary:
    average_price: float
    sales_count: int
    filtered_sales_count: int
    sales: List[Sale]
    all_sales: List[Sale]
    query: str
    search_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "averagePrice": self.average_price,
            "salesCount": self.sales_count,
            "filteredSalesCount": self.filtered_sales_count,
            "sales": [asdict(s) for s in self.sales],
            "allSales": [asdict(s) for s in self.all_sales],
            "query": self.query,
            "searchUrl": self.search_url,
            "stats": price_spread(s.price for s in self.all_sales).to_dict(),
        }


class NoSalesFound(AppError):
    def __init__(self, *, query: str, search_url: str = ""):
        super().__init__(
            status_code=404,
            code="no_sales",
            message="No sales data found for this card",
            details={"query": query, "searchUrl": search_url},
        )


def summarize_sales(sales: Sequence[Sale], query: str, search_url: str = "", band: float = 0.5) -> PriceSummary:
    trim = trimmed_mean([s.price for s in sales], band=band)
    kept = [sales[i] for i in trim.kept]
    return PriceSummary(
        average_price=round(trim.average, 2),
        sales_count=len(sales),
        filtered_sales_count=len(kept),
        sales=kept,
        all_sales=list(sales),
        query=query,
        search_url=search_url,
    )


# fetch(query) -> (document, url it came from); extract(document) -> sales
Fetcher = Callable[[str], Awaitable["tuple[str, str]"]]
Extractor = Callable[[str], List[Sale]]


class PriceLookup:
    """
    fetch -> extract -> trimmed mean -> cache, shared by every sold-listing
    scraper. Results are cached under the normalized key parts.
    """

    def __init__(
        self,
        name: str,
        fetch: Fetcher,
        extract: Extractor,
        cache: TTLCache,
        band: float = 0.5,
        max_sales: Optional[int] = None,
    ):
        self.name = name
        self.fetch = fetch
        self.extract = extract
        self.cache = cache
        self.band = band
        self.max_sales = max_sales

    async def lookup(self, query: str, key_parts: Sequence[Any] = ()) -> PriceSummary:
        key = make_key(self.name, *(key_parts or (query,)))
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("[%s] cache hit for %r", self.name, query)
            return cached

        document, url = await self.fetch(query)
        sales = self.extract(document)
        if self.max_sales is not None:
            sales = sales[: self.max_sales]
        if not sales:
            logger.info("[%s] no sales found for %r", self.name, query)
            raise NoSalesFound(query=query, search_url=url)

        summary = summarize_sales(sales, query=query, search_url=url, band=self.band)
        logger.info(
            "[%s] %d sales, %d kept, average %.2f for %r",
            self.name, summary.sales_count, summary.filtered_sales_count, summary.average_price, query,
        )
        self.cache.set(key, summary)
        return summary
