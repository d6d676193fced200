from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging

from tradein.db import SupabaseClient
from tradein.errors import BadRequestError, DatabaseError, NotFoundError
from tradein.sku import generate_sku, tcgplayer_id_from_url

logger = logging.getLogger(__name__)

CUSTOMERS = "customers"
TRADE_INS = "trade_ins"
TRADE_IN_ITEMS = "trade_in_items"
INVENTORY = "card_inventory"

STATUSES = ("pending", "accepted", "rejected")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def summarize_items(items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Totals for a trade-in from its items (value * quantity)."""
    total = cash = trade = 0.0
    payment_types = set()
    for it in items:
        qty = int(it.get("quantity") or 1)
        attrs = it.get("attributes") or {}
        total += float(it.get("price") or 0) * qty
        cash += float(attrs.get("cashValue") or 0) * qty
        trade += float(attrs.get("tradeValue") or 0) * qty
        if attrs.get("paymentType") in ("cash", "trade"):
            payment_types.add(attrs["paymentType"])

    if len(payment_types) > 1:
        payment_type = "mixed"
    elif payment_types:
        payment_type = payment_types.pop()
    else:
        payment_type = None

    return {
        "total_value": round(total, 2),
        "cash_value": round(cash, 2),
        "trade_value": round(trade, 2),
        "payment_type": payment_type,
    }


class CustomerStore:
    def __init__(self, db: SupabaseClient):
        self.db = db

    async def list(self) -> List[Dict[str, Any]]:
        return await self.db.select(CUSTOMERS, order="last_name.asc")

    async def upsert(self, first_name: str, last_name: str, email: Optional[str] = None,
                     phone: Optional[str] = None) -> Dict[str, Any]:
        """Create a customer, or update the one already registered with ``email``."""
        if email:
            existing = await self.db.maybe_single(CUSTOMERS, filters={"email": email})
            if existing:
                rows = await self.db.update(
                    CUSTOMERS,
                    {"first_name": first_name, "last_name": last_name, "phone": phone or None},
                    {"id": existing["id"]},
                )
                return rows[0] if rows else existing

        rows = await self.db.insert(CUSTOMERS, {
            "first_name": first_name,
            "last_name": last_name,
            "email": email or None,
            "phone": phone or None,
        })
        if not rows:
            raise DatabaseError(message="Customer was not created")
        return rows[0]


class TradeInStore:
    def __init__(self, db: SupabaseClient):
        self.db = db

    async def list(self, status: str = "all") -> List[Dict[str, Any]]:
        filters = None
        if status != "all":
            if status not in STATUSES:
                raise BadRequestError(message=f"Unknown status filter: {status}")
            filters = {"status": status}
        return await self.db.select(
            TRADE_INS,
            columns="*,customers(first_name,last_name)",
            filters=filters,
            order="trade_in_date.desc",
        )

    async def get(self, trade_in_id: str) -> Dict[str, Any]:
        trade_in = await self.db.maybe_single(
            TRADE_INS, columns="*,customers(first_name,last_name)", filters={"id": trade_in_id}
        )
        if not trade_in:
            raise NotFoundError(message="Trade-in not found", details={"id": trade_in_id})
        trade_in["items"] = await self.db.select(TRADE_IN_ITEMS, filters={"trade_in_id": trade_in_id})
        return trade_in

    async def create(self, customer_id: str, items: List[Dict[str, Any]], payment_type: str = "trade",
                     notes: Optional[str] = None) -> Dict[str, Any]:
        if not customer_id:
            raise BadRequestError(message="Customer ID is required")
        if not items:
            raise BadRequestError(message="No items to process in trade-in")

        totals = summarize_items(items)
        rows = await self.db.insert(TRADE_INS, {
            "customer_id": customer_id,
            "trade_in_date": _now_iso(),
            "total_value": totals["total_value"],
            "cash_value": totals["cash_value"],
            "trade_value": totals["trade_value"],
            "payment_type": totals["payment_type"] or payment_type,
            "notes": notes,
            "status": "pending",
        })
        if not rows:
            raise DatabaseError(message="Trade-in record was not created")
        trade_in = rows[0]

        item_rows = [
            {
                "trade_in_id": trade_in["id"],
                "card_id": it["card_id"],
                "quantity": it.get("quantity", 1),
                "price": it["price"],
                "condition": it.get("condition", "near_mint"),
                "attributes": it.get("attributes") or {},
            }
            for it in items
        ]
        trade_in["items"] = await self.db.insert(TRADE_IN_ITEMS, item_rows)
        logger.info("Created trade-in %s with %d item(s), total %.2f", trade_in["id"], len(item_rows), totals["total_value"])
        return trade_in

    async def set_status(self, trade_in_id: str, status: str, handled_by: Optional[str] = None) -> Dict[str, Any]:
        if status not in STATUSES:
            raise BadRequestError(message=f"Unknown status: {status}")
        rows = await self.db.update(
            TRADE_INS,
            {"status": status, "handled_at": _now_iso(), "handled_by": handled_by},
            {"id": trade_in_id},
        )
        if not rows:
            raise NotFoundError(message="Trade-in not found", details={"id": trade_in_id})
        trade_in = rows[0]

        if status == "accepted":
            trade_in["inventory_created"] = await self._stock_inventory(trade_in_id, handled_by)
        return trade_in

    async def set_staff_notes(self, trade_in_id: str, staff_notes: Optional[str]) -> Dict[str, Any]:
        rows = await self.db.update(TRADE_INS, {"staff_notes": staff_notes}, {"id": trade_in_id})
        if not rows:
            raise NotFoundError(message="Trade-in not found", details={"id": trade_in_id})
        return rows[0]

    async def _stock_inventory(self, trade_in_id: str, processed_by: Optional[str]) -> int:
        """One available card_inventory row per accepted item, tagged with its SKU."""
        items = await self.db.select(
            TRADE_IN_ITEMS, columns="*,cards:card_id(tcgplayer_url)", filters={"trade_in_id": trade_in_id}
        )
        if not items:
            return 0

        now = _now_iso()
        records = []
        for it in items:
            attrs = it.get("attributes") or {}
            card = it.get("cards") or {}
            sku = generate_sku(
                tcgplayer_id_from_url(card.get("tcgplayer_url")),
                bool(attrs.get("isFirstEdition")),
                bool(attrs.get("isHolo")),
                it.get("condition") or "near_mint",
                bool(attrs.get("isReverseHolo")),
            )
            records.append({
                "trade_in_item_id": it["id"],
                "card_id": it.get("card_id"),
                "trade_in_price": it.get("price"),
                "processed_by": processed_by,
                "processed_at": now,
                "status": "available",
                "shopify_synced": False,
                "printed": False,
                "print_count": 0,
                "notes": f"SKU: {sku}",
            })

        try:
            await self.db.insert(INVENTORY, records)
        except DatabaseError as e:
            # approval stands even when stocking fails; staff can re-stock later
            logger.error("Failed to create inventory for trade-in %s: %s", trade_in_id, e.message)
            return 0
        return len(records)
