from __future__ import annotations
from typing import Any, Dict, List, Optional

from tradein.db import SupabaseClient
from tradein.errors import NotFoundError

INVENTORY = "card_inventory"
SHOPIFY_SETTINGS = "shopify_settings"
FIELD_MAPPINGS = "shopify_field_mappings"

_ITEM_COLUMNS = (
    "*,cards(id,name,image_url,game,set_name,attributes),"
    "trade_in_items(condition,quantity,attributes)"
)


class InventoryStore:
    def __init__(self, db: SupabaseClient):
        self.db = db

    async def list(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = {"status": status} if status else None
        return await self.db.select(INVENTORY, columns=_ITEM_COLUMNS, filters=filters, order="processed_at.desc")

    async def get(self, item_id: str) -> Dict[str, Any]:
        item = await self.db.maybe_single(INVENTORY, columns=_ITEM_COLUMNS, filters={"id": item_id})
        if not item:
            raise NotFoundError(message="Inventory item not found", details={"id": item_id})
        return item

    async def mark_synced(self, item_id: str, shopify_product_id: str, shopify_variant_id: Optional[str] = None) -> Dict[str, Any]:
        rows = await self.db.update(
            INVENTORY,
            {
                "shopify_synced": True,
                "shopify_product_id": str(shopify_product_id),
                "shopify_variant_id": str(shopify_variant_id) if shopify_variant_id else None,
            },
            {"id": item_id},
        )
        if not rows:
            raise NotFoundError(message="Inventory item not found", details={"id": item_id})
        return rows[0]

    async def shopify_settings(self) -> Optional[Dict[str, Any]]:
        return await self.db.maybe_single(
            SHOPIFY_SETTINGS, columns="shop_domain,access_token", filters={"is_active": True}
        )

    async def field_mappings(self) -> List[Dict[str, Any]]:
        return await self.db.select(
            FIELD_MAPPINGS, filters={"is_active": True}, order="mapping_type.asc,sort_order.asc"
        )
