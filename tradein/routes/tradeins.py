from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from tradein.errors import ConfigurationError
from tradein.schemas import CustomerIn, StaffNotesIn, TradeInIn, TradeInStatusIn
from tradein.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["trade-ins"])


@router.get("/customers")
async def list_customers(services: Services = Depends(get_services)):
    return await services.customers.list()


@router.post("/customers", status_code=201)
async def save_customer(payload: CustomerIn, services: Services = Depends(get_services)):
    return await services.customers.upsert(payload.first_name, payload.last_name, payload.email, payload.phone)


@router.get("/trade-ins")
async def list_trade_ins(status: str = Query("all"), services: Services = Depends(get_services)):
    return await services.trade_ins.list(status)


@router.get("/trade-ins/{trade_in_id}")
async def get_trade_in(trade_in_id: str, services: Services = Depends(get_services)):
    return await services.trade_ins.get(trade_in_id)


@router.post("/trade-ins", status_code=201)
async def create_trade_in(payload: TradeInIn, services: Services = Depends(get_services)):
    return await services.trade_ins.create(
        payload.customer_id,
        [item.model_dump() for item in payload.items],
        payment_type=payload.payment_type,
        notes=payload.notes,
    )


@router.patch("/trade-ins/{trade_in_id}/status")
async def update_trade_in_status(trade_in_id: str, payload: TradeInStatusIn, services: Services = Depends(get_services)):
    return await services.trade_ins.set_status(trade_in_id, payload.status, payload.handled_by)


@router.patch("/trade-ins/{trade_in_id}/staff-notes")
async def update_staff_notes(trade_in_id: str, payload: StaffNotesIn, services: Services = Depends(get_services)):
    return await services.trade_ins.set_staff_notes(trade_in_id, payload.staff_notes)


@router.get("/inventory")
async def list_inventory(status: Optional[str] = Query(None), services: Services = Depends(get_services)):
    return await services.inventory.list(status)


@router.get("/inventory/{item_id}")
async def get_inventory_item(item_id: str, services: Services = Depends(get_services)):
    return await services.inventory.get(item_id)


@router.post("/inventory/{item_id}/shopify-sync")
async def sync_inventory_item(item_id: str, services: Services = Depends(get_services)):
    """Create the Shopify product for an item, or update it when already synced."""
    item = await services.inventory.get(item_id)

    shop = await services.inventory.shopify_settings()
    if not shop:
        raise ConfigurationError(message="Shopify settings not found")
    mappings = await services.inventory.field_mappings()
    client = services.shopify(shop.get("shop_domain") or "", shop.get("access_token") or "")

    existing_id = item.get("shopify_product_id")
    if existing_id:
        product = await client.update_product(existing_id, item, mappings)
        action = "updated"
    else:
        product = await client.create_product(item, mappings)
        action = "created"

    variant_id = product["variants"][0].get("id")
    await services.inventory.mark_synced(item_id, product["id"], variant_id)
    return {
        "success": True,
        "action": action,
        "data": {
            "item_id": item_id,
            "shopify_product_id": str(product["id"]),
            "shopify_variant_id": str(variant_id) if variant_id else None,
        },
    }
