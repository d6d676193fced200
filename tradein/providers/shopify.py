from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

import httpx
from jinja2 import Environment, StrictUndefined, TemplateError

from tradein.errors import BadRequestError, ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

API_VERSION = "2023-07"

_templates = Environment(autoescape=False, undefined=StrictUndefined)


def format_condition(condition: Optional[str]) -> str:
    if not condition:
        return "Unknown"
    return " ".join(w.capitalize() for w in condition.split("_"))


def format_card_type(first_edition: bool, holo: bool, reverse_holo: bool) -> str:
    if first_edition and holo:
        return "1st Edition Holo"
    if first_edition:
        return "1st Edition"
    if holo:
        return "Holo"
    if reverse_holo:
        return "Reverse Holo"
    return "Standard"


def sku_from_notes(notes: Optional[str]) -> Optional[str]:
    if notes and notes.startswith("SKU: "):
        return notes[5:].strip() or None
    return None


def template_data(item: Dict[str, Any]) -> Dict[str, Any]:
    """Flat fields of an inventory row (with its card and trade-in item) for product templates."""
    card = item.get("cards") or {}
    source = item.get("trade_in_items") or {}
    attrs = source.get("attributes") or card.get("attributes") or {}
    condition = source.get("condition") or "near_mint"
    first_edition = bool(attrs.get("isFirstEdition"))
    holo = bool(attrs.get("isHolo"))
    reverse_holo = bool(attrs.get("isReverseHolo"))
    return {
        "card_name": card.get("name") or "Unknown Card",
        "set_name": card.get("set_name") or "",
        "game_type": card.get("game") or "unknown",
        "image_url": card.get("image_url") or "",
        "condition": format_condition(condition),
        "price": float(item.get("trade_in_price") or 0),
        "quantity": int(source.get("quantity") or 1),
        "sku": sku_from_notes(item.get("notes")) or f"INV-{str(item.get('id', ''))[:8]}",
        "card_type": format_card_type(first_edition, holo, reverse_holo),
        "is_first_edition": first_edition,
        "is_holo": holo,
        "is_reverse_holo": reverse_holo,
    }


def _render(template: str, data: Dict[str, Any]) -> str:
    try:
        return _templates.from_string(template).render(**data)
    except TemplateError as e:
        raise BadRequestError(message="Invalid field mapping template", details={"template": template, "error": str(e)})


def apply_mappings(mappings: List[Dict[str, Any]], data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Each mapping writes ``target_field`` from either a Jinja2
    ``transform_template`` or the raw ``source_field`` value. A dotted
    target ("variant.option1") writes one level deep.
    """
    out: Dict[str, Any] = {}
    for m in mappings:
        if m.get("is_active") is False:
            continue
        tpl = m.get("transform_template")
        value = _render(tpl, data) if tpl else data.get(m.get("source_field") or "")
        target = m.get("target_field") or ""
        if not target:
            continue
        if "." in target:
            parent, child = target.split(".", 1)
            out.setdefault(parent, {})[child] = value
        else:
            out[target] = value
    return out


def build_product(item: Dict[str, Any], mappings: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    data = template_data(item)
    mappings = mappings or []

    product = apply_mappings([m for m in mappings if m.get("mapping_type") == "product"], data)
    product.setdefault("title", f"{data['card_name']} - {data['condition']}")
    product.setdefault("body_html", f"<p>Trading card: {data['card_name']}</p><p>Condition: {data['condition']}</p>")
    product.setdefault("vendor", "Card Shop")
    product.setdefault("product_type", "Trading Card")
    if data["image_url"]:
        product["images"] = [{"src": data["image_url"]}]

    variant = apply_mappings([m for m in mappings if m.get("mapping_type") == "variant"], data)
    variant.setdefault("price", f"{data['price']:.2f}")
    variant.setdefault("sku", data["sku"])
    variant.setdefault("inventory_quantity", data["quantity"])
    variant.setdefault("option1", data["condition"])
    variant.update({"inventory_management": "shopify", "weight": 1, "weight_unit": "oz"})
    product["variants"] = [variant]
    return product


class ShopifyClient:
    def __init__(self, shop_domain: str, access_token: str, timeout: float = 20,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        if not shop_domain or not access_token:
            raise ConfigurationError(message="Shopify settings not found")
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{API_VERSION}"

    async def _send(self, method: str, path: str, product: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"X-Shopify-Access-Token": self.access_token, "Content-Type": "application/json"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.request(method, f"{self.base_url}{path}", headers=headers, json={"product": product})
        if resp.status_code >= 400:
            logger.error("Shopify API error (%s): %s", resp.status_code, resp.text[:300])
            raise UpstreamError(source="shopify", message=f"Shopify API error ({resp.status_code})",
                                upstream_status=resp.status_code)

        created = (resp.json() or {}).get("product") or {}
        if not created.get("id") or not created.get("variants"):
            raise UpstreamError(source="shopify", message="Invalid product data returned from Shopify")
        return created

    async def create_product(self, item: Dict[str, Any], mappings: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        product = await self._send("POST", "/products.json", build_product(item, mappings))
        logger.info("Shopify product %s created for inventory item %s", product["id"], item.get("id"))
        return product

    async def update_product(self, product_id: str, item: Dict[str, Any],
                             mappings: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        payload = build_product(item, mappings)
        payload["id"] = product_id
        product = await self._send("PUT", f"/products/{product_id}.json", payload)
        logger.info("Shopify product %s updated for inventory item %s", product_id, item.get("id"))
        return product
