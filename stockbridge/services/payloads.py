"""
Normalization of marketplace payloads.

Sale lines are read through an ordered list of field paths per platform; the
first path that holds a usable value wins. Catalog items are flattened into
the rows the catalog sync upserts.
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

from stockbridge.core.enums import PlatformName

logger = logging.getLogger(__name__)

_MISSING = object()

# Ordered fallbacks, first match wins
SALE_LINE_FIELDS: Dict[PlatformName, Dict[str, Sequence[str]]] = {
    PlatformName.MERCADOLIBRE: {
        "lines": ("order_items",),
        "sku": ("item.seller_sku", "item.seller_custom_field"),
        "quantity": ("quantity",),
        "external_id": ("item.id",),
    },
    PlatformName.TIENDANUBE: {
        "lines": ("products",),
        "sku": ("sku",),
        "quantity": ("quantity",),
        "external_id": ("product_id",),
    },
}

SKU_ATTRIBUTE_IDS = ("SELLER_SKU", "SKU", "SELLER_CUSTOM_FIELD")


def get_path(payload: Any, path: str, default: Any = None) -> Any:
    """Follow a dotted path through nested dicts."""
    current = payload
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def first_present(payload: Any, *paths: str) -> Any:
    """Value of the first path that is present and not empty."""
    for path in paths:
        value = get_path(payload, path, _MISSING)
        if value is _MISSING or value is None or value == "":
            continue
        return value
    return None


@dataclass
class SaleLine:
    """One sold line of an order, in platform-neutral form."""
    platform: PlatformName
    order_id: str
    sku: Optional[str]
    quantity: Optional[float]
    external_id: Optional[str] = None

    @property
    def ref(self) -> str:
        return f"order_id:{self.order_id}"

    @property
    def usable(self) -> bool:
        return bool(self.sku) and self.quantity is not None


def _as_quantity(value: Any) -> Optional[float]:
    # Numbers only; numeric strings are treated as missing
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) else None


def extract_sale_lines(platform: PlatformName, order: Dict) -> List[SaleLine]:
    """Every line of an order. Lines missing a SKU or quantity are kept with `usable=False`."""
    fields = SALE_LINE_FIELDS[platform]
    lines = first_present(order, *fields["lines"]) or []
    order_id = str(order.get("id"))

    sale_lines = []
    for line in lines:
        sku = first_present(line, *fields["sku"])
        external_id = first_present(line, *fields["external_id"])
        sale_lines.append(SaleLine(
            platform=platform,
            order_id=order_id,
            sku=str(sku).strip() if sku is not None else None,
            quantity=_as_quantity(first_present(line, *fields["quantity"])),
            external_id=str(external_id) if external_id is not None else None,
        ))
    return sale_lines


# Catalog items

def extract_sku_from_attributes(attributes: Any) -> Optional[str]:
    if not isinstance(attributes, list):
        return None
    for attribute in attributes:
        if isinstance(attribute, dict) and attribute.get("id") in SKU_ATTRIBUTE_IDS:
            return attribute.get("value_name") or attribute.get("value_id") or None
    return None


def _stock(value: Any) -> int:
    try:
        stock = int(value)
    except (TypeError, ValueError):
        return 0
    return max(stock, 0)


def normalize_ml_item(item: Dict) -> Dict:
    sku_from_seller_field = item.get("seller_custom_field") or None
    sku_from_attributes = extract_sku_from_attributes(item.get("attributes"))
    sku = sku_from_seller_field or sku_from_attributes

    if sku_from_seller_field:
        sku_source = "seller_custom_field"
    elif sku_from_attributes:
        sku_source = "attributes"
    else:
        sku_source = None

    pictures = item.get("pictures") or []
    first_picture = pictures[0] if pictures else {}

    return {
        "item_id": item.get("id"),
        "sku": sku,
        "sku_source": sku_source,
        "title": item.get("title"),
        "stock_ml": _stock(item.get("available_quantity")),
        "image_url": first_picture.get("secure_url") or first_picture.get("url") or None,
        "permalink": item.get("permalink"),
    }


def _localized(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("es") or next((v for v in value.values() if v), None)
    return value


def _price(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning(f"Ignoring unparseable TiendaNube price: {value!r}")
        return None


def normalize_tn_product(product: Dict) -> List[Dict]:
    """
    Flatten a TiendaNube product into one row per variant with a SKU.

    Unlimited stock (`null`) is stored as 0. A product without variants is
    treated as a single variant whose id is the product id.
    """
    if not product or not product.get("id"):
        return []

    name = _localized(product.get("name")) or ""
    images = product.get("images") or []
    product_image = images[0].get("src") if images else None

    rows = []
    variants = product.get("variants") or []
    if variants:
        for variant in variants:
            if not variant.get("sku"):
                continue
            values = " ".join(filter(None, (_localized(v) for v in variant.get("values") or [])))
            image = variant.get("image")
            rows.append({
                "product_id": product["id"],
                "variant_id": variant["id"],
                "sku": variant["sku"],
                "stock_tn": _stock(variant.get("stock")),
                "title": f"{name} - {values}" if values else name,
                "image_url": image.get("src") if isinstance(image, dict) else product_image,
                "price": _price(variant.get("price")),
            })
    elif product.get("sku"):
        rows.append({
            "product_id": product["id"],
            "variant_id": product["id"],
            "sku": product["sku"],
            "stock_tn": _stock(product.get("stock")),
            "title": name,
            "image_url": product_image,
            "price": _price(product.get("price")),
        })
    return rows
