"""
Normalization of commerce backend products into storefront catalog items.
"""

import re
from typing import Any, Dict, Optional


DEFAULT_CATEGORY = "hoodies"
DEFAULT_PRICE = 299.99
DEFAULT_BRAND = "Trapstar"
DEFAULT_BUTTON_TEXT = "Buy Now"

# Backend category names -> storefront category slugs
CATEGORY_MAP: Dict[str, str] = {
    "Bags": "bags",
    "Hoodies": "hoodies",
    "Jackets": "jackets",
    "Short Sets": "shorts",
    "Shorts": "shorts",
    "T-Shirts": "t-shirts",
    "T-Shirt": "t-shirts",
    "Tracksuits": "tracksuits",
    "Tracksuit": "tracksuits",
    "Accessories": "accessories",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumerics to dashes, trim edge dashes."""
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


def _parse_price(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def resolve_category(product: Dict[str, Any]) -> str:
    """Storefront category for a backend product.

    The ``_original_category`` meta entry wins over the first assigned
    category when it maps to a known slug.
    """
    category = DEFAULT_CATEGORY
    categories = product.get("categories") or []
    if categories:
        name = categories[0].get("name", "")
        category = CATEGORY_MAP.get(name) or CATEGORY_MAP.get(name.lower()) or DEFAULT_CATEGORY

    for meta in product.get("meta_data") or []:
        if meta.get("key") == "_original_category" and meta.get("value") in CATEGORY_MAP:
            category = CATEGORY_MAP[meta["value"]]
            break

    return category


def local_image_path(product: Dict[str, Any]) -> str:
    sku = (product.get("sku") or "").strip()
    if sku:
        return f"/products/{sku.split('-')[0].strip()}.jpg"
    return f"/products/{slugify(product.get('name', ''))[:50]}.jpg"


def discount_price(regular: float, sale: float) -> Optional[float]:
    if 0 < sale < regular:
        return sale
    return None


def normalize_product(product: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a raw backend product into a catalog item."""
    name = product.get("name") or ""
    regular = _parse_price(product.get("regular_price"))
    sale = _parse_price(product.get("sale_price"))

    return {
        "id": product["id"],
        "title": name,
        "slug": slugify(name),
        "category": resolve_category(product),
        "price": regular if regular > 0 else DEFAULT_PRICE,
        "discount_price": discount_price(regular, sale),
        "image": local_image_path(product),
        "description": product.get("description") or product.get("short_description") or name,
        "brand": DEFAULT_BRAND,
        "woocommerce_id": product["id"],
        "external_url": product.get("external_url") or "",
        "button_text": product.get("button_text") or DEFAULT_BUTTON_TEXT,
    }
