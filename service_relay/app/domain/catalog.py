"""
Product and category reshaping for the storefront catalog.
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from service_relay.app.domain.warehouse import DEFAULT_WAREHOUSE

ALL_PRODUCTS_LABEL = "Todos os produtos"
PRODUCT_LIST_KEYS: Tuple[str, ...] = ("products", "items", "results", "content")


def categories_with_all(categories: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Prepend the synthetic "all products" category to a category list."""
    total = sum(_quantity(category) for category in categories)
    everything = {
        "id": "all",
        "name": ALL_PRODUCTS_LABEL,
        "slug": "todos",
        "itemQuantity": total,
    }
    return [everything, *[dict(category) for category in categories]]


def _quantity(category: Mapping[str, Any]) -> int:
    try:
        return int(category.get("itemQuantity") or 0)
    except (TypeError, ValueError):
        return 0


def map_search_params(params: Mapping[str, str]) -> Dict[str, str]:
    """Translate storefront search parameters into core service ones."""
    mapped: Dict[str, str] = {}

    if "query" in params:
        mapped["name"] = params.get("query") or ""
    if "search" in params:
        mapped["term"] = params.get("search") or ""
        mapped.pop("name", None)
    if "page" in params:
        mapped["page"] = params.get("page") or "1"

    category_name = params.get("categoryName")
    if category_name and category_name != ALL_PRODUCTS_LABEL:
        mapped["limit"] = "100"
    elif "limit" in params:
        mapped["limit"] = params.get("limit") or "20"
    else:
        mapped["limit"] = "20"

    for key in ("minPrice", "maxPrice"):
        if key in params:
            mapped[key] = params.get(key) or ""

    mapped["inStock"] = "true"
    mapped["active"] = "true"

    if category_name and category_name != ALL_PRODUCTS_LABEL:
        mapped["category"] = category_name

    return mapped


def search_endpoint(mapped: Mapping[str, str]) -> str:
    if mapped.get("category") or mapped.get("term"):
        return "/marketing/products/search"
    return "/marketing/products"


def as_product_listing(body: Any) -> Dict[str, Any]:
    """Wrap whatever list the core service sent as ``{"data": [...]}``."""
    if isinstance(body, list):
        return {"data": body}
    if isinstance(body, Mapping):
        if isinstance(body.get("data"), list):
            return dict(body)
        for key in PRODUCT_LIST_KEYS:
            if isinstance(body.get(key), list):
                return {"data": body[key]}
    return {"data": [], "error": "Unrecognized product list format"}


def matches_term(product: Mapping[str, Any], term: str) -> bool:
    for key in ("name", "description"):
        value = product.get(key)
        if isinstance(value, str) and term in value.lower():
            return True
    attributes = product.get("attributes")
    if isinstance(attributes, Mapping):
        return any(isinstance(value, str) and term in value.lower() for value in attributes.values())
    return False


def filter_by_term(listing: Dict[str, Any], term: Optional[str]) -> Dict[str, Any]:
    """Narrow a listing by search term; an empty match keeps the full list."""
    if not term:
        return listing
    term = term.lower()
    products = listing.get("data") or []
    matched = [p for p in products if isinstance(p, Mapping) and matches_term(p, term)]
    if matched:
        return {**listing, "data": matched}
    return listing


def warehouse_search_params(params: Mapping[str, str]) -> Tuple[Dict[str, str], List[str]]:
    """Defaults for warehouse product search plus the extra category ids."""
    mapped = {key: value for key, value in params.items() if key not in ("categoryName", "categoryIds")}

    category_id = mapped.pop("categoryId", None)
    if category_id:
        mapped["category"] = category_id

    category_ids = parse_category_ids(params.get("categoryIds"))
    if category_ids and not mapped.get("category"):
        mapped["category"] = category_ids[0]

    if not mapped.get("warehouseName"):
        mapped["warehouseName"] = DEFAULT_WAREHOUSE
    mapped.setdefault("inStock", "true")
    mapped.setdefault("active", "true")
    mapped.setdefault("page", "0")
    mapped.setdefault("limit", "12")
    return mapped, category_ids


def parse_category_ids(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(parsed, list):
        return []
    return [str(item) for item in parsed if item not in (None, "")]


def product_key(product: Mapping[str, Any]) -> Any:
    return product.get("sku") or product.get("id")


def merge_products(primary: Any, extra_lists: Sequence[Sequence[Any]]) -> Any:
    """Merge additional product lists into a listing, deduplicating by sku or id."""
    listing = as_product_listing(primary)
    listing.pop("error", None)
    products = list(listing["data"])
    seen = {product_key(p) for p in products if isinstance(p, Mapping)}
    for extra in extra_lists:
        for product in extra:
            if not isinstance(product, Mapping):
                continue
            key = product_key(product)
            if key in seen:
                continue
            seen.add(key)
            products.append(product)
    merged = dict(primary) if isinstance(primary, Mapping) else {}
    merged["data"] = products
    return merged


def extra_category_query(mapped: Mapping[str, str], category_id: str) -> Dict[str, str]:
    """Query for one additional category of a grouped warehouse search."""
    return {
        "category": category_id,
        "warehouseName": mapped.get("warehouseName") or DEFAULT_WAREHOUSE,
        "inStock": "true",
        "active": "true",
        "page": "0",
        "limit": "100",
    }
