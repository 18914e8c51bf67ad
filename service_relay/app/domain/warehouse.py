"""
Fulfillment warehouse derivation from customer category metadata.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

TOP_MASTER_WAREHOUSE = "MKT-Top Master"
CREATOR_WAREHOUSE = "MKT-Creator"
DEFAULT_WAREHOUSE = CREATOR_WAREHOUSE

# Evaluated top to bottom; first match wins
TOP_MASTER_EXACT = "Clinica Top Master"
TOP_MASTER_MARKERS: Tuple[str, ...] = ("Top Master",)
CREATOR_MARKERS: Tuple[str, ...] = ("Creator", "Médico", "Nutricionista", "Influenciador", "Atleta")

OPERATION_BY_WAREHOUSE = {
    TOP_MASTER_WAREHOUSE: "top_master",
    CREATOR_WAREHOUSE: "creator",
}


def classify_warehouse(category_name: Optional[str]) -> str:
    """Warehouse tag for a customer category name."""
    name = category_name or ""
    if name == TOP_MASTER_EXACT or any(marker in name for marker in TOP_MASTER_MARKERS):
        return TOP_MASTER_WAREHOUSE
    if any(marker in name for marker in CREATOR_MARKERS):
        return CREATOR_WAREHOUSE
    return DEFAULT_WAREHOUSE


def operation_for(warehouse: str) -> str:
    """Order ``operation`` value the core service expects for a warehouse."""
    return OPERATION_BY_WAREHOUSE.get(warehouse, OPERATION_BY_WAREHOUSE[DEFAULT_WAREHOUSE])


def category_name_of(customer: Mapping[str, Any]) -> Optional[str]:
    """Category name of a customer record, whichever way it is nested."""
    for key in ("__category__", "category"):
        category = customer.get(key)
        if isinstance(category, Mapping):
            name = category.get("name")
            if isinstance(name, str) and name:
                return name
        elif isinstance(category, str) and category:
            return category
    return None


def with_warehouse(customer: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``customer`` carrying a ``__warehouse__`` tag.

    Records without a category come back unchanged (as a copy).
    """
    tagged = dict(customer)
    name = category_name_of(customer)
    if name is not None:
        tagged["__warehouse__"] = classify_warehouse(name)
    return tagged
