"""
Customer record reshaping.
"""

from typing import Any, Dict, Mapping

from service_relay.app.domain.warehouse import category_name_of, with_warehouse

CLIENT_GROUP_CREATOR = "Creator"
CLIENT_GROUP_TOP_MASTER = "Top Master"
CLIENT_GROUP_OTHER = "Outro"


def client_group(category_name: str) -> str:
    if category_name.startswith("Creator"):
        return CLIENT_GROUP_CREATOR
    if "Top Master" in category_name:
        return CLIENT_GROUP_TOP_MASTER
    return CLIENT_GROUP_OTHER


def normalize_customer(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Bring a customer record into the shape the storefront reads.

    A nested ``data`` object is lifted to the root, a category given as a
    plain string becomes ``__category__ = {"name": ...}``, and customers with
    a category get ``clientGroup`` and ``__warehouse__``.
    """
    customer: Dict[str, Any] = dict(record)

    nested = record.get("data")
    if isinstance(nested, Mapping):
        customer.update(nested)

    category = customer.get("__category__")
    if isinstance(category, str):
        customer["__category__"] = {"name": category}
    elif category is None and isinstance(customer.get("category"), str):
        customer["__category__"] = {"name": customer["category"]}

    name = category_name_of(customer)
    if name is None:
        return customer

    customer["clientGroup"] = client_group(name)
    return with_warehouse(customer)
