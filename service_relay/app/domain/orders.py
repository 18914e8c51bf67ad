"""
Checkout composition: order limits, address and item formatting.
"""

from typing import Any, Dict, List, Mapping, Optional

from service_relay.app.domain.warehouse import (
    category_name_of,
    classify_warehouse,
    operation_for,
)
from shared.errors import ValidationError

ORDER_TYPE = "simples"
ORDER_STATUS = "PENDING"
PAYMENT_METHOD = "pix"
SHIPPING_CARRIER = "Total Express"

FRIENDLY_MESSAGES = {
    "operation must be one of": "Invalid operation type. Please contact support.",
    "paymentMethod must be one of": "Invalid payment method. Please contact support.",
}


def validate_checkout(checkout: Mapping[str, Any]) -> None:
    """Reject checkout bodies whose sections have the wrong JSON type."""
    items = checkout.get("items")
    if items is not None and (
        not isinstance(items, list) or not all(isinstance(item, Mapping) for item in items)
    ):
        raise ValidationError("Order items must be a list of objects", details={"field": "items"})
    for field in ("payment", "delivery"):
        value = checkout.get(field)
        if value is not None and not isinstance(value, Mapping):
            raise ValidationError(f"Order {field} must be an object", details={"field": field})


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _section(container: Any, key: str) -> Mapping[str, Any]:
    value = container.get(key) if isinstance(container, Mapping) else None
    return value if isinstance(value, Mapping) else {}


def evaluate_limits(limits_response: Mapping[str, Any], subtotal: float) -> Optional[Dict[str, Any]]:
    """Return the rejection body when a customer cannot place the order."""
    limits = _section(limits_response, "limits")

    frequency = _section(limits, "frequencyPerMonth")
    if frequency.get("hasLimit") and _as_float(frequency.get("remaining")) <= 0:
        return {
            "error": "Order limit reached",
            "details": {
                "message": f"You reached the limit of {frequency.get('limit')} orders for the current period.",
                "period": frequency.get("period"),
                "limit": frequency.get("limit"),
                "used": frequency.get("used"),
            },
        }

    ticket = _section(limits, "ticketValue")
    if ticket.get("hasLimit"):
        remaining = _as_float(ticket.get("remaining"))
        details = {
            "period": ticket.get("period"),
            "limit": ticket.get("limit"),
            "used": ticket.get("used"),
            "remaining": ticket.get("remaining"),
        }
        if remaining <= 0:
            return {
                "error": "Insufficient balance",
                "details": {"message": "No balance available for this order.", **details},
            }
        if subtotal > remaining:
            return {
                "error": "Insufficient balance",
                "details": {
                    "message": f"Order total (R$ {subtotal:.2f}) exceeds the available balance (R$ {remaining:.2f}).",
                    **details,
                },
            }
    return None


def format_address(delivery: Mapping[str, Any]) -> str:
    address = (
        f"{delivery.get('street', '')}, {delivery.get('number', '')}, {delivery.get('neighborhood', '')}, "
        f"{delivery.get('city', '')} - {delivery.get('state', '')}, {delivery.get('zipCode', '')}"
    )
    if delivery.get("complement"):
        address += f", {delivery['complement']}"
    return address


def format_items(items: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "productId": item.get("id"),
            "quantity": item.get("quantity"),
            "price": _as_float(item.get("price")),
        }
        for item in items
    ]


def resolve_warehouse(customer: Mapping[str, Any]) -> str:
    """Warehouse for an order; an explicit tag on the customer wins."""
    explicit = customer.get("__warehouse__")
    if isinstance(explicit, str) and explicit:
        return explicit
    return classify_warehouse(category_name_of(customer))


def build_order_payload(checkout: Mapping[str, Any], customer: Mapping[str, Any]) -> Dict[str, Any]:
    """Core service order body for a storefront checkout."""
    payment = checkout.get("payment") or {}
    warehouse = resolve_warehouse(customer)
    return {
        "customerId": customer.get("id"),
        "type": ORDER_TYPE,
        "operation": operation_for(warehouse),
        "total": payment.get("subtotal"),
        "shippingCost": 0,
        "discount": payment.get("voucherUsed"),
        "status": ORDER_STATUS,
        "notes": checkout.get("observations") or "",
        "items": format_items(checkout.get("items") or []),
        "paymentMethod": PAYMENT_METHOD,
        "shippingAddress": format_address(checkout.get("delivery") or {}),
        "shippingCarrier": SHIPPING_CARRIER,
        "nome_deposito": warehouse,
    }


def friendly_error(error_body: Any) -> Any:
    """Add a ``friendlyMessage`` to core service validation errors."""
    if not isinstance(error_body, Mapping) or not isinstance(error_body.get("message"), list):
        return error_body

    messages = []
    for message in error_body["message"]:
        text = str(message)
        for marker, friendly in FRIENDLY_MESSAGES.items():
            if marker in text:
                text = friendly
                break
        messages.append(text)
    return {**error_body, "friendlyMessage": " ".join(messages)}
