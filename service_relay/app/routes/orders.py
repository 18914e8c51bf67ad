"""
Order routes: checkout, order history and single orders.
"""

import json

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from service_relay.app.auth.claims import external_id_of
from service_relay.app.domain.orders import (
    build_order_payload,
    evaluate_limits,
    friendly_error,
    validate_checkout,
)
from service_relay.app.domain.results import ARRAY_WITH_EMPTY_FALLBACK, RelayResult
from service_relay.app.routes.customers import CUSTOMER_ORDER_LIMITS, customer_from, fetch_customer
from service_relay.app.routes.relay import RelayHandler
from shared.errors import NotFoundError, UpstreamError, ValidationError
from shared.logging import get_logger, set_route

ORDERS = "/marketing/orders"
ORDER_BY_ID = "/marketing/orders/:order_id"
ORDERS_BY_CUSTOMER = "/marketing/orders/customer/:customer_id"

CLERK_USER_HEADER = "x-clerk-user-id"

logger = get_logger("relay.orders")


def with_error_message(result: RelayResult) -> RelayResult:
    """Surface a core service ``message`` as the ``error`` of a failed result."""
    body = result.body
    if result.ok or not isinstance(body, dict) or "error" in body:
        return result
    message = body.get("message")
    if isinstance(message, list):
        message = " ".join(str(part) for part in message)
    if message:
        result.body = {**body, "error": str(message)}
    return result


def setup_order_routes(app: FastAPI, handler: RelayHandler):
    """Set up order routes."""

    async def _orders_for(clerk_id: str, token: str, route: str) -> RelayResult:
        customer_result = await fetch_customer(handler, clerk_id, token, route=route)
        if not customer_result.ok:
            return customer_result
        customer = customer_from(customer_result)
        if not customer or customer.get("id") in (None, ""):
            raise NotFoundError("Customer not found", details={"clerk_id": clerk_id})
        return await handler.call(
            "GET",
            ORDERS_BY_CUSTOMER,
            token,
            params={"customer_id": customer["id"]},
            policy=ARRAY_WITH_EMPTY_FALLBACK,
            route=route,
        )

    @app.get("/api/orders/customer")
    async def get_customer_orders(request: Request):
        """Orders of the customer named by header or ``clerkId`` query."""
        set_route("orders.customer")
        token = handler.token(request)
        clerk_id = request.headers.get(CLERK_USER_HEADER) or request.query_params.get("clerkId")
        if not clerk_id:
            raise ValidationError("Customer identity not provided")

        result = await _orders_for(clerk_id, token, route="orders.customer")
        return result.to_response()

    @app.get("/api/orders/history")
    async def get_order_history(request: Request):
        """Order history of the signed-in customer."""
        set_route("orders.history")
        token = handler.token(request)
        clerk_id = external_id_of(token)
        if not clerk_id:
            raise ValidationError("User not identified")

        result = await _orders_for(clerk_id, token, route="orders.history")
        if not result.ok:
            return result.to_response()
        return {"success": True, "orders": result.body if result.body is not None else []}

    @app.get("/api/orders/{order_id}")
    async def get_order(request: Request, order_id: str):
        set_route("orders.item")
        token = handler.token(request)
        result = await handler.call("GET", ORDER_BY_ID, token, params={"order_id": order_id}, route="orders.item")
        return with_error_message(result).to_response()

    @app.post("/api/orders")
    async def create_order(request: Request):
        """Checkout: validate limits, then place the order with the core service."""
        set_route("orders.create")
        token = handler.token(request)

        try:
            checkout = json.loads(await request.body())
        except ValueError:
            raise ValidationError("Invalid request body")
        if not isinstance(checkout, dict):
            raise ValidationError("Invalid request body")

        clerk_id = checkout.get("clerkId")
        if not clerk_id:
            raise ValidationError("Customer identity not provided")
        validate_checkout(checkout)
        subtotal = _subtotal(checkout)

        customer_result = await fetch_customer(handler, clerk_id, token, route="orders.create")
        if not customer_result.ok:
            return customer_result.to_response()
        customer = customer_from(customer_result)
        if not customer or customer.get("id") in (None, ""):
            raise NotFoundError("Customer not found", details={"clerk_id": clerk_id})

        limits = await handler.call(
            "GET",
            CUSTOMER_ORDER_LIMITS,
            token,
            params={"customer_id": customer["id"]},
            route="orders.limits",
        )
        if not limits.ok or not isinstance(limits.body, dict):
            raise UpstreamError(
                500,
                "Could not verify order limits for this customer",
                details={"status_code": limits.status_code},
            )

        rejection = evaluate_limits(limits.body, subtotal)
        if rejection is not None:
            logger.info("Checkout rejected by order limits", reason=rejection["error"])
            return JSONResponse(status_code=400, content=rejection)

        payload = build_order_payload(checkout, customer)
        logger.info(
            "Placing order",
            warehouse=payload["nome_deposito"],
            operation=payload["operation"],
            item_count=len(payload["items"]),
        )
        result = await handler.call("POST", ORDERS, token, payload=payload, route="orders.create")
        if result.is_error and result.error_code == "UPSTREAM_ERROR":
            return JSONResponse(status_code=result.status_code, content=friendly_error(result.body))
        return result.to_response()


def _subtotal(checkout: dict) -> float:
    payment = checkout.get("payment") or {}
    try:
        return float(payment.get("subtotal") or 0)
    except (TypeError, ValueError):
        raise ValidationError("Invalid payment subtotal")
