"""
Customer routes: lookup by identity-provider id, profile and order limits.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from service_relay.app.auth.claims import read_claims
from service_relay.app.domain.customers import normalize_customer
from service_relay.app.domain.results import RelayResult, ResultKind, RoutePolicy
from service_relay.app.routes.relay import RelayHandler
from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger, set_route

CUSTOMER_BY_CLERK_ID = "/marketing/customers/byClerkId/:clerk_id"
CUSTOMER_BY_ID = "/marketing/customers/:customer_id"
CUSTOMER_CATEGORY = "/marketing/customers/:customer_id/category"
CUSTOMER_ORDER_LIMITS = "/marketing/customers/:customer_id/order-limits"

# A bodyless answer means the customer has no limits record
ORDER_LIMITS_POLICY = RoutePolicy(allow_empty=True, name="order_limits")

logger = get_logger("relay.customers")


async def fetch_customer(handler: RelayHandler, clerk_id: str, token: Optional[str], route: str) -> RelayResult:
    """Customer record for an identity-provider user id."""
    return await handler.call("GET", CUSTOMER_BY_CLERK_ID, token, params={"clerk_id": clerk_id}, route=route)


def customer_from(result: RelayResult) -> Optional[Dict[str, Any]]:
    """Normalized customer of a successful lookup, or ``None``."""
    if not result.ok or not isinstance(result.body, dict):
        return None
    return normalize_customer(result.body)


def setup_customer_routes(app: FastAPI, handler: RelayHandler):
    """Set up customer routes."""

    async def _customer_by_clerk_id(request: Request, clerk_id: str):
        set_route("customers.clerk")
        token = handler.token(request)
        result = await fetch_customer(handler, clerk_id, token, route="customers.clerk")
        customer = customer_from(result)
        if customer is None:
            return result.to_response()
        return JSONResponse(status_code=result.status_code, content=customer)

    @app.get("/api/customers/clerk/{clerk_id}")
    async def get_customer_by_clerk(request: Request, clerk_id: str):
        """Customer for an identity-provider user, tagged with its warehouse."""
        return await _customer_by_clerk_id(request, clerk_id)

    @app.get("/api/customers/clerk-id/{clerk_id}")
    async def get_customer_by_clerk_id(request: Request, clerk_id: str):
        return await _customer_by_clerk_id(request, clerk_id)

    @app.get("/api/customers/profile")
    async def get_customer_profile(request: Request):
        """Profile of the customer the session token belongs to."""
        set_route("customers.profile")
        token = handler.token(request)

        claims = read_claims(token)
        if claims is None:
            raise ValidationError("Could not read authentication token")
        customer_id = claims.get("sub")
        if customer_id in (None, ""):
            raise ValidationError("Customer id not found in token")

        result = await handler.call(
            "GET", CUSTOMER_BY_ID, token, params={"customer_id": customer_id}, route="customers.profile"
        )
        if not result.ok:
            return result.to_response()
        if not isinstance(result.body, dict):
            raise NotFoundError("Customer not found")

        customer = dict(result.body)
        category = await handler.call(
            "GET", CUSTOMER_CATEGORY, token, params={"customer_id": customer_id}, route="customers.category"
        )
        if category.ok and isinstance(category.body, dict):
            customer["__category__"] = category.body
        else:
            logger.info("Customer category unavailable", status_code=category.status_code)
        return JSONResponse(content=customer)

    @app.get("/api/customers/{customer_id}/order-limits")
    async def get_order_limits(request: Request, customer_id: str):
        set_route("customers.order_limits")
        token = handler.token(request)
        result = await handler.call(
            "GET",
            CUSTOMER_ORDER_LIMITS,
            token,
            params={"customer_id": customer_id},
            policy=ORDER_LIMITS_POLICY,
            route="customers.order_limits",
        )
        if result.ok and (result.kind is ResultKind.EMPTY or result.body is None):
            raise NotFoundError("Order limits not found", details={"customer_id": customer_id})
        return result.to_response()
