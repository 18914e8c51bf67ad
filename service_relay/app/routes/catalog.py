"""
Catalog routes: product listings, search, categories and the campaign banner.
"""

import asyncio
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from service_relay.app.auth.claims import external_id_of
from service_relay.app.domain.catalog import (
    as_product_listing,
    categories_with_all,
    extra_category_query,
    filter_by_term,
    map_search_params,
    merge_products,
    search_endpoint,
    warehouse_search_params,
)
from service_relay.app.domain.results import RoutePolicy, array_policy
from service_relay.app.domain.warehouse import DEFAULT_WAREHOUSE
from service_relay.app.routes.customers import customer_from, fetch_customer
from service_relay.app.routes.relay import RelayHandler
from shared.errors import ShapeError
from shared.logging import get_logger, set_route

PRODUCTS = "/marketing/products"
WAREHOUSE_SEARCH = "/marketing/products/warehouse/search"
WAREHOUSE_CATEGORY_COUNT = "/marketing/products/warehouse/categories/count"
CATEGORIES = "/marketing/products/categories"
CAMPAIGN_BANNER = "/marketing/campaign/banner"

CLERK_USER_HEADER = "x-clerk-user-id"

CATEGORY_POLICY = array_policy("categories", "content", name="categories")
BANNER_POLICY = RoutePolicy(fallback=lambda: {"imageUrl": None}, name="banner")

logger = get_logger("relay.catalog")


async def customer_warehouse(handler: RelayHandler, request: Request, token: str) -> Optional[str]:
    """Warehouse of the requesting customer; lookup failures yield ``None``."""
    clerk_id = request.headers.get(CLERK_USER_HEADER) or external_id_of(token)
    if not clerk_id:
        return None
    customer = customer_from(await fetch_customer(handler, clerk_id, token, route="products.customer"))
    if customer is None:
        logger.info("Customer lookup failed, listing without warehouse")
        return None
    return customer.get("__warehouse__")


def setup_catalog_routes(app: FastAPI, handler: RelayHandler):
    """Set up catalog routes."""

    @app.get("/api/products")
    async def list_products(request: Request):
        """Active in-stock products, scoped to the customer's warehouse when known."""
        set_route("products")
        token = handler.token(request)

        query = {"inStock": "true", "active": "true"}

        template = PRODUCTS
        warehouse = await customer_warehouse(handler, request, token)
        if warehouse:
            query["warehouseName"] = warehouse
            template = WAREHOUSE_SEARCH

        result = await handler.call(
            "GET", template, token, query=query, route="products", inbound_query=request.url.query
        )
        return result.to_response()

    @app.get("/api/marketing/products/search")
    async def search_products(request: Request):
        """Product search with storefront parameter names."""
        set_route("products.search")
        token = handler.token(request)

        mapped = map_search_params(request.query_params)
        endpoint = search_endpoint(mapped)
        result = await handler.call("GET", endpoint, token, query=mapped, route="products.search")
        if not result.ok and endpoint != PRODUCTS:
            logger.warning("Product search failed, retrying plain listing", status_code=result.status_code)
            result = await handler.call("GET", PRODUCTS, token, query=mapped, route="products.search")
        if not result.ok:
            return result.to_response()

        listing = as_product_listing(result.body)
        listing = filter_by_term(listing, mapped.get("term") or mapped.get("name"))
        return JSONResponse(content=listing)

    @app.get("/api/marketing/products/warehouse/search")
    async def search_warehouse_products(request: Request):
        """Warehouse product search; ``categoryIds`` groups several categories."""
        set_route("products.warehouse_search")
        token = handler.token(request)

        mapped, category_ids = warehouse_search_params(request.query_params)
        result = await handler.call("GET", WAREHOUSE_SEARCH, token, query=mapped, route="products.warehouse_search")
        if not result.ok or len(category_ids) < 2:
            return result.to_response()

        extra_results = await asyncio.gather(*[
            handler.call(
                "GET",
                WAREHOUSE_SEARCH,
                token,
                query=extra_category_query(mapped, category_id),
                route="products.warehouse_search",
            )
            for category_id in category_ids[1:]
        ])
        extra_lists = [as_product_listing(extra.body)["data"] for extra in extra_results if extra.ok]
        # A bodyless primary answer still yields a listing
        return JSONResponse(content=merge_products(result.body, extra_lists))

    @app.get("/api/marketing/products/warehouse/categories/count")
    async def count_warehouse_categories(request: Request):
        """Per-category product counts; the credential is optional here."""
        return await handler.handle(
            request,
            WAREHOUSE_CATEGORY_COUNT,
            route="categories.count",
            require_token=False,
            defaults={"warehouseName": DEFAULT_WAREHOUSE, "inStock": "true", "active": "true"},
        )

    async def _categories(request: Request):
        set_route("categories")
        token = handler.token(request)
        result = await handler.call("GET", CATEGORIES, token, policy=CATEGORY_POLICY, route="categories")
        if not result.ok:
            return result.to_response()
        if not isinstance(result.body, list):
            raise ShapeError("Core service did not return a category list", details={"endpoint": CATEGORIES})
        return JSONResponse(status_code=result.status_code, content=categories_with_all(result.body))

    @app.get("/api/marketing/products/categories")
    async def list_product_categories(request: Request):
        """Categories prefixed with the synthetic "all products" entry."""
        return await _categories(request)

    @app.get("/api/marketing/categories")
    async def list_marketing_categories(request: Request):
        return await _categories(request)

    @app.get("/api/marketing/campaign/banner")
    async def get_campaign_banner(request: Request):
        """Current campaign banner; every failure renders as no banner."""
        set_route("banner")
        token = handler.token(request, required=False)
        if not token:
            return BANNER_POLICY.fallback_value()

        result = await handler.call("GET", CAMPAIGN_BANNER, token, policy=BANNER_POLICY, route="banner")
        if result.is_error or not isinstance(result.body, dict):
            return BANNER_POLICY.fallback_value()
        return result.to_response()
