"""
Generic relay handler and the table of single-hop template routes.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

from fastapi import FastAPI, Request, Response

from service_relay.app.adapters.relay_executor import RelayExecutor
from service_relay.app.auth.token_extractor import TokenExtractor
from service_relay.app.domain.results import (
    ARRAY_WITH_EMPTY_FALLBACK,
    CONSERVATIVE,
    RelayResult,
    RoutePolicy,
)
from service_relay.app.routing.endpoint_mapper import EndpointMapper
from shared.errors import AuthenticationError
from shared.logging import get_logger, set_route


@dataclass(frozen=True)
class TemplateRoute:
    """A public path relayed verbatim to one core service template."""

    path: str
    methods: Tuple[str, ...]
    template: str
    policy: RoutePolicy = CONSERVATIVE
    name: str = "relay"


TEMPLATE_ROUTES: Tuple[TemplateRoute, ...] = (
    TemplateRoute("/api/cart", ("GET", "POST", "PUT", "DELETE"), "/cart", name="cart"),
    TemplateRoute("/api/cart/{id}", ("GET", "PUT", "DELETE"), "/cart/:id", name="cart.item"),
    TemplateRoute("/api/products", ("POST",), "/marketing/products", name="products.create"),
    TemplateRoute("/api/products/{id}", ("GET", "PUT", "DELETE"), "/products/:id", name="products.item"),
    TemplateRoute("/api/categories", ("GET",), "/marketing/products/categories", name="categories"),
    TemplateRoute("/api/customers", ("GET", "POST"), "/marketing/customers", name="customers"),
    TemplateRoute(
        "/api/marketing/orders/customer/{id}",
        ("GET",),
        "/marketing/orders/customer/:id",
        policy=ARRAY_WITH_EMPTY_FALLBACK,
        name="orders.by_customer",
    ),
)


class RelayHandler:
    """Credential, mapping and execution steps shared by every relay route."""

    def __init__(self, extractor: TokenExtractor, mapper: EndpointMapper, executor: RelayExecutor):
        self.extractor = extractor
        self.mapper = mapper
        self.executor = executor
        self.logger = get_logger("relay.handler")

    def token(self, request: Request, required: bool = True) -> Optional[str]:
        """Resolve the request credential; a required one that is absent is a 401."""
        self.mapper.require_base()
        token = self.extractor.extract(request)
        if required and not token:
            self.logger.info("Relay rejected without credential", path=request.url.path)
            raise AuthenticationError()
        return token

    async def handle(
        self,
        request: Request,
        template: str,
        params: Optional[Mapping[str, Any]] = None,
        policy: RoutePolicy = CONSERVATIVE,
        route: str = "relay",
        require_token: bool = True,
        overrides: Optional[Mapping[str, Any]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
        drop: Iterable[str] = (),
    ) -> Response:
        """Relay the inbound request to ``template`` and render the result."""
        set_route(route)
        result = await self.forward(
            request,
            template,
            params=params,
            policy=policy,
            route=route,
            require_token=require_token,
            overrides=overrides,
            defaults=defaults,
            drop=drop,
        )
        return result.to_response()

    async def forward(
        self,
        request: Request,
        template: str,
        params: Optional[Mapping[str, Any]] = None,
        policy: RoutePolicy = CONSERVATIVE,
        route: str = "relay",
        require_token: bool = True,
        overrides: Optional[Mapping[str, Any]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
        drop: Iterable[str] = (),
    ) -> RelayResult:
        token = self.token(request, required=require_token)
        url = self.mapper.resolve(
            template,
            params if params is not None else request.path_params,
            query=request.url.query,
            overrides=overrides,
            defaults=defaults,
            drop=drop,
        )
        body = await request.body()
        return await self.executor.execute(
            request.method,
            url,
            headers=dict(request.headers),
            body=body,
            token=token,
            policy=policy,
            route=route,
        )

    async def call(
        self,
        method: str,
        template: str,
        token: Optional[str],
        params: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
        payload: Any = None,
        policy: RoutePolicy = CONSERVATIVE,
        route: str = "relay",
        inbound_query: Optional[str] = None,
    ) -> RelayResult:
        """Relay-originated call used by composite routes.

        ``query`` entries override same-named parameters of ``inbound_query``.
        """
        url = self.mapper.resolve(template, params, query=inbound_query, overrides=query)
        return await self.executor.request_json(
            method,
            url,
            token=token,
            payload=payload,
            policy=policy,
            route=route,
        )


def setup_template_routes(app: FastAPI, handler: RelayHandler, routes: Iterable[TemplateRoute] = TEMPLATE_ROUTES):
    """Register one endpoint per template route."""

    def _endpoint(entry: TemplateRoute):
        async def relay_endpoint(request: Request):
            return await handler.handle(request, entry.template, policy=entry.policy, route=entry.name)

        relay_endpoint.__name__ = f"relay_{entry.name.replace('.', '_')}"
        return relay_endpoint

    for entry in routes:
        app.add_api_route(entry.path, _endpoint(entry), methods=list(entry.methods), name=entry.name)
