"""
Storefront relay service.
"""

from typing import Dict, Optional

import httpx

from service_relay.app.adapters.relay_executor import RelayExecutor
from service_relay.app.auth.token_extractor import TokenExtractor
from service_relay.app.domain.normalizer import ResponseNormalizer
from service_relay.app.routes import (
    RelayHandler,
    setup_catalog_routes,
    setup_customer_routes,
    setup_order_routes,
    setup_session_routes,
    setup_template_routes,
)
from service_relay.app.routing.endpoint_mapper import EndpointMapper
from shared.base_service import BaseService
from shared.config import RelayConfig


class RelayService(BaseService):
    """Relay between the storefront and the core service."""

    def __init__(self, config: Optional[RelayConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__("relay", config)

        self.extractor = TokenExtractor(self.config.session_cookie_name, self.config.auth_scheme)
        self.mapper = EndpointMapper(self.config.core_api_url, self.config.api_prefix)
        self.executor = RelayExecutor(
            timeout=self.config.request_timeout,
            scheme=self.config.auth_scheme,
            normalizer=ResponseNormalizer(),
            metrics=self.metrics,
            transport=transport,
        )
        self.handler = RelayHandler(self.extractor, self.mapper, self.executor)

        if not self.mapper.configured:
            self.logger.warning("Core service URL not configured; relay routes will fail")

        self._setup_relay_routes()

    def _setup_relay_routes(self):
        """Set up relay routes."""
        setup_session_routes(self.app, self.handler, self.config)
        setup_customer_routes(self.app, self.handler)
        setup_order_routes(self.app, self.handler)
        setup_catalog_routes(self.app, self.handler)
        setup_template_routes(self.app, self.handler)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report whether the core service is configured."""
        return {"core_service": "configured" if self.mapper.configured else "missing"}


def create_app(config: Optional[RelayConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
    """Create FastAPI application."""
    service = RelayService(config, transport=transport)
    return service.app


if __name__ == "__main__":
    service = RelayService()
    service.run()
