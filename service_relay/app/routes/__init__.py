"""Relay route table and composite handlers."""

from service_relay.app.routes.catalog import setup_catalog_routes
from service_relay.app.routes.customers import setup_customer_routes
from service_relay.app.routes.orders import setup_order_routes
from service_relay.app.routes.relay import TEMPLATE_ROUTES, RelayHandler, TemplateRoute, setup_template_routes
from service_relay.app.routes.session import setup_session_routes

__all__ = [
    "RelayHandler",
    "TEMPLATE_ROUTES",
    "TemplateRoute",
    "setup_catalog_routes",
    "setup_customer_routes",
    "setup_order_routes",
    "setup_session_routes",
    "setup_template_routes",
]
