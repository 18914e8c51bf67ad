"""Route template resolution against the core service."""

from service_relay.app.routing.endpoint_mapper import EndpointMapper, merge_query, placeholders, strip_api_prefix

__all__ = ["EndpointMapper", "merge_query", "placeholders", "strip_api_prefix"]
