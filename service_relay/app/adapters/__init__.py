"""HTTP adapters for the core service."""

from service_relay.app.adapters.relay_executor import RelayExecutor

__all__ = ["RelayExecutor"]
