"""
Storefront-side consumer of the relay: credential store, scheduler, the
client resilience loop and an httpx relay client.
"""

from storefront_client.relay_client import RelayClient
from storefront_client.resilience import FetchState, ResilientFetch
from storefront_client.scheduler import AsyncioScheduler, Scheduler
from storefront_client.token_store import TokenStore

__all__ = [
    "AsyncioScheduler",
    "FetchState",
    "RelayClient",
    "ResilientFetch",
    "Scheduler",
    "TokenStore",
]
