"""
HTTP client for the storefront relay.
"""

from typing import Any, Dict, Mapping, Optional

import httpx

from shared.logging import get_logger
from shared.retry import RetryPolicy
from storefront_client.resilience import CredentialProvider, FetchState, ResilientFetch
from storefront_client.scheduler import Scheduler


class RelayClient:
    """Client for relay routes with an injected credential provider."""

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        policy: Optional[RetryPolicy] = None,
        scheduler: Optional[Scheduler] = None,
        timeout: float = 30.0,
        auth_scheme: str = "Bearer",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.policy = policy or RetryPolicy()
        self.scheduler = scheduler
        self.timeout = timeout
        self.auth_scheme = auth_scheme
        self.transport = transport
        self.logger = get_logger("storefront.relay_client")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        """Single relay call; the provider's credential is used unless one is given."""
        token = token if token is not None else self.credentials()
        request_headers: Dict[str, str] = dict(headers or {})
        if token:
            request_headers["Authorization"] = f"{self.auth_scheme} {token}"

        async with self._client() as client:
            response = await client.request(method, path, json=json, params=params, headers=request_headers)

        self.logger.debug(
            "Relay call",
            method=method,
            path=path,
            status_code=response.status_code,
            token_present=bool(token),
        )
        return response

    def resilient(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ResilientFetch:
        """Resilience loop for a relay call; the caller starts and closes it."""

        async def attempt(token: str) -> httpx.Response:
            return await self.request(method, path, token=token, json=json, params=params, headers=headers)

        return ResilientFetch(attempt, self.credentials, policy=self.policy, scheduler=self.scheduler)

    async def fetch_or_fallback(
        self,
        path: str,
        fallback: Any = None,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Payload of a relay route, or ``fallback`` once the loop gives up."""
        fetch = self.resilient(method, path, params=params)
        fetch.start()
        try:
            state = await fetch.wait()
        finally:
            fetch.close()

        if state is FetchState.SUCCESS:
            return fetch.data
        self.logger.info("Relay fetch fell back", path=path, attempts=fetch.attempts, status_code=fetch.status_code)
        return fallback
