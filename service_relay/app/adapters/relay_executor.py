"""
Outbound relay to the core service.
"""

import json
import time
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

import httpx

from service_relay.app.domain.normalizer import ResponseNormalizer
from service_relay.app.domain.results import CONSERVATIVE, RelayResult, RoutePolicy
from shared.errors import TransportError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

BODYLESS_METHODS = frozenset({"GET", "HEAD"})

# Never copied from the inbound request
EXCLUDED_HEADERS = frozenset({
    "host",
    "connection",
    "content-length",
    "authorization",
    "transfer-encoding",
    "keep-alive",
    "upgrade",
    "accept-encoding",
})

# Always set by the relay, after copying
RELAY_HEADERS = frozenset({"authorization", "content-type", "accept"})

JSON_MEDIA_TYPE = "application/json"
MULTIPART_MEDIA_TYPE = "multipart/form-data"


def build_outbound_headers(
    inbound: Mapping[str, str],
    token: Optional[str],
    scheme: str = "Bearer",
) -> Dict[str, str]:
    """Copy allowed inbound headers, then set the relay's own three."""
    headers = {
        name: value for name, value in inbound.items()
        if name.lower() not in EXCLUDED_HEADERS and name.lower() not in RELAY_HEADERS
    }

    inbound_type = _header(inbound, "content-type") or ""
    if token:
        headers["Authorization"] = f"{scheme} {token}"
    # The multipart boundary lives in the content type
    if MULTIPART_MEDIA_TYPE in inbound_type.lower():
        headers["Content-Type"] = inbound_type
    else:
        headers["Content-Type"] = JSON_MEDIA_TYPE
    headers["Accept"] = JSON_MEDIA_TYPE
    return headers


def encode_body(method: str, content_type: Optional[str], body: bytes) -> Optional[Union[bytes, str]]:
    """Serialize an inbound body for the outbound call.

    JSON is re-serialized (malformed JSON becomes ``{}``), multipart passes
    through untouched and anything else is forwarded as text.
    """
    if method.upper() in BODYLESS_METHODS:
        return None

    media_type = (content_type or "").lower()
    if JSON_MEDIA_TYPE in media_type:
        try:
            payload = json.loads(body) if body.strip() else {}
        except ValueError:
            payload = {}
        return json.dumps(payload)
    if MULTIPART_MEDIA_TYPE in media_type:
        return body
    return body.decode("utf-8", errors="replace")


def classify_transport_error(exc: httpx.RequestError) -> str:
    """Failure class of an httpx request error."""
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, httpx.ConnectError):
        message = str(exc).lower()
        if any(hint in message for hint in ("name or service", "nodename", "getaddrinfo", "name resolution")):
            return "dns"
        return "connect"
    if isinstance(exc, httpx.ProtocolError):
        return "protocol"
    if isinstance(exc, httpx.NetworkError):
        return "network"
    if isinstance(exc, httpx.DecodingError):
        return "decode"
    if isinstance(exc, httpx.TooManyRedirects):
        return "redirects"
    return "transport"


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


class RelayExecutor:
    """Issue one outbound call per relay request and normalize its result.

    The executor never retries: a failed call is reported once and retry
    stays with the client.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        scheme: str = "Bearer",
        normalizer: Optional[ResponseNormalizer] = None,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.scheme = scheme
        self.normalizer = normalizer or ResponseNormalizer()
        self.metrics = metrics
        self.transport = transport
        self.logger = get_logger("relay.executor")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True)

    async def execute(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
        token: Optional[str] = None,
        policy: RoutePolicy = CONSERVATIVE,
        route: str = "relay",
    ) -> RelayResult:
        """Forward a request and return its normalized result."""
        method = method.upper()
        headers = headers or {}
        outbound_headers = build_outbound_headers(headers, token, self.scheme)
        content = encode_body(method, _header(headers, "content-type"), body)
        endpoint = urlsplit(url).path

        start_time = time.time()
        try:
            async with self._client() as client:
                response = await client.request(method, url, headers=outbound_headers, content=content)
        except httpx.RequestError as exc:
            duration = time.time() - start_time
            reason = classify_transport_error(exc)
            self.logger.error(
                "Core service call failed",
                method=method,
                endpoint=endpoint,
                reason=reason,
                error=str(exc),
                duration_ms=round(duration * 1000, 2),
            )
            self._record(route, "transport_error", duration)
            return self.normalizer.normalize_transport_error(
                TransportError(reason, details={"endpoint": endpoint})
            )

        duration = time.time() - start_time
        result = self.normalizer.normalize(response, policy, endpoint)

        self.logger.info(
            "Core service call",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
            result_status=result.status_code,
            token_present=token is not None,
            duration_ms=round(duration * 1000, 2),
        )
        self._record(route, self._outcome(result), duration)
        return result

    async def request_json(
        self,
        method: str,
        url: str,
        token: Optional[str] = None,
        payload: Any = None,
        policy: RoutePolicy = CONSERVATIVE,
        route: str = "relay",
    ) -> RelayResult:
        """Relay-originated call with a JSON payload (composite routes)."""
        body = json.dumps(payload).encode() if payload is not None else b""
        return await self.execute(
            method,
            url,
            headers={"content-type": JSON_MEDIA_TYPE},
            body=body,
            token=token,
            policy=policy,
            route=route,
        )

    def _record(self, route: str, outcome: str, duration: float) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_call(route, outcome, duration)

    @staticmethod
    def _outcome(result: RelayResult) -> str:
        if result.fallback_used:
            return "fallback"
        if result.error_code == "SHAPE_ERROR":
            return "shape_error"
        if not result.ok:
            return "upstream_error"
        return "success"
