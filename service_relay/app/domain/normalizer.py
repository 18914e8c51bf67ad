"""
Conversion of raw core service responses into relay results.

Decision table applied by ``ResponseNormalizer.normalize``:

    2xx + JSON that parses        -> passthrough, same status
    2xx + JSON that fails         -> 500 ShapeError
    2xx + non-JSON / empty        -> route fallback if it has one, else 500 ShapeError
                                     (204, or empty with ``allow_empty`` -> EMPTY)
    non-2xx + JSON that parses    -> passthrough body, original status
    non-2xx + anything else       -> synthesized error body, original status
    transport failure             -> 500 TransportError body with its reason
"""

import json
from typing import Any, Iterable, Optional

import httpx

from service_relay.app.domain.results import (
    CONSERVATIVE,
    DEFAULT_UNWRAP_KEYS,
    RelayResult,
    ResultKind,
    RoutePolicy,
)
from shared.errors import ShapeError, TransportError, UpstreamError
from shared.logging import get_logger


def is_json_content_type(content_type: Optional[str]) -> bool:
    """True for ``application/json`` and ``+json`` media types."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def unwrap_array(body: Any, keys: Iterable[str] = DEFAULT_UNWRAP_KEYS) -> Any:
    """Return the first array found under ``keys``; arrays and misses pass through."""
    if isinstance(body, list) or not isinstance(body, dict):
        return body
    for key in keys:
        value = body.get(key)
        if isinstance(value, list):
            return value
    return body


class ResponseNormalizer:
    """Classify core service responses into ``RelayResult`` values."""

    def __init__(self):
        self.logger = get_logger("relay.normalizer")

    def normalize(self, response: httpx.Response, policy: RoutePolicy = CONSERVATIVE, endpoint: str = "") -> RelayResult:
        status = response.status_code
        content_type = response.headers.get("content-type")
        raw = response.content

        if 200 <= status < 300:
            return self._normalize_success(status, content_type, raw, policy, endpoint)
        return self._normalize_failure(status, content_type, raw, endpoint)

    def normalize_transport_error(self, exc: TransportError) -> RelayResult:
        """Map a network-level failure to its synthesized 500 result."""
        self.logger.warning("Core service unreachable", reason=exc.reason)
        return RelayResult.from_exception(exc)

    def _normalize_success(
        self,
        status: int,
        content_type: Optional[str],
        raw: bytes,
        policy: RoutePolicy,
        endpoint: str,
    ) -> RelayResult:
        if not raw.strip():
            if status == 204 or policy.allow_empty:
                return RelayResult.empty(status, content_type)
            if policy.fallback is not None:
                return self._fallback(status, policy, endpoint, "empty body")
            self.logger.warning("Core service returned empty success body", endpoint=endpoint, status_code=status)
            return RelayResult.from_exception(
                ShapeError(
                    "Core service did not return a valid JSON response",
                    details={"endpoint": endpoint, "content_type": content_type},
                )
            )

        if not is_json_content_type(content_type):
            if policy.fallback is not None:
                return self._fallback(status, policy, endpoint, "non-JSON body")
            self.logger.warning(
                "Core service returned non-JSON success body",
                endpoint=endpoint,
                content_type=content_type,
            )
            return RelayResult.from_exception(
                ShapeError(
                    "Core service did not return a valid JSON response",
                    details={"endpoint": endpoint, "content_type": content_type},
                )
            )

        try:
            body = json.loads(raw)
        except ValueError:
            self.logger.error("Core service JSON body failed to parse", endpoint=endpoint)
            return RelayResult.from_exception(
                ShapeError(
                    "Core service response could not be parsed as JSON",
                    details={"endpoint": endpoint},
                )
            )

        if policy.expects_array:
            body = unwrap_array(body, policy.unwrap_keys)

        return RelayResult.json(status, body, content_type or "application/json")

    def _normalize_failure(self, status: int, content_type: Optional[str], raw: bytes, endpoint: str) -> RelayResult:
        if is_json_content_type(content_type) and raw.strip():
            try:
                body = json.loads(raw)
            except ValueError:
                body = None
            else:
                self.logger.info("Core service error passed through", endpoint=endpoint, status_code=status)
                return RelayResult(
                    status_code=status,
                    kind=ResultKind.JSON,
                    body=body,
                    content_type=content_type,
                    error_code="UPSTREAM_ERROR",
                )

        self.logger.info(
            "Core service error without JSON body",
            endpoint=endpoint,
            status_code=status,
            content_type=content_type,
        )
        return RelayResult.from_exception(
            UpstreamError(
                status,
                f"Error accessing core service: {endpoint}" if endpoint else "Error accessing core service",
                details={"status_code": status},
            )
        )

    def _fallback(self, status: int, policy: RoutePolicy, endpoint: str, reason: str) -> RelayResult:
        self.logger.info("Route fallback applied", endpoint=endpoint, reason=reason, policy=policy.name)
        result = RelayResult.json(status, policy.fallback_value())
        result.fallback_used = True
        return result
