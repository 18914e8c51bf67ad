"""
Result types shared by the relay executor, normalizer and routes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi.responses import JSONResponse, Response

from shared.errors import RelayException

# Unwrap order for array-shaped endpoints
DEFAULT_UNWRAP_KEYS: Tuple[str, ...] = ("data", "orders", "items", "results")


class ResultKind(str, Enum):
    """Shape of a relay result body."""
    JSON = "json"
    EMPTY = "empty"


@dataclass
class RelayResult:
    """Normalized outcome of one relayed call."""

    status_code: int
    kind: ResultKind
    body: Any = None
    content_type: Optional[str] = None
    error_code: Optional[str] = None
    fallback_used: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_error(self) -> bool:
        return self.error_code is not None or not self.ok

    @classmethod
    def json(cls, status_code: int, body: Any, content_type: str = "application/json") -> "RelayResult":
        return cls(status_code=status_code, kind=ResultKind.JSON, body=body, content_type=content_type)

    @classmethod
    def empty(cls, status_code: int, content_type: Optional[str] = None) -> "RelayResult":
        return cls(status_code=status_code, kind=ResultKind.EMPTY, content_type=content_type)

    @classmethod
    def from_exception(cls, exc: RelayException) -> "RelayResult":
        """Synthesize the JSON error result for a relay exception."""
        return cls(
            status_code=exc.status_code,
            kind=ResultKind.JSON,
            body=exc.to_response().model_dump(),
            content_type="application/json",
            error_code=exc.code,
        )

    def to_response(self, headers: Optional[Dict[str, str]] = None) -> Response:
        """Render as the JSON response the browser receives."""
        if self.kind is ResultKind.EMPTY:
            if self.status_code == 204:
                return Response(status_code=204, headers=headers)
            return JSONResponse(status_code=self.status_code, content={}, headers=headers)
        return JSONResponse(status_code=self.status_code, content=self.body, headers=headers)


@dataclass(frozen=True)
class RoutePolicy:
    """How a route treats usable-looking but unexpected 2xx bodies.

    Without a ``fallback`` a non-JSON 2xx becomes a synthesized 500. Array
    routes opt into the unwrap rule with ``expects_array``. A bodyless 2xx
    other than 204 is only accepted as empty when ``allow_empty`` is set.
    """

    expects_array: bool = False
    allow_empty: bool = False
    fallback: Optional[Callable[[], Any]] = None
    unwrap_keys: Tuple[str, ...] = DEFAULT_UNWRAP_KEYS
    name: str = "relay"

    def fallback_value(self) -> Any:
        return self.fallback() if self.fallback is not None else None


CONSERVATIVE = RoutePolicy()
ARRAY_WITH_EMPTY_FALLBACK = RoutePolicy(expects_array=True, fallback=list)


def array_policy(*extra_keys: str, fallback: Optional[Callable[[], Any]] = list, name: str = "relay") -> RoutePolicy:
    """Array policy whose unwrap keys extend the default order."""
    keys = DEFAULT_UNWRAP_KEYS + tuple(k for k in extra_keys if k not in DEFAULT_UNWRAP_KEYS)
    return RoutePolicy(expects_array=True, fallback=fallback, unwrap_keys=keys, name=name)

