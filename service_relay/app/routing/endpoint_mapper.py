"""
Mapping of public route templates onto core service URLs.
"""

import re
from typing import Iterable, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote, urlencode

from shared.errors import ConfigurationError, UnresolvedPlaceholderError

PLACEHOLDER_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")

QueryPairs = List[Tuple[str, str]]


def placeholders(template: str) -> List[str]:
    """Names of the ``:name`` placeholders of a template, in order."""
    return PLACEHOLDER_PATTERN.findall(template)


def strip_api_prefix(base_url: str, api_prefix: str = "/api") -> str:
    """Drop one trailing API prefix segment from a base URL."""
    base = base_url.strip().rstrip("/")
    prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
    if prefix and base.endswith(prefix):
        base = base[: -len(prefix)]
    return base


class EndpointMapper:
    """Resolve route templates against the configured core service base."""

    def __init__(self, base_url: Optional[str], api_prefix: str = "/api"):
        self.raw_base_url = base_url
        self.api_prefix = api_prefix
        self.base_url = strip_api_prefix(base_url, api_prefix) if base_url else None

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def require_base(self) -> str:
        if not self.base_url:
            raise ConfigurationError("Core service URL is not configured")
        return self.base_url

    def substitute(self, template: str, params: Optional[Mapping[str, object]] = None) -> str:
        """Fill every placeholder of ``template`` from ``params``."""
        params = params or {}
        missing = [
            name for name in placeholders(template)
            if params.get(name) is None or str(params.get(name)).strip() == ""
        ]
        if missing:
            raise UnresolvedPlaceholderError(template, missing)

        def _replace(match: "re.Match[str]") -> str:
            return quote(str(params[match.group(1)]).strip(), safe="")

        path = PLACEHOLDER_PATTERN.sub(_replace, template)
        if not path.startswith("/"):
            path = "/" + path
        return path

    def resolve(
        self,
        template: str,
        params: Optional[Mapping[str, object]] = None,
        query: Optional[str] = None,
        overrides: Optional[Mapping[str, object]] = None,
        defaults: Optional[Mapping[str, object]] = None,
        drop: Iterable[str] = (),
    ) -> str:
        """Build the full core service URL for a template.

        ``query`` is the inbound raw query string and is appended verbatim
        unless the route overrides, defaults or drops parameters.
        """
        base = self.require_base()
        path = self.substitute(template, params)
        query_string = merge_query(query, overrides=overrides, defaults=defaults, drop=drop)
        return f"{base}{path}?{query_string}" if query_string else f"{base}{path}"


def merge_query(
    query: Optional[str],
    overrides: Optional[Mapping[str, object]] = None,
    defaults: Optional[Mapping[str, object]] = None,
    drop: Iterable[str] = (),
) -> str:
    """Apply route-level parameter rules to an inbound query string.

    ``defaults`` only fill parameters that are absent or blank; ``overrides``
    always replace. Without any rule the query comes back untouched.
    """
    drop = set(drop)
    if not overrides and not defaults and not drop:
        return query or ""

    pairs: QueryPairs = [
        (key, value) for key, value in parse_qsl(query or "", keep_blank_values=True)
        if key not in drop
    ]

    for key, value in (defaults or {}).items():
        present = [v for k, v in pairs if k == key]
        if not present or all(not v.strip() for v in present):
            pairs = [(k, v) for k, v in pairs if k != key]
            pairs.append((key, _query_value(value)))

    for key, value in (overrides or {}).items():
        pairs = [(k, v) for k, v in pairs if k != key]
        if value is not None:
            pairs.append((key, _query_value(value)))

    return urlencode(pairs)



def _query_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
