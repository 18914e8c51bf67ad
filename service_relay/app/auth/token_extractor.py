"""
Credential extraction for relay routes.
"""

from typing import Mapping, Optional

from fastapi import Request

from shared.logging import get_logger


class TokenExtractor:
    """Pull a bearer credential from an inbound request.

    The session cookie wins when present and non-empty; the
    ``Authorization: <scheme> <token>`` header is the only other source.
    Absence is reported as ``None``; routes decide whether that is fatal.
    """

    def __init__(self, cookie_name: str = "true_core_token", scheme: str = "Bearer"):
        self.cookie_name = cookie_name
        self.scheme = scheme
        self.logger = get_logger("relay.token_extractor")

    def extract(self, request: Request) -> Optional[str]:
        """Return the request's credential or ``None``."""
        return self.extract_from(request.cookies, request.headers)

    def extract_from(self, cookies: Mapping[str, str], headers: Mapping[str, str]) -> Optional[str]:
        cookie_token = (cookies.get(self.cookie_name) or "").strip()
        if cookie_token:
            self.logger.debug("Credential resolved", source="cookie")
            return cookie_token

        header_token = self.parse_authorization(headers.get("authorization"))
        if header_token:
            self.logger.debug("Credential resolved", source="header")
            return header_token

        self.logger.debug("Credential absent")
        return None

    def parse_authorization(self, value: Optional[str]) -> Optional[str]:
        """Return the token of a ``<scheme> <token>`` header value."""
        if not value:
            return None
        scheme, _, token = value.strip().partition(" ")
        if scheme.lower() != self.scheme.lower():
            return None
        token = token.strip()
        return token or None
