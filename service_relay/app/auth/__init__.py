"""Credential handling for the relay."""

from service_relay.app.auth.token_extractor import TokenExtractor

__all__ = ["TokenExtractor"]
