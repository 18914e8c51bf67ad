"""
In-memory credential slot shared by storefront client components.
"""

from typing import Callable, List, Optional

from shared.logging import get_logger

TokenListener = Callable[[Optional[str]], None]


class TokenStore:
    """Holds the current session credential.

    Consumers receive ``store.get`` as their credential provider at
    construction time instead of reaching for a global.
    """

    def __init__(self, token: Optional[str] = None):
        self._token = token or None
        self._listeners: List[TokenListener] = []
        self.logger = get_logger("storefront.token_store")

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: Optional[str]) -> None:
        self._token = token or None
        self.logger.debug("Credential updated", token_present=self._token is not None)
        self._notify()

    def clear(self) -> None:
        self.set(None)

    def subscribe(self, listener: TokenListener) -> Callable[[], None]:
        """Register a listener; the returned callable unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._token)
