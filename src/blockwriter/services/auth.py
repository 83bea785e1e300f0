"""Bearer credentials for gateway requests.

The identity provider owns sign-in and token refresh; Blockwriter only asks
for the current token and passes it along untouched.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SessionProvider(ABC):
    """Supplies the bearer credential for backend calls."""

    @abstractmethod
    async def get_token(self) -> Optional[str]:
        """Return the current opaque token, or None when signed out."""
        pass


class StaticSessionProvider(SessionProvider):
    """Session provider returning a fixed token (config or tests)."""

    def __init__(self, token: Optional[str]) -> None:
        self._token = token

    async def get_token(self) -> Optional[str]:
        return self._token
