"""In-process bearer token cache keyed by OAuth scope."""
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedToken:
    """An access token for one scope with its absolute expiry (epoch seconds)."""
    scope: str
    access_token: str
    expires_at: float

    def is_valid(self, now: float, margin_seconds: float = 60) -> bool:
        return self.expires_at > now + margin_seconds


class TokenCache:
    """Process-scoped map of scope -> CachedToken.

    Entries are replaced wholesale on refresh, so concurrent callers need no
    locking: the last writer wins and every stored token is usable.
    """

    def __init__(self, margin_seconds: float = 60):
        self.margin_seconds = margin_seconds
        self._entries: Dict[str, CachedToken] = {}

    def get(self, scope: str, now: Optional[float] = None) -> Optional[CachedToken]:
        """Return the cached token for ``scope`` if it is still outside the refresh margin."""
        entry = self._entries.get(scope)
        if entry is None:
            return None
        now = time.time() if now is None else now
        if entry.is_valid(now, self.margin_seconds):
            return entry
        logger.debug(f"Cached token for {scope} is expired or about to expire")
        return None

    def put(self, token: CachedToken) -> None:
        self._entries[token.scope] = token

    def invalidate(self, scope: str) -> bool:
        """Drop the token for one scope. Returns True if an entry was removed."""
        removed = self._entries.pop(scope, None) is not None
        if removed:
            logger.info(f"Invalidated cached token for {scope}")
        return removed

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {count} cached token(s)")
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, scope: str) -> bool:
        return scope in self._entries
