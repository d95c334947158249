"""Token manager for Microsoft Graph and Azure RM authentication using MSAL."""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from msal import ConfidentialClientApplication, TokenCache as MsalTokenCache

from app.config import Settings, settings as default_settings
from app.services.auth.token_cache import CachedToken, TokenCache
from app.services.microsoft_api.exceptions import AuthError

logger = logging.getLogger(__name__)


class TokenManager:
    """Acquires and caches OAuth2 access tokens per scope.

    Uses the MSAL ConfidentialClientApplication client credentials flow.
    Tokens are kept in an explicit TokenCache and re-acquired once they are
    within the refresh margin of their expiry.
    """

    def __init__(
        self,
        settings: Settings = None,
        cache: TokenCache = None,
        app: Optional[ConfidentialClientApplication] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the token manager.

        Args:
            settings: Application settings holding the app registration.
            cache: Token cache to use. A fresh one is created if omitted.
            app: Pre-built MSAL application (mainly for tests).
            clock: Source of the current epoch time in seconds.
        """
        self._settings = settings or default_settings
        self.cache = cache or TokenCache(margin_seconds=self._settings.token_refresh_margin_seconds)
        self._app = app
        self._clock = clock

    def _get_app(self) -> ConfidentialClientApplication:
        """Lazy initialization of the MSAL confidential client application."""
        if self._app is not None:
            return self._app

        if not self._settings.has_azure_credentials:
            raise AuthError(
                message="Azure AD credentials not configured.",
                details={"hint": "Ensure AZURE_TENANT_ID, AZURE_CLIENT_ID, and AZURE_CLIENT_SECRET are set."},
            )

        try:
            self._app = ConfidentialClientApplication(
                client_id=self._settings.azure_client_id,
                client_credential=self._settings.azure_client_secret.get_secret_value(),
                authority=self._settings.authority,
            )
            logger.info("MSAL ConfidentialClientApplication initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize MSAL application: {e}")
            raise AuthError(
                message=f"Failed to initialize authentication: {e}",
                details={"error": str(e)},
            )
        return self._app

    async def acquire_token(self, scope: str) -> str:
        """Return a bearer token for ``scope``, from cache when still valid.

        Raises:
            AuthError: If the exchange fails or returns a malformed result.
        """
        now = self._clock()
        cached = self.cache.get(scope, now=now)
        if cached is not None:
            logger.debug(f"Using cached access token for {scope}")
            return cached.access_token

        logger.info(f"Acquiring new access token for {scope}")
        app = self._get_app()
        result = await asyncio.to_thread(app.acquire_token_for_client, scopes=[scope])

        token = self._parse_result(scope, result, now)
        self.cache.put(token)
        logger.info(f"Successfully acquired access token for {scope}")
        return token.access_token

    @staticmethod
    def _parse_result(scope: str, result: Optional[Dict[str, Any]], now: float) -> CachedToken:
        if not isinstance(result, dict):
            raise AuthError(
                message=f"Invalid token response received for scope {scope}",
                details={"response": repr(result)},
            )

        if "error" in result:
            error = result.get("error", "unknown_error")
            error_description = result.get("error_description", "No error description provided")
            logger.error(f"Token acquisition failed: {error} - {error_description}")
            raise AuthError(
                message=f"Failed to acquire access token for scope {scope}: {error}",
                details={
                    "error": error,
                    "error_description": error_description,
                    "correlation_id": result.get("correlation_id"),
                },
            )

        access_token = result.get("access_token")
        try:
            expires_in = float(result["expires_in"])
        except (KeyError, TypeError, ValueError):
            expires_in = None

        if not access_token or not expires_in:
            logger.error(f"Invalid token response for {scope}: keys={sorted(result)}")
            raise AuthError(
                message=f"Invalid token response received for scope {scope}",
                details={"keys": sorted(result)},
            )

        return CachedToken(scope=scope, access_token=access_token, expires_at=now + expires_in)

    def _drop_msal_tokens(self, scope: Optional[str] = None) -> int:
        """Remove access tokens held in MSAL's own cache.

        acquire_token_for_client answers from that cache first, so without
        this the next exchange would hand back the token just invalidated.
        """
        if self._app is None:
            return 0

        msal_cache = self._app.token_cache
        entries = list(msal_cache.search(
            MsalTokenCache.CredentialType.ACCESS_TOKEN,
            target=[scope] if scope else None,
        ))
        for entry in entries:
            msal_cache.remove_at(entry)
        return len(entries)

    def invalidate(self, scope: str) -> bool:
        """Force the next acquire_token for ``scope`` to perform a fresh exchange."""
        removed = self.cache.invalidate(scope)
        dropped = self._drop_msal_tokens(scope)
        logger.info(f"Invalidated token for {scope} ({dropped} MSAL cache entries dropped)")
        return removed

    def clear_cache(self) -> int:
        """Clear every cached token, ours and MSAL's.

        Useful for testing or when credentials have changed.
        """
        cleared = self.cache.clear()
        self._drop_msal_tokens()
        logger.info(f"Token cache cleared ({cleared} entries)")
        return cleared
