"""Services module for the Microsoft API gateway."""
from app.services.auth.token_cache import CachedToken, TokenCache
from app.services.auth.token_manager import TokenManager
from app.services.microsoft_api import ApiCallOrchestrator

__all__ = [
    "CachedToken",
    "TokenCache",
    "TokenManager",
    "ApiCallOrchestrator",
]
