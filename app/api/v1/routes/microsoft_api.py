"""
Generic Microsoft API endpoints.

Endpoints:
- POST /microsoft-api/call - Invoke Microsoft Graph or Azure Resource Management
- POST /microsoft-api/token-cache/clear - Drop cached bearer tokens
"""
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from app.models.api_call import ApiCallRequest
from app.services.auth.token_manager import TokenManager
from app.services.microsoft_api.orchestrator import ApiCallOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/microsoft-api", tags=["Microsoft API"])


@lru_cache
def get_token_manager() -> TokenManager:
    """Process-wide token manager (one token cache per process)."""
    return TokenManager()


@lru_cache
def get_orchestrator() -> ApiCallOrchestrator:
    """Process-wide orchestrator sharing one HTTP client and token cache."""
    return ApiCallOrchestrator(token_provider=get_token_manager())


@router.post("/call")
async def call_microsoft_api(
    request: ApiCallRequest,
    orchestrator: ApiCallOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Call Microsoft Graph or Azure Resource Management.

    Always answers HTTP 200 with a single text block envelope; backend
    failures are reported with ``isError: true`` and a JSON diagnostic.
    """
    logger.info(f"API call requested: {request.backend} {request.method.upper()} {request.path}")
    result = await orchestrator.call(request)
    return result.to_envelope()


@router.post("/token-cache/clear")
async def clear_token_cache(
    scope: Optional[str] = Query(None, description="Only drop the token for this scope"),
    token_manager: TokenManager = Depends(get_token_manager),
):
    """Clear cached tokens so the next call performs a fresh exchange."""
    if scope:
        removed = 1 if token_manager.invalidate(scope) else 0
    else:
        removed = token_manager.clear_cache()

    return {
        "success": True,
        "cleared": removed,
        "message": "Token cache cleared. Next request will acquire a fresh token.",
    }
