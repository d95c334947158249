"""Health check endpoint."""
from fastapi import APIRouter
from datetime import datetime, timezone

from app.config import settings
from app.core.constants import BACKENDS

router = APIRouter()


@router.get("/health")
async def health_check():
    """Return service health status and the configured backend roots."""
    return {
        "status": "healthy",
        "service": "m365-api-gateway",
        "version": "1.0.0",
        "credentials_configured": settings.has_azure_credentials,
        "backends": {
            "graph": settings.graph_base_url,
            "azure": settings.azure_management_url,
        },
        "supported_backends": list(BACKENDS),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
