"""FastAPI application entry point for the Microsoft API gateway."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1.routes import health, microsoft_api

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Release the shared HTTP client on shutdown
    if microsoft_api.get_orchestrator.cache_info().currsize:
        await microsoft_api.get_orchestrator().close()


# Create FastAPI application
app = FastAPI(
    title="M365 API Gateway",
    description="Generic Microsoft Graph and Azure Resource Management invocation API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(microsoft_api.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "M365 API Gateway",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "call": "/api/v1/microsoft-api/call",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
