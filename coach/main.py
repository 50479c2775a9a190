"""FastAPI application for Tradal Coach.

This module provides the main FastAPI application with health endpoints,
the coach API routes, and lifecycle management for the generation router.

Run with:
    uvicorn coach.main:app --reload

Examples:
    >>> # Health check
    >>> curl http://localhost:8000/health

    >>> # Chat
    >>> curl -X POST http://localhost:8000/api/v1/coach/chat -d '{"message": "hi"}'

Tests:
    - tests/unit/test_main.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from coach import __version__
from coach.api.v1 import router as v1_router
from coach.config import get_settings
from coach.core.providers import AllProvidersExhaustedError, GenerationTimeoutError
from coach.core.router import build_router

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Response models
class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    providers: dict[str, bool]


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    detail: str | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Builds the generation router once on startup and closes its provider
    connections on shutdown.
    """
    logger.info(f"Starting Tradal Coach v{__version__}")
    app.state.router = build_router(settings)

    yield

    logger.info("Shutting down Tradal Coach")
    await app.state.router.close()


app = FastAPI(
    title="Tradal Coach",
    description="AI trading coach with multi-provider failover",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.APP_URL] if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API v1 routes
app.include_router(v1_router)


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent response format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
    )


@app.exception_handler(AllProvidersExhaustedError)
async def providers_exhausted_handler(request: Request, exc: AllProvidersExhaustedError):
    """Report provider exhaustion as a temporary outage.

    No upstream is named to the client; the per-provider errors are logged.
    """
    if isinstance(exc, GenerationTimeoutError):
        status_code = status.HTTP_504_GATEWAY_TIMEOUT
        error = "AI coach timed out"
    else:
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        error = "AI coach temporarily unavailable"

    logger.warning(f"{error}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=str(exc) if settings.DEBUG else None,
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if settings.DEBUG else None,
        ).model_dump(),
    )


# Health endpoints
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Check application health.

    Reports which providers have credentials; ``degraded`` when none do.
    """
    providers = {p.value: settings.has_provider(p) for p in settings.get_provider_chain()}

    return HealthResponse(
        status="healthy" if any(providers.values()) else "degraded",
        version=__version__,
        providers=providers,
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with basic info."""
    return {
        "name": "Tradal Coach",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coach.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
