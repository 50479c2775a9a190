"""Trading coach API endpoints.

Endpoints:
    POST /api/v1/coach/chat - Chat with the coach (optionally with a chart image)
    POST /api/v1/coach/review - Review a single trade
    GET /api/v1/coach/providers - Provider chain status

Examples:
    >>> POST /api/v1/coach/chat
    >>> {"message": "Where is the liquidity?", "image": "data:image/png;base64,..."}

Tests:
    - tests/unit/test_main.py
"""

import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from coach.core.router import GenerationRouter, ProviderStatus
from coach.services.coach import TradingCoach

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coach", tags=["coach"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================


class ChatRequest(BaseModel):
    """Request to chat with the coach.

    Attributes:
        message: User's message
        context: Optional structured context (trade, account stats)
        image: Optional chart screenshot, base64 or data URL
    """

    message: str = Field(..., min_length=1, description="User's message")
    context: Any = Field(default=None, description="Structured context")
    image: str | None = Field(default=None, description="Base64 image or data URL")


class ReviewRequest(BaseModel):
    """Request to review one trade."""

    trade: dict[str, Any] = Field(..., min_length=1, description="Trade record")


class CoachResponse(BaseModel):
    """Coach reply with timing."""

    response: str
    latency_ms: int


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_router(request: Request) -> GenerationRouter:
    """Get the application's generation router."""
    return request.app.state.router


def get_coach(router: GenerationRouter = Depends(get_router)) -> TradingCoach:
    """Get a coach bound to the application's router."""
    return TradingCoach(router)


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.post("/chat", response_model=CoachResponse)
async def chat(
    body: ChatRequest,
    coach: TradingCoach = Depends(get_coach),
) -> CoachResponse:
    """Chat with the trading coach.

    Provider exhaustion is mapped to 503 (504 on deadline) by the
    application's exception handlers.
    """
    start_time = time.perf_counter()
    text = await coach.chat(body.message, body.context, body.image)
    latency_ms = int((time.perf_counter() - start_time) * 1000)
    return CoachResponse(response=text, latency_ms=latency_ms)


@router.post("/review", response_model=CoachResponse)
async def review(
    body: ReviewRequest,
    coach: TradingCoach = Depends(get_coach),
) -> CoachResponse:
    """Review a single trade."""
    start_time = time.perf_counter()
    text = await coach.review_trade(body.trade)
    latency_ms = int((time.perf_counter() - start_time) * 1000)
    return CoachResponse(response=text, latency_ms=latency_ms)


@router.get("/providers", response_model=list[ProviderStatus])
async def providers(
    generation_router: GenerationRouter = Depends(get_router),
) -> list[ProviderStatus]:
    """List the provider chain in priority order (keys masked)."""
    return generation_router.status()
