"""Core components for Tradal Coach."""

from coach.core.providers import (
    AllProvidersExhaustedError,
    GenerationTimeoutError,
    ProviderAdapter,
    ProviderError,
    ProviderType,
)
from coach.core.router import GenerationRouter, ProviderStatus, build_router

__all__ = [
    "AllProvidersExhaustedError",
    "GenerationRouter",
    "GenerationTimeoutError",
    "ProviderAdapter",
    "ProviderError",
    "ProviderStatus",
    "ProviderType",
    "build_router",
]
