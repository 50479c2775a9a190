"""Generation router with ordered provider fallback.

This module presents one ``generate`` entry point over a fixed priority
chain of provider adapters. Adapters are tried strictly in order; the first
success wins and no further adapters are called. Every failure (missing
credentials, upstream error, exhausted keys) is logged and the walk moves
on. Only when the whole chain fails does the caller see an error:
``AllProvidersExhaustedError``, or ``GenerationTimeoutError`` when the
deadline expires first.

Retries happen only inside adapters (across keys and models); the router
never calls the same adapter twice for one request.

Examples:
    >>> from coach.core.router import build_router
    >>> router = build_router()
    >>> text = await router.generate(
    ...     "Is this a valid breaker block?",
    ...     context={"pair": "XAUUSD", "timeframe": "M15"},
    ...     image=chart_b64,
    ...     deadline=45.0,
    ... )

Tests:
    - tests/unit/test_router.py
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from coach.config import Settings, get_settings
from coach.core.providers import (
    AllProvidersExhaustedError,
    GenerationTimeoutError,
    NotConfiguredError,
    ProviderAdapter,
    build_providers,
)
from coach.prompts.coach import COACH_SYSTEM_TEMPLATE, get_coach_system_prompt

logger = logging.getLogger(__name__)


class ProviderStatus(BaseModel):
    """Operator view of one adapter in the chain.

    Attributes:
        position: 1-based priority
        name: Display name
        provider: Provider type value
        configured: Whether credentials are present
        keys: Masked credentials
        vision_policy: How image requests are handled
        text_models: Text model cascade
        vision_models: Vision model cascade (MODEL_SWAP only)
    """

    position: int
    name: str
    provider: str
    configured: bool
    keys: list[str]
    vision_policy: str
    text_models: list[str]
    vision_models: list[str]


class GenerationRouter:
    """Route generation requests across a priority chain of providers.

    Attributes:
        providers: The priority chain, fixed at construction
        system_template: Persona template with a ``{context}`` slot
        deadline: Default overall deadline in seconds (None for no limit)

    Examples:
        >>> router = GenerationRouter([OpenRouterProvider(keys=[...]), GroqProvider(keys=[...])])
        >>> await router.generate("Hello")
    """

    def __init__(
        self,
        providers: Sequence[ProviderAdapter],
        system_template: str = COACH_SYSTEM_TEMPLATE,
        deadline: float | None = None,
    ) -> None:
        """Initialize router.

        Args:
            providers: Adapters in priority order.
            system_template: Persona template with a ``{context}`` slot.
            deadline: Default overall deadline in seconds.
        """
        self.providers: tuple[ProviderAdapter, ...] = tuple(providers)
        self.system_template = system_template
        self.deadline = deadline

    def __len__(self) -> int:
        return len(self.providers)

    def build_system_prompt(self, context: Any = None) -> str:
        """Fill the persona template with the caller's context."""
        return get_coach_system_prompt(context, template=self.system_template)

    async def generate(
        self,
        message: str,
        context: Any = None,
        image: str | None = None,
        deadline: float | None = None,
    ) -> str:
        """Generate a response with ordered provider fallback.

        Args:
            message: The user message.
            context: Structured context for the system prompt (optional).
            image: Base64 image or data URL for chart analysis (optional).
            deadline: Overall deadline in seconds; overrides the router default.

        Returns:
            str: Text from the first provider that succeeded.

        Raises:
            AllProvidersExhaustedError: Every provider failed.
            GenerationTimeoutError: The deadline expired first.
        """
        system_prompt = self.build_system_prompt(context)
        errors: dict[str, Exception] = {}
        limit = deadline if deadline is not None else self.deadline

        if limit is None:
            return await self._walk_chain(message, system_prompt, image, errors)

        try:
            return await asyncio.wait_for(
                self._walk_chain(message, system_prompt, image, errors),
                timeout=limit,
            )
        except asyncio.TimeoutError:
            error = GenerationTimeoutError(limit, dict(errors), len(self.providers))
            logger.error(f"[Router] {error}")
            raise error from None

    async def _walk_chain(
        self,
        message: str,
        system_prompt: str,
        image: str | None,
        errors: dict[str, Exception],
    ) -> str:
        """Try each provider once, in order, until one succeeds."""
        for provider in self.providers:
            start_time = time.perf_counter()
            try:
                logger.info(f"[Router] Attempting {provider.name}...")
                result = await provider.generate(message, system_prompt, image)
            except NotConfiguredError as e:
                logger.debug(f"[Router] {provider.name} skipped: {e}")
                errors[provider.name] = e
                continue
            except Exception as e:
                logger.warning(f"[Router] {provider.name} failed: {e}")
                errors[provider.name] = e
                continue

            latency_ms = int((time.perf_counter() - start_time) * 1000)
            logger.info(f"[Router] {provider.name} succeeded in {latency_ms}ms")
            return result

        error = AllProvidersExhaustedError(errors, len(self.providers))
        logger.error(f"[Router] {error}")
        raise error

    def status(self) -> list[ProviderStatus]:
        """Describe every adapter in priority order (secrets masked)."""
        return [
            ProviderStatus(position=position, **provider.describe())
            for position, provider in enumerate(self.providers, start=1)
        ]

    async def close(self) -> None:
        """Close all provider connections."""
        for provider in self.providers:
            await provider.close()


def build_router(settings: Settings | None = None) -> GenerationRouter:
    """Build a router for the configured priority chain.

    Args:
        settings: Application settings (default: cached settings).

    Returns:
        GenerationRouter: A router over every provider in the chain.
    """
    settings = settings or get_settings()
    return GenerationRouter(
        build_providers(settings),
        deadline=settings.GENERATION_DEADLINE,
    )
