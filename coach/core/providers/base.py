"""Base provider adapter abstraction layer.

This module defines the abstract adapter every generation backend
implements, the request model passed to it, and the error taxonomy shared
by adapters and the router.

An adapter turns ``(prompt, system_prompt, image?)`` into plain text. It
owns one credential set (possibly empty) and an ordered list of candidate
models per request kind. Rate limits are absorbed inside the adapter by
rotating keys and then models; only when every combination is throttled
does the adapter give up with ``AllCredentialsExhaustedError``.

Examples:
    >>> class EchoProvider(ProviderAdapter):
    ...     provider_type = ProviderType.DEEPSEEK
    ...     name = "Echo"
    ...     text_models = ("echo-1",)
    ...     async def _complete(self, key, model, request):
    ...         return request.prompt
    >>> await EchoProvider(["k"]).generate("hi", "sys")
    'hi'

Tests:
    - tests/unit/test_providers.py::TestGenerationRequest
    - tests/unit/test_providers.py::TestRotationLoop
    - tests/unit/test_providers.py::TestProviderErrors
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from coach.config import ProviderType
from coach.core.providers.keys import KeyRotator, mask_key

logger = logging.getLogger(__name__)

__all__ = [
    "AllCredentialsExhaustedError",
    "AllProvidersExhaustedError",
    "GenerationRequest",
    "GenerationTimeoutError",
    "NotConfiguredError",
    "ProviderAdapter",
    "ProviderError",
    "ProviderType",
    "RateLimitError",
    "UpstreamError",
    "VisionPolicy",
]

TEXT_ONLY_NOTE = (
    "\n\n[System Note: Image context unavailable on {name}. "
    "Analyze text data only.]"
)


class VisionPolicy(str, Enum):
    """How an adapter treats a request that carries an image.

    - NATIVE: the text models also accept images
    - MODEL_SWAP: a separate vision model list is used for image requests
    - TEXT_ONLY: the image is dropped and the prompt notes the analysis is text-only
    """

    NATIVE = "native"
    MODEL_SWAP = "model_swap"
    TEXT_ONLY = "text_only"


class GenerationRequest(BaseModel):
    """One generation request as seen by an adapter.

    Attributes:
        prompt: The user prompt
        system_prompt: Persona/instruction text supplied by the router
        image: Optional base64 payload or data URL
    """

    prompt: str = Field(min_length=1, description="User prompt")
    system_prompt: str = Field(default="", description="System prompt")
    image: str | None = Field(default=None, description="Base64 image or data URL")

    @property
    def has_image(self) -> bool:
        """Whether the caller asked for vision analysis."""
        return bool(self.image)


class ProviderError(Exception):
    """Base exception for provider errors.

    Attributes:
        provider: The provider that raised the error
        message: Error message
        status_code: HTTP status code (if applicable)
        retryable: Whether another key or model may succeed
    """

    def __init__(
        self,
        message: str,
        provider: ProviderType | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable

    @property
    def message(self) -> str:
        return self.args[0]

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [self.message]
        if self.status_code:
            parts.insert(0, f"({self.status_code})")
        if self.provider is not None:
            parts.insert(0, f"[{self.provider.value}]")
        return " ".join(parts)


class NotConfiguredError(ProviderError):
    """Adapter has no credentials; no network call was made."""

    def __init__(self, provider: ProviderType, name: str) -> None:
        super().__init__(f"No {name} credentials configured", provider)


class RateLimitError(ProviderError):
    """Rate limit or quota signal for the current key (rotation may help)."""

    def __init__(
        self,
        provider: ProviderType,
        message: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        text = message or "Rate limit exceeded"
        if retry_after:
            text += f", retry after {retry_after}s"
        super().__init__(text, provider, status_code=429, retryable=True)
        self.retry_after = retry_after


class UpstreamError(ProviderError):
    """Non-recoverable failure of a single attempt (auth, bad request, server, empty body)."""


class AllCredentialsExhaustedError(ProviderError):
    """Every key/model combination of one adapter was rate limited.

    Attributes:
        last_error: The last rate-limit error observed
        attempts: Number of attempts made
    """

    def __init__(
        self,
        provider: ProviderType,
        name: str,
        attempts: int,
        last_error: ProviderError | None = None,
    ) -> None:
        message = f"All {name} keys and models exhausted after {attempts} attempts"
        if last_error is not None:
            message += f". Last error: {last_error}"
        super().__init__(message, provider, status_code=429)
        self.attempts = attempts
        self.last_error = last_error


class AllProvidersExhaustedError(ProviderError):
    """Terminal router failure: no adapter in the chain produced a result.

    Attributes:
        errors: Provider name -> error raised by that provider, in chain order
        chain_length: Number of adapters in the chain
    """

    def __init__(
        self,
        errors: dict[str, Exception],
        chain_length: int,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = f"All {chain_length} AI providers failed"
            if errors:
                name, error = list(errors.items())[-1]
                message += f". Last error ({name}): {error}"
        super().__init__(message, status_code=503)
        self.errors = errors
        self.chain_length = chain_length


class GenerationTimeoutError(AllProvidersExhaustedError):
    """The caller's deadline expired before any provider succeeded."""

    def __init__(
        self,
        deadline: float,
        errors: dict[str, Exception],
        chain_length: int,
    ) -> None:
        super().__init__(
            errors,
            chain_length,
            message=(
                f"Generation deadline of {deadline:.1f}s exceeded after "
                f"{len(errors)}/{chain_length} providers"
            ),
        )
        self.status_code = 504
        self.deadline = deadline


class ProviderAdapter(ABC):
    """Abstract base class for generation backends.

    Subclasses declare their models and vision policy as class attributes
    and implement ``_complete`` for a single ``(key, model)`` attempt.
    ``generate`` wraps it in the key/model rotation loop.

    Attributes:
        provider_type: The provider type identifier
        name: Display name used in logs
        vision_policy: How image requests are handled
        text_models: Candidate models for text requests, in order
        vision_models: Candidate models for image requests (MODEL_SWAP only)
        rotator: Round-robin cursor over this provider's credentials
    """

    provider_type: ProviderType
    name: str
    vision_policy: VisionPolicy = VisionPolicy.TEXT_ONLY
    text_models: tuple[str, ...] = ()
    vision_models: tuple[str, ...] = ()

    def __init__(
        self,
        keys: Iterable[str] = (),
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> None:
        """Initialize adapter with its credential set.

        Args:
            keys: Credentials in rotation order (may be empty).
            temperature: Sampling temperature.
            max_tokens: Maximum output tokens (None for provider default).
        """
        self.rotator = KeyRotator(keys)
        self.temperature = temperature
        self.max_tokens = max_tokens
        if self.rotator:
            logger.info(f"[{self.name}] Loaded {len(self.rotator)} key(s)")

    @property
    def is_configured(self) -> bool:
        """Whether the adapter holds at least one credential."""
        return bool(self.rotator)

    def models_for(self, request: GenerationRequest) -> tuple[str, ...]:
        """Get the ordered candidate models for a request."""
        if request.has_image and self.vision_policy == VisionPolicy.MODEL_SWAP:
            return self.vision_models
        return self.text_models

    def prepare(self, request: GenerationRequest) -> GenerationRequest:
        """Adapt the request to this adapter's vision policy.

        Text-only adapters drop the image and annotate the prompt so the
        model knows the analysis cannot see the chart.
        """
        if request.has_image and self.vision_policy == VisionPolicy.TEXT_ONLY:
            return request.model_copy(
                update={
                    "prompt": request.prompt + TEXT_ONLY_NOTE.format(name=self.name),
                    "image": None,
                }
            )
        return request

    async def generate(
        self,
        prompt: str,
        system_prompt: str,
        image: str | None = None,
    ) -> str:
        """Generate text, rotating keys and models on rate limits.

        For each candidate model, up to ``N`` attempts are made (``N`` =
        number of keys), each with the next key from the shared cursor.
        A rate limit moves to the next attempt; exhausting ``N`` attempts
        moves to the next model with a fresh budget. Any other error
        aborts the adapter immediately.

        Args:
            prompt: The user prompt.
            system_prompt: The system prompt.
            image: Optional base64 image or data URL.

        Returns:
            str: The generated text (never empty).

        Raises:
            NotConfiguredError: No credentials (raised before any I/O).
            UpstreamError: A non-rate-limit failure on any attempt.
            AllCredentialsExhaustedError: Every key/model combination was rate limited.
        """
        if not self.is_configured:
            raise NotConfiguredError(self.provider_type, self.name)

        request = self.prepare(
            GenerationRequest(prompt=prompt, system_prompt=system_prompt, image=image)
        )
        models = self.models_for(request)
        if not models:
            raise UpstreamError(
                f"No {self.name} model declared for this request",
                self.provider_type,
            )

        budget = len(self.rotator)
        attempts = 0
        last_error: ProviderError | None = None

        for model in models:
            logger.info(f"[{self.name}] Trying model {model}")
            for attempt in range(1, budget + 1):
                key = self.rotator.next_key()
                attempts += 1
                logger.info(
                    f"[{self.name}] Attempt {attempt}/{budget} "
                    f"using key {mask_key(key)} on {model}"
                )
                try:
                    text = await self._complete(key, model, request)
                except RateLimitError as e:
                    logger.warning(
                        f"[{self.name}] Key {mask_key(key)} rate limited on {model}: {e}"
                    )
                    last_error = e
                    continue
                except UpstreamError as e:
                    logger.error(
                        f"[{self.name}] Key {mask_key(key)} failed on {model}: {e}"
                    )
                    raise

                if not text:
                    raise UpstreamError(
                        f"{model} returned empty content",
                        self.provider_type,
                    )
                return text

            logger.warning(f"[{self.name}] All keys rate limited for {model}")

        raise AllCredentialsExhaustedError(
            self.provider_type,
            self.name,
            attempts=attempts,
            last_error=last_error,
        )

    @abstractmethod
    async def _complete(
        self,
        key: str,
        model: str,
        request: GenerationRequest,
    ) -> str:
        """Run one attempt against the backend.

        Args:
            key: Credential to use for this attempt.
            model: Model ID to use.
            request: The prepared request.

        Returns:
            str: Generated text, empty string if the backend yielded none.

        Raises:
            RateLimitError: The key is throttled.
            UpstreamError: Any other failure.
        """

    def describe(self) -> dict[str, Any]:
        """Summary of the adapter for status output (secrets masked)."""
        return {
            "name": self.name,
            "provider": self.provider_type.value,
            "configured": self.is_configured,
            "keys": self.rotator.masked(),
            "vision_policy": self.vision_policy.value,
            "text_models": list(self.text_models),
            "vision_models": list(self.vision_models),
        }

    async def close(self) -> None:
        """Release network resources held by the adapter."""
