"""Google Gen AI SDK provider implementation.

This module provides integration with Google's Gemini models via the Gen AI
SDK. Free-tier Gemini quotas are per key and per model, so the provider
rotates through every configured key on a model before stepping down to
the next model in ``text_models``.

Examples:
    >>> from coach.core.providers.google import GeminiProvider
    >>> provider = GeminiProvider(keys=["AIza...1", "AIza...2"])
    >>> text = await provider.generate(
    ...     prompt="Where is the liquidity on this chart?",
    ...     system_prompt="You are a trading analyst",
    ...     image="data:image/png;base64,iVBOR...",
    ... )

Tests:
    - tests/unit/test_google.py
"""

import base64
import binascii
import logging
import re
from typing import Any

from google import genai
from google.genai import types

from coach.config import ProviderType
from coach.core.providers.base import (
    GenerationRequest,
    ProviderAdapter,
    RateLimitError,
    UpstreamError,
    VisionPolicy,
)

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(image/[\w.+-]+);base64,")
DEFAULT_IMAGE_MIME = "image/jpeg"

RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "quota", "rate limit")


def split_data_url(image: str) -> tuple[bytes, str]:
    """Decode a base64 image, stripping a data URL prefix if present.

    Args:
        image: Bare base64 or ``data:image/...;base64,`` URL.

    Returns:
        tuple[bytes, str]: Raw image bytes and MIME type.

    Raises:
        ValueError: If the payload is not valid base64.
    """
    mime_type = DEFAULT_IMAGE_MIME
    match = DATA_URL_PATTERN.match(image)
    if match:
        mime_type = match.group(1)
        image = image[match.end():]
    try:
        return base64.b64decode(image, validate=True), mime_type
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e


class GeminiProvider(ProviderAdapter):
    """Google Gen AI SDK provider for Gemini models.

    Attributes:
        provider_type: ProviderType.GEMINI
        text_models: Model cascade, newest first; each has a separate quota

    Examples:
        >>> provider = GeminiProvider(keys=["AIza..."])
        >>> await provider.generate("Explain FVGs", "You are a coach")
    """

    provider_type = ProviderType.GEMINI
    name = "Gemini"
    vision_policy = VisionPolicy.NATIVE
    text_models = (
        "gemini-2.5-flash",
        "gemini-2.0-flash-exp",
        "gemini-1.5-flash",
        "gemini-1.5-flash-002",
        "gemini-1.5-pro",
        "gemini-1.5-flash-8b",
        "gemini-pro",
    )

    def __init__(self, keys: Any = (), **kwargs: Any) -> None:
        super().__init__(keys, **kwargs)
        self._clients: dict[str, Any] = {}

    def client_for(self, key: str) -> Any:
        """Get the Gen AI client for a key (created once per key)."""
        if key not in self._clients:
            self._clients[key] = genai.Client(api_key=key)
        return self._clients[key]

    async def close(self) -> None:
        """Close every cached SDK client."""
        clients, self._clients = self._clients, {}
        for client in clients.values():
            await client.aio.aclose()

    def _handle_error(self, error: Exception) -> None:
        """Convert Google API errors to provider errors.

        Args:
            error: The original exception.

        Raises:
            RateLimitError: For 429 / RESOURCE_EXHAUSTED / quota errors.
            UpstreamError: For everything else.
        """
        code = getattr(error, "code", None)
        error_str = str(error).lower()

        if code == 429 or any(marker in error_str for marker in RATE_LIMIT_MARKERS):
            raise RateLimitError(self.provider_type, message=str(error)) from error

        raise UpstreamError(
            message=str(error) or error.__class__.__name__,
            provider=self.provider_type,
            status_code=code if isinstance(code, int) else None,
            retryable=isinstance(code, int) and code >= 500,
        ) from error

    def build_contents(self, request: GenerationRequest) -> list[Any]:
        """Build the content parts: system+user text, then the image if any."""
        parts = [
            types.Part.from_text(
                text=f"{request.system_prompt}\n\nUSER PROMPT:\n{request.prompt}"
            )
        ]
        if request.has_image:
            try:
                data, mime_type = split_data_url(request.image)
            except ValueError as e:
                raise UpstreamError(str(e), self.provider_type) from e
            parts.append(types.Part.from_bytes(data=data, mime_type=mime_type))
        return parts

    async def _complete(
        self,
        key: str,
        model: str,
        request: GenerationRequest,
    ) -> str:
        """Run one generate_content call with the given key and model."""
        contents = self.build_contents(request)

        config_params: dict[str, Any] = {"temperature": self.temperature}
        if self.max_tokens:
            config_params["max_output_tokens"] = self.max_tokens

        try:
            response = await self.client_for(key).aio.models.generate_content(
                model=model,
                contents=contents,
                config=types.GenerateContentConfig(**config_params),
            )
        except Exception as e:
            self._handle_error(e)
            raise  # Should not reach here due to _handle_error raising

        return response.text or ""
