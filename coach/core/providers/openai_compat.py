"""OpenAI-compatible chat/completions providers.

Most backends in the chain (OpenRouter, GitHub Models, Together AI, NVIDIA
NIM, SambaNova, Mistral, DeepSeek, Hugging Face, Groq, Cerebras) expose the
same ``POST {base_url}/chat/completions`` contract. ``OpenAICompatibleProvider``
speaks that wire format over httpx; each subclass only declares its base
URL, models and vision policy.

Examples:
    >>> from coach.core.providers.openai_compat import GroqProvider
    >>> provider = GroqProvider(keys=["gsk_one", "gsk_two"])
    >>> text = await provider.generate("What is an order block?", "You are a coach")

Tests:
    - tests/unit/test_openai_compat.py
"""

import logging
from typing import Any

import httpx

from coach.config import ProviderType
from coach.core.providers.base import (
    GenerationRequest,
    ProviderAdapter,
    RateLimitError,
    UpstreamError,
    VisionPolicy,
)

logger = logging.getLogger(__name__)

__all__ = [
    "CerebrasProvider",
    "DeepSeekProvider",
    "GitHubModelsProvider",
    "GroqProvider",
    "HuggingFaceProvider",
    "MistralProvider",
    "NvidiaProvider",
    "OpenAICompatibleProvider",
    "OpenRouterProvider",
    "SambaNovaProvider",
    "TogetherProvider",
    "to_data_url",
]


def to_data_url(image: str) -> str:
    """Return the image as a data URL, assuming JPEG for bare base64."""
    if image.startswith(("data:", "http://", "https://")):
        return image
    return f"data:image/jpeg;base64,{image}"


class OpenAICompatibleProvider(ProviderAdapter):
    """Adapter for backends implementing the chat/completions API.

    Attributes:
        base_url: API base URL
        image_detail: Optional ``detail`` hint for image parts
        extra_headers: Headers sent with every request
    """

    base_url: str
    image_detail: str | None = None

    def __init__(
        self,
        keys: Any = (),
        temperature: float = 0.7,
        max_tokens: int | None = None,
        timeout: float = 60.0,
        extra_headers: dict[str, str] | None = None,
        base_url: str | None = None,
    ) -> None:
        """Initialize provider.

        Args:
            keys: Credentials in rotation order.
            temperature: Sampling temperature.
            max_tokens: Maximum output tokens.
            timeout: Request timeout in seconds.
            extra_headers: Additional headers for every request.
            base_url: Override of the class base URL.
        """
        super().__init__(keys, temperature=temperature, max_tokens=max_tokens)
        if base_url is not None:
            self.base_url = base_url
        self.timeout = timeout
        self.extra_headers = dict(extra_headers or {})
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get httpx async client (lazy initialization).

        The client is shared across keys; the bearer token is set per request.
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Content-Type": "application/json", **self.extra_headers},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_messages(self, request: GenerationRequest) -> list[dict[str, Any]]:
        """Build the chat messages for a request.

        Image requests send the user turn as a text part plus an
        ``image_url`` part.
        """
        user_content: Any = request.prompt
        if request.has_image:
            image_url: dict[str, str] = {"url": to_data_url(request.image)}
            if self.image_detail:
                image_url["detail"] = self.image_detail
            user_content = [
                {"type": "text", "text": request.prompt},
                {"type": "image_url", "image_url": image_url},
            ]

        return [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": user_content},
        ]

    def build_payload(self, model: str, request: GenerationRequest) -> dict[str, Any]:
        """Build the request body for one attempt."""
        payload: dict[str, Any] = {
            "model": model,
            "messages": self.build_messages(request),
            "temperature": self.temperature,
        }
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        return payload

    def _handle_error(self, response: httpx.Response) -> None:
        """Convert HTTP errors to provider errors.

        Args:
            response: The HTTP response.

        Raises:
            RateLimitError: For 429 errors.
            UpstreamError: For every other error status.
        """
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                self.provider_type,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        try:
            error_data = response.json()
        except ValueError:
            error_data = None

        error = error_data.get("error") if isinstance(error_data, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or response.text
        elif error:
            message = str(error)
        else:
            message = response.text

        if response.status_code in (401, 403):
            message = f"Authentication failed - check API key ({message})"

        raise UpstreamError(
            message=message,
            provider=self.provider_type,
            status_code=response.status_code,
            retryable=response.status_code >= 500,
        )

    def parse_content(self, data: dict[str, Any]) -> str:
        """Extract the generated text from a completion body."""
        choices = data.get("choices") if isinstance(data, dict) else None
        if choices == []:
            return ""
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise UpstreamError(
                f"Malformed completion response: {str(data)[:200]}",
                self.provider_type,
            )
        message = choices[0].get("message") or {}
        if not isinstance(message, dict):
            raise UpstreamError(
                f"Malformed completion message: {str(message)[:200]}",
                self.provider_type,
            )
        content = message.get("content")
        return content if isinstance(content, str) else ""

    async def _complete(
        self,
        key: str,
        model: str,
        request: GenerationRequest,
    ) -> str:
        """Run one chat/completions call with the given key and model."""
        payload = self.build_payload(model, request)

        try:
            response = await self.client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {key}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"[{self.name}] HTTP error: {e}")
            raise UpstreamError(
                message=str(e) or e.__class__.__name__,
                provider=self.provider_type,
                retryable=True,
            ) from e

        if response.status_code != 200:
            self._handle_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Invalid JSON from {self.name}: {response.text[:200]}",
                self.provider_type,
            ) from e

        return self.parse_content(data)


class OpenRouterProvider(OpenAICompatibleProvider):
    """OpenRouter aggregator; its free Gemini route handles images."""

    provider_type = ProviderType.OPENROUTER
    name = "OpenRouter"
    base_url = "https://openrouter.ai/api/v1"
    vision_policy = VisionPolicy.NATIVE
    text_models = ("google/gemini-2.0-flash-exp:free",)

    def __init__(
        self,
        keys: Any = (),
        app_url: str = "https://thetradal.com",
        app_title: str = "The Tradal",
        **kwargs: Any,
    ) -> None:
        headers = {"HTTP-Referer": app_url, "X-Title": app_title}
        headers.update(kwargs.pop("extra_headers", None) or {})
        super().__init__(keys, extra_headers=headers, **kwargs)


class GitHubModelsProvider(OpenAICompatibleProvider):
    """GitHub Models (GPT-4o), high-detail vision."""

    provider_type = ProviderType.GITHUB
    name = "GitHub Models (GPT-4o)"
    base_url = "https://models.inference.ai.azure.com"
    vision_policy = VisionPolicy.NATIVE
    image_detail = "high"
    text_models = ("gpt-4o",)


class TogetherProvider(OpenAICompatibleProvider):
    """Together AI; swaps to a Llama vision model for chart images."""

    provider_type = ProviderType.TOGETHER
    name = "Together AI"
    base_url = "https://api.together.xyz/v1"
    vision_policy = VisionPolicy.MODEL_SWAP
    text_models = ("meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",)
    vision_models = ("meta-llama/Llama-3.2-11B-Vision-Instruct-Turbo",)


class NvidiaProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.NVIDIA
    name = "NVIDIA NIM"
    base_url = "https://integrate.api.nvidia.com/v1"
    vision_policy = VisionPolicy.TEXT_ONLY
    text_models = ("meta/llama-3.1-405b-instruct",)


class SambaNovaProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.SAMBANOVA
    name = "SambaNova (Llama 405B)"
    base_url = "https://api.sambanova.ai/v1"
    vision_policy = VisionPolicy.TEXT_ONLY
    text_models = ("Meta-Llama-3.1-405B-Instruct",)


class MistralProvider(OpenAICompatibleProvider):
    """Mistral Large for text, Pixtral for images."""

    provider_type = ProviderType.MISTRAL
    name = "Mistral AI"
    base_url = "https://api.mistral.ai/v1"
    vision_policy = VisionPolicy.MODEL_SWAP
    text_models = ("mistral-large-latest",)
    vision_models = ("pixtral-12b-2409",)


class DeepSeekProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.DEEPSEEK
    name = "DeepSeek V3"
    base_url = "https://api.deepseek.com"
    vision_policy = VisionPolicy.TEXT_ONLY
    text_models = ("deepseek-chat",)


class HuggingFaceProvider(OpenAICompatibleProvider):
    provider_type = ProviderType.HUGGINGFACE
    name = "Hugging Face (Qwen 72B)"
    base_url = "https://api-inference.huggingface.co/v1"
    vision_policy = VisionPolicy.TEXT_ONLY
    text_models = ("Qwen/Qwen2.5-72B-Instruct",)


class GroqProvider(OpenAICompatibleProvider):
    """Groq with multi-key rotation; Llama 3.2 vision for images."""

    provider_type = ProviderType.GROQ
    name = "Groq"
    base_url = "https://api.groq.com/openai/v1"
    vision_policy = VisionPolicy.MODEL_SWAP
    text_models = ("llama-3.3-70b-versatile",)
    vision_models = ("llama-3.2-90b-vision-preview",)


class CerebrasProvider(OpenAICompatibleProvider):
    """Cerebras with multi-key rotation, text only."""

    provider_type = ProviderType.CEREBRAS
    name = "Cerebras"
    base_url = "https://api.cerebras.ai/v1"
    vision_policy = VisionPolicy.TEXT_ONLY
    text_models = ("llama3.1-70b",)
