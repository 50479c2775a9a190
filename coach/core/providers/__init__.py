"""Provider adapter abstraction and implementations.

Re-exports base classes and provider implementations for convenient imports,
and builds the configured priority chain from settings.
"""

import logging
from collections.abc import Sequence

from coach.config import ProviderType, Settings

# Base classes (import from base module)
from coach.core.providers.base import (
    AllCredentialsExhaustedError,
    AllProvidersExhaustedError,
    GenerationRequest,
    GenerationTimeoutError,
    NotConfiguredError,
    ProviderAdapter,
    ProviderError,
    RateLimitError,
    UpstreamError,
    VisionPolicy,
)
from coach.core.providers.google import GeminiProvider
from coach.core.providers.keys import KeyRotator, mask_key
from coach.core.providers.openai_compat import (
    CerebrasProvider,
    DeepSeekProvider,
    GitHubModelsProvider,
    GroqProvider,
    HuggingFaceProvider,
    MistralProvider,
    NvidiaProvider,
    OpenAICompatibleProvider,
    OpenRouterProvider,
    SambaNovaProvider,
    TogetherProvider,
)

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[ProviderType, type[ProviderAdapter]] = {
    ProviderType.OPENROUTER: OpenRouterProvider,
    ProviderType.GITHUB: GitHubModelsProvider,
    ProviderType.TOGETHER: TogetherProvider,
    ProviderType.NVIDIA: NvidiaProvider,
    ProviderType.SAMBANOVA: SambaNovaProvider,
    ProviderType.MISTRAL: MistralProvider,
    ProviderType.DEEPSEEK: DeepSeekProvider,
    ProviderType.HUGGINGFACE: HuggingFaceProvider,
    ProviderType.GEMINI: GeminiProvider,
    ProviderType.GROQ: GroqProvider,
    ProviderType.CEREBRAS: CerebrasProvider,
}


def build_providers(
    settings: Settings,
    chain: Sequence[ProviderType] | None = None,
) -> list[ProviderAdapter]:
    """Construct adapters in priority order from settings.

    Providers without credentials are still constructed; they fail fast
    with ``NotConfiguredError`` when the router reaches them.

    Args:
        settings: Application settings with credentials.
        chain: Priority order (default: ``settings.get_provider_chain()``).

    Returns:
        list[ProviderAdapter]: One adapter per chain entry.
    """
    chain = tuple(chain) if chain is not None else settings.get_provider_chain()
    params = settings.get_generation_params()
    providers: list[ProviderAdapter] = []

    for provider_type in chain:
        cls = PROVIDER_CLASSES[provider_type]
        kwargs = dict(params)
        if issubclass(cls, OpenAICompatibleProvider):
            kwargs["timeout"] = settings.REQUEST_TIMEOUT
        if cls is OpenRouterProvider:
            kwargs["app_url"] = settings.APP_URL
            kwargs["app_title"] = settings.APP_TITLE
        providers.append(cls(settings.get_keys(provider_type), **kwargs))

    configured = [p.name for p in providers if p.is_configured]
    logger.info(
        f"Built provider chain of {len(providers)} "
        f"({len(configured)} configured: {', '.join(configured) or 'none'})"
    )
    return providers


__all__ = [
    # Base classes
    "AllCredentialsExhaustedError",
    "AllProvidersExhaustedError",
    "GenerationRequest",
    "GenerationTimeoutError",
    "KeyRotator",
    "NotConfiguredError",
    "ProviderAdapter",
    "ProviderError",
    "ProviderType",
    "RateLimitError",
    "UpstreamError",
    "VisionPolicy",
    "mask_key",
    # Implementations
    "CerebrasProvider",
    "DeepSeekProvider",
    "GeminiProvider",
    "GitHubModelsProvider",
    "GroqProvider",
    "HuggingFaceProvider",
    "MistralProvider",
    "NvidiaProvider",
    "OpenAICompatibleProvider",
    "OpenRouterProvider",
    "SambaNovaProvider",
    "TogetherProvider",
    # Factory
    "PROVIDER_CLASSES",
    "build_providers",
]
