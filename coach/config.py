"""Application configuration with Pydantic Settings.

This module provides centralized configuration management using pydantic-settings.
Settings are loaded from environment variables and .env files.

Every provider reads its credentials from one named entry. Entries holding
several keys use a single comma-separated value, e.g.::

    GROQ_API_KEYS="gsk_one, gsk_two,gsk_three"

Examples:
    >>> from coach.config import get_settings, ProviderType
    >>> settings = get_settings()
    >>> settings.get_keys(ProviderType.GROQ)
    ['gsk_one', 'gsk_two', 'gsk_three']

Tests:
    - tests/unit/test_config.py::TestParseKeys
    - tests/unit/test_config.py::TestSettings
"""

from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported generation backends."""

    OPENROUTER = "openrouter"
    GITHUB = "github"
    TOGETHER = "together"
    NVIDIA = "nvidia"
    SAMBANOVA = "sambanova"
    MISTRAL = "mistral"
    DEEPSEEK = "deepseek"
    HUGGINGFACE = "huggingface"
    GEMINI = "gemini"
    GROQ = "groq"
    CEREBRAS = "cerebras"


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


# Priority chain: aggregator first, then vision-capable vendors,
# then large text-only models, then the multi-key free tiers.
DEFAULT_PROVIDER_CHAIN: tuple[ProviderType, ...] = (
    ProviderType.OPENROUTER,
    ProviderType.GITHUB,
    ProviderType.TOGETHER,
    ProviderType.NVIDIA,
    ProviderType.SAMBANOVA,
    ProviderType.MISTRAL,
    ProviderType.DEEPSEEK,
    ProviderType.HUGGINGFACE,
    ProviderType.GEMINI,
    ProviderType.GROQ,
    ProviderType.CEREBRAS,
)

# Settings field holding each provider's credentials
CREDENTIAL_FIELDS: dict[ProviderType, str] = {
    ProviderType.OPENROUTER: "OPENROUTER_API_KEY",
    ProviderType.GITHUB: "GITHUB_MODELS_TOKEN",
    ProviderType.TOGETHER: "TOGETHER_API_KEY",
    ProviderType.NVIDIA: "NVIDIA_API_KEY",
    ProviderType.SAMBANOVA: "SAMBANOVA_API_KEY",
    ProviderType.MISTRAL: "MISTRAL_API_KEY",
    ProviderType.DEEPSEEK: "DEEPSEEK_API_KEY",
    ProviderType.HUGGINGFACE: "HUGGINGFACE_API_KEY",
    ProviderType.GEMINI: "GEMINI_API_KEYS",
    ProviderType.GROQ: "GROQ_API_KEYS",
    ProviderType.CEREBRAS: "CEREBRAS_API_KEYS",
}


def parse_keys(value: str | None) -> list[str]:
    """Split a comma-separated credential value.

    Whitespace around each entry is trimmed and empty entries are dropped.
    Order is preserved.

    Args:
        value: Raw configuration value (may be None).

    Returns:
        list[str]: The credential set, possibly empty.

    Examples:
        >>> parse_keys(" a , b ,c ")
        ['a', 'b', 'c']
        >>> parse_keys("a,,b,")
        ['a', 'b']
    """
    if not value:
        return []
    return [key.strip() for key in value.split(",") if key.strip()]


def parse_provider_chain(value: str) -> tuple[ProviderType, ...]:
    """Parse a comma-separated list of provider names into a chain.

    Raises:
        ValueError: If a name is unknown or listed twice.
    """
    chain: list[ProviderType] = []
    for name in parse_keys(value):
        try:
            provider = ProviderType(name.lower())
        except ValueError:
            valid = ", ".join(p.value for p in ProviderType)
            raise ValueError(f"Unknown provider '{name}'. Valid: {valid}") from None
        if provider in chain:
            raise ValueError(f"Provider '{name}' listed more than once")
        chain.append(provider)
    if not chain:
        raise ValueError("PROVIDER_CHAIN must name at least one provider")
    return tuple(chain)


class Settings(BaseSettings):
    """Application settings with provider credentials.

    Settings are loaded from environment variables and .env file.
    No credential is mandatory: a provider without credentials is simply
    skipped by the router.

    Attributes:
        OPENROUTER_API_KEY: OpenRouter aggregator key
        GITHUB_MODELS_TOKEN: GitHub Models token (GPT-4o)
        GEMINI_API_KEYS: Comma-separated Gemini keys
        GEMINI_API_KEY: Legacy single Gemini key
        GROQ_API_KEYS: Comma-separated Groq keys
        CEREBRAS_API_KEYS: Comma-separated Cerebras keys
        REQUEST_TIMEOUT: Timeout for one upstream HTTP call
        GENERATION_DEADLINE: Overall deadline for one routed generation
        PROVIDER_CHAIN: Optional priority order override
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Provider credentials
    OPENROUTER_API_KEY: str | None = Field(default=None, description="OpenRouter API key")
    GITHUB_MODELS_TOKEN: str | None = Field(default=None, description="GitHub Models token")
    TOGETHER_API_KEY: str | None = Field(default=None, description="Together AI API key")
    NVIDIA_API_KEY: str | None = Field(default=None, description="NVIDIA NIM API key")
    SAMBANOVA_API_KEY: str | None = Field(default=None, description="SambaNova API key")
    MISTRAL_API_KEY: str | None = Field(default=None, description="Mistral AI API key")
    DEEPSEEK_API_KEY: str | None = Field(default=None, description="DeepSeek API key")
    HUGGINGFACE_API_KEY: str | None = Field(default=None, description="Hugging Face token")
    GEMINI_API_KEYS: str | None = Field(
        default=None,
        description="Comma-separated Google Gemini API keys",
    )
    GEMINI_API_KEY: str | None = Field(
        default=None,
        description="Single Gemini key, used when GEMINI_API_KEYS is empty",
    )
    GROQ_API_KEYS: str | None = Field(default=None, description="Comma-separated Groq keys")
    CEREBRAS_API_KEYS: str | None = Field(
        default=None,
        description="Comma-separated Cerebras keys",
    )

    # Routing
    PROVIDER_CHAIN: str | None = Field(
        default=None,
        description="Comma-separated provider priority order (default: built-in chain)",
    )
    REQUEST_TIMEOUT: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single upstream call in seconds",
    )
    GENERATION_DEADLINE: float | None = Field(
        default=None,
        gt=0,
        description="Overall deadline for one routed generation in seconds",
    )
    TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0)
    MAX_TOKENS: int = Field(default=4096, ge=1)

    # Attribution headers sent to the aggregator
    APP_URL: str = Field(default="https://thetradal.com")
    APP_TITLE: str = Field(default="The Tradal")

    # Application Settings
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    DEBUG: bool = Field(default=True, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    @field_validator("PROVIDER_CHAIN")
    @classmethod
    def validate_provider_chain(cls, v: str | None) -> str | None:
        """Reject unknown or duplicate provider names early."""
        if v is not None and v.strip():
            parse_provider_chain(v)
            return v
        return None

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    def get_keys(self, provider: ProviderType) -> list[str]:
        """Get the credential set for a provider.

        Args:
            provider: The provider to get keys for.

        Returns:
            list[str]: Parsed credentials, empty if none configured.
        """
        keys = parse_keys(getattr(self, CREDENTIAL_FIELDS[provider]))
        if provider == ProviderType.GEMINI and not keys and self.GEMINI_API_KEY:
            single = self.GEMINI_API_KEY.strip()
            keys = [single] if single else []
        return keys

    def has_provider(self, provider: ProviderType) -> bool:
        """Check if a specific provider has at least one credential."""
        return bool(self.get_keys(provider))

    def get_provider_chain(self) -> tuple[ProviderType, ...]:
        """Get the provider priority order.

        Returns:
            tuple[ProviderType, ...]: Configured override or the default chain.
        """
        if self.PROVIDER_CHAIN:
            return parse_provider_chain(self.PROVIDER_CHAIN)
        return DEFAULT_PROVIDER_CHAIN

    def get_generation_params(self) -> dict[str, Any]:
        """Sampling parameters shared by every adapter."""
        return {
            "temperature": self.TEMPERATURE,
            "max_tokens": self.MAX_TOKENS,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.
    """
    return Settings()
