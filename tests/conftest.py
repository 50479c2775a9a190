"""
Pytest configuration and fixtures for Tradal Coach tests.

Provider credentials are stripped from the environment so every test
starts from a known configuration; no test talks to a real upstream.
"""
import logging

import pytest

from coach.config import CREDENTIAL_FIELDS, Settings, get_settings
from tests.utils.fakes import ScriptedProvider

logger = logging.getLogger(__name__)

ENV_VARS = (
    *CREDENTIAL_FIELDS.values(),
    "GEMINI_API_KEY",
    "PROVIDER_CHAIN",
    "GENERATION_DEADLINE",
    "REQUEST_TIMEOUT",
    "LOG_LEVEL",
    "DEBUG",
    "ENVIRONMENT",
)


# ============================================
# Test Fixtures
# ============================================

@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Remove provider configuration from the environment.

    Also moves into an empty directory so no stray .env file is read.
    """
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def empty_settings() -> Settings:
    """Settings with no credentials at all."""
    return Settings(_env_file=None)


@pytest.fixture
def multi_key_settings() -> Settings:
    """Settings with a mix of single-key and multi-key providers."""
    return Settings(
        _env_file=None,
        OPENROUTER_API_KEY="sk-or-v1-aaaaaaaaaaaa",
        GROQ_API_KEYS=" gsk_111111111 , gsk_222222222,gsk_333333333, ",
        GEMINI_API_KEY="AIzaSingleLegacyKey",
        GENERATION_DEADLINE=30.0,
    )


@pytest.fixture
def scripted_provider():
    """Factory for scripted providers."""
    def factory(name: str = "Scripted", **kwargs) -> ScriptedProvider:
        return ScriptedProvider(name=name, **kwargs)

    return factory


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no external API calls)"
    )
