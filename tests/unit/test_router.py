"""Unit tests for the generation router.

Tests for coach/core/router.py - ordered fallback, terminal errors,
deadlines and status reporting. No network: adapters are scripted.

Run with:
    pytest tests/unit/test_router.py -v
"""

import pytest

from coach.config import DEFAULT_PROVIDER_CHAIN, ProviderType, Settings
from coach.core.providers import (
    AllCredentialsExhaustedError,
    AllProvidersExhaustedError,
    GenerationTimeoutError,
    NotConfiguredError,
    UpstreamError,
)
from coach.core.router import GenerationRouter, ProviderStatus, build_router
from coach.prompts.coach import NO_CONTEXT
from tests.utils.fakes import rate_limited, upstream


@pytest.mark.fast
class TestRouterFallback:
    """Tests for ordered provider fallback."""

    @pytest.mark.asyncio
    async def test_first_success_short_circuits(self, scripted_provider):
        """Test adapters after the first success are never called."""
        first = scripted_provider("First", outcomes=["from first"])
        second = scripted_provider("Second")
        third = scripted_provider("Third")
        router = GenerationRouter([first, second, third])

        assert await router.generate("hi") == "from first"
        assert [p.generate_calls for p in (first, second, third)] == [1, 0, 0]

    @pytest.mark.asyncio
    async def test_success_in_middle_of_chain(self, scripted_provider):
        """Test earlier adapters are called once and later ones not at all."""
        first = scripted_provider("First", outcomes=[upstream()])
        second = scripted_provider("Second", outcomes=[upstream()])
        third = scripted_provider("Third", outcomes=["from third"])
        fourth = scripted_provider("Fourth")
        router = GenerationRouter([first, second, third, fourth])

        assert await router.generate("hi") == "from third"
        assert [p.generate_calls for p in (first, second, third, fourth)] == [1, 1, 1, 0]

    @pytest.mark.asyncio
    async def test_unconfigured_then_key_rotation(self, scripted_provider):
        """Test an unconfigured adapter is skipped and the next rotates keys."""
        missing = scripted_provider("X", keys=())
        rotating = scripted_provider(
            "Y",
            keys=("key-yyyy1", "key-yyyy2"),
            outcomes=[rate_limited(), "from Y"],
        )
        router = GenerationRouter([missing, rotating])

        assert await router.generate("hi") == "from Y"
        assert missing.generate_calls == 1
        assert missing.attempts == []
        assert len(rotating.attempts) == 2

    @pytest.mark.asyncio
    async def test_upstream_error_falls_through(self, scripted_provider):
        """Test an immediate upstream error moves to the next adapter."""
        failing = scripted_provider("A", outcomes=[upstream("server error")])
        working = scripted_provider("B", outcomes=["from B"])
        router = GenerationRouter([failing, working])

        assert await router.generate("hi") == "from B"
        assert failing.generate_calls + working.generate_calls == 2

    @pytest.mark.asyncio
    async def test_empty_content_falls_through(self, scripted_provider):
        """Test an empty completion is not returned to the caller."""
        empty = scripted_provider("Empty", outcomes=[""])
        working = scripted_provider("Working", outcomes=["real answer"])
        router = GenerationRouter([empty, working])

        assert await router.generate("hi") == "real answer"

    @pytest.mark.asyncio
    async def test_unexpected_exception_falls_through(self, scripted_provider):
        """Test an unexpected adapter bug does not stop the chain."""
        broken = scripted_provider("Broken", outcomes=[KeyError("choices")])
        working = scripted_provider("Working", outcomes=["ok"])
        router = GenerationRouter([broken, working])

        assert await router.generate("hi") == "ok"


@pytest.mark.fast
class TestRouterExhaustion:
    """Tests for the terminal failure path."""

    @pytest.mark.asyncio
    async def test_all_exhausted_invokes_each_once(self, scripted_provider):
        """Test every adapter is invoked exactly once before giving up."""
        a = scripted_provider(
            "A",
            keys=("key-aaaa1", "key-aaaa2"),
            models=["m1", "m2"],
            outcomes=[rate_limited() for _ in range(4)],
        )
        b = scripted_provider("B", outcomes=[rate_limited()])
        router = GenerationRouter([a, b])

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await router.generate("hi")

        assert a.generate_calls == 1
        assert b.generate_calls == 1
        assert len(a.attempts) == 4
        assert exc_info.value.chain_length == 2
        assert list(exc_info.value.errors) == ["A", "B"]
        assert all(
            isinstance(e, AllCredentialsExhaustedError)
            for e in exc_info.value.errors.values()
        )

    @pytest.mark.asyncio
    async def test_mixed_failures_recorded_in_order(self, scripted_provider):
        """Test each adapter's failure is kept under its name."""
        router = GenerationRouter([
            scripted_provider("None", keys=()),
            scripted_provider("Bad", outcomes=[upstream("bad request", 400)]),
        ])

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await router.generate("hi")

        errors = exc_info.value.errors
        assert isinstance(errors["None"], NotConfiguredError)
        assert isinstance(errors["Bad"], UpstreamError)
        assert exc_info.value.status_code == 503
        assert "All 2 AI providers failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_chain(self):
        """Test an empty chain fails immediately."""
        router = GenerationRouter([])
        with pytest.raises(AllProvidersExhaustedError):
            await router.generate("hi")

    @pytest.mark.asyncio
    async def test_router_from_empty_settings(self, empty_settings):
        """Test a router without credentials fails without network calls."""
        router = build_router(empty_settings)

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await router.generate("hi")

        assert exc_info.value.chain_length == len(DEFAULT_PROVIDER_CHAIN)
        assert all(
            isinstance(e, NotConfiguredError) for e in exc_info.value.errors.values()
        )
        await router.close()


@pytest.mark.fast
class TestRouterDeadline:
    """Tests for the overall generation deadline."""

    @pytest.mark.asyncio
    async def test_deadline_expires(self, scripted_provider):
        """Test a slow adapter triggers GenerationTimeoutError."""
        slow = scripted_provider("Slow", delay=5.0)
        later = scripted_provider("Later")
        router = GenerationRouter([slow, later])

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await router.generate("hi", deadline=0.05)

        assert later.generate_calls == 0
        assert exc_info.value.status_code == 504
        assert isinstance(exc_info.value, AllProvidersExhaustedError)

    @pytest.mark.asyncio
    async def test_timeout_reports_failures_so_far(self, scripted_provider):
        """Test failures before the timeout are kept on the error."""
        router = GenerationRouter([
            scripted_provider("Fast fail", outcomes=[upstream()]),
            scripted_provider("Slow", delay=5.0),
        ])

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await router.generate("hi", deadline=0.05)

        assert list(exc_info.value.errors) == ["Fast fail"]
        assert "1/2 providers" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_default_deadline_from_router(self, scripted_provider):
        """Test the router-level deadline applies when none is passed."""
        router = GenerationRouter([scripted_provider("Slow", delay=5.0)], deadline=0.05)
        with pytest.raises(GenerationTimeoutError):
            await router.generate("hi")

    @pytest.mark.asyncio
    async def test_fast_success_within_deadline(self, scripted_provider):
        """Test a result within the deadline is returned normally."""
        router = GenerationRouter([scripted_provider("Fast", outcomes=["quick"])])
        assert await router.generate("hi", deadline=5.0) == "quick"


@pytest.mark.fast
class TestRouterPrompt:
    """Tests for system prompt construction."""

    @pytest.mark.asyncio
    async def test_context_in_system_prompt(self, scripted_provider):
        """Test caller context is serialized into the system prompt."""
        provider = scripted_provider("P")
        router = GenerationRouter([provider])

        await router.generate("hi", context={"pair": "XAUUSD", "pnl": -12.5})

        system_prompt = provider.requests[0].system_prompt
        assert '"pair": "XAUUSD"' in system_prompt
        assert "Tradal Buddy" in system_prompt

    @pytest.mark.asyncio
    async def test_missing_context_sentinel(self, scripted_provider):
        """Test the no-context sentinel is used without context."""
        provider = scripted_provider("P")
        await GenerationRouter([provider]).generate("hi")
        assert NO_CONTEXT in provider.requests[0].system_prompt

    def test_custom_template(self):
        """Test a custom persona template is honored."""
        router = GenerationRouter([], system_template="ctx={context}")
        assert router.build_system_prompt("abc") == "ctx=abc"

    @pytest.mark.asyncio
    async def test_image_passed_to_adapter(self, scripted_provider):
        """Test the image reaches a vision-capable adapter unchanged."""
        from coach.core.providers import VisionPolicy

        provider = scripted_provider("V", vision_policy=VisionPolicy.NATIVE)
        await GenerationRouter([provider]).generate("chart?", image="aGVsbG8=")
        assert provider.requests[0].image == "aGVsbG8="


@pytest.mark.fast
class TestRouterStatus:
    """Tests for status reporting and lifecycle."""

    def test_status_positions_and_masking(self, multi_key_settings):
        """Test status lists the chain in order with masked keys."""
        router = build_router(multi_key_settings)
        status = router.status()

        assert len(status) == len(DEFAULT_PROVIDER_CHAIN)
        assert all(isinstance(s, ProviderStatus) for s in status)
        assert [s.position for s in status] == list(range(1, len(status) + 1))
        assert status[0].provider == ProviderType.OPENROUTER.value

        groq = next(s for s in status if s.provider == ProviderType.GROQ.value)
        assert groq.configured is True
        assert groq.keys == ["...11111", "...22222", "...33333"]
        assert "gsk_111111111" not in str(status)

    def test_build_router_uses_chain_override(self):
        """Test PROVIDER_CHAIN controls the router order."""
        settings = Settings(_env_file=None, PROVIDER_CHAIN="groq,gemini")
        router = build_router(settings)
        assert [p.provider_type for p in router.providers] == [
            ProviderType.GROQ,
            ProviderType.GEMINI,
        ]

    def test_build_router_deadline(self, multi_key_settings):
        """Test the configured deadline becomes the router default."""
        assert build_router(multi_key_settings).deadline == 30.0

    @pytest.mark.asyncio
    async def test_close_closes_every_adapter(self, scripted_provider):
        """Test close() reaches each adapter."""
        providers = [scripted_provider("A"), scripted_provider("B")]
        await GenerationRouter(providers).close()
        assert all(p.closed for p in providers)
