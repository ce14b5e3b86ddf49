"""Tests for the multi-provider generation orchestrator."""

from __future__ import annotations

import json

import pytest

from project_generator.generation.config import GenerationOptions
from project_generator.generation.exceptions import (
    GenerationError,
    InvalidInputError,
    NoProviderConfiguredError,
    NoProviderReadyError,
    ProviderNotReadyError,
    UnknownProviderError,
)
from project_generator.generation.orchestrator import (
    NO_PROVIDERS_MESSAGE,
    GenerationOrchestrator,
    create_default_providers,
)
from project_generator.generation.providers.mock import MockProvider, ProviderErrorSimulator
from tests.unit.generation.conftest import RecordingSleep, make_draft

OPTIONS = GenerationOptions(max_retries=2, base_delay_ms=10, max_delay_ms=100)


def configured(*providers: MockProvider) -> GenerationOrchestrator:
    orchestrator = GenerationOrchestrator(providers, default_provider=providers[0].name)
    orchestrator.configure({provider.name: "key" for provider in providers})
    return orchestrator


class TestFallback:
    """Tests for generate_with_fallback()."""

    @pytest.mark.asyncio
    async def test_falls_back_after_permanent_error(self, no_sleep: RecordingSleep) -> None:
        """A permanently failing first provider hands over to the second."""
        failing = ProviderErrorSimulator("invalid_api_key", name="provider1", sleep=no_sleep)
        working = MockProvider(name="provider2", default_response=json.dumps(make_draft()))
        orchestrator = configured(failing, working)

        outcome = await orchestrator.generate_with_fallback("Create a CRM application", OPTIONS)

        assert outcome.success is True
        assert outcome.provider == "provider2"
        assert len(outcome.attempts) == 2
        assert outcome.attempts[0].success is False
        assert outcome.attempts[0].provider == "provider1"
        assert outcome.attempts[1].success is True
        assert outcome.project is not None
        assert outcome.project.generated_by == "provider2"
        assert failing.call_count == 1
        assert outcome.errors[0].startswith("provider1: ")

    @pytest.mark.asyncio
    async def test_first_success_stops_the_run(self) -> None:
        """Later providers are not called once one succeeds."""
        first = MockProvider(name="a")
        second = MockProvider(name="b")
        orchestrator = configured(first, second)

        outcome = await orchestrator.generate_with_fallback("A CRM", OPTIONS)

        assert outcome.provider == "a"
        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].retry_count == 0
        assert second.get_call_count() == 0

    @pytest.mark.asyncio
    async def test_current_provider_goes_first(self) -> None:
        """The selected provider is tried before registry order."""
        first = MockProvider(name="a")
        second = MockProvider(name="b")
        orchestrator = configured(first, second)
        orchestrator.set_provider("b")

        outcome = await orchestrator.generate_with_fallback("A CRM", OPTIONS)

        assert outcome.provider == "b"
        assert first.get_call_count() == 0

    @pytest.mark.asyncio
    async def test_all_providers_fail(self, no_sleep: RecordingSleep) -> None:
        """When every provider fails the summary lists them in order."""
        first = ProviderErrorSimulator("insufficient_quota", name="a", sleep=no_sleep)
        second = ProviderErrorSimulator("timeout", name="b", sleep=no_sleep)
        orchestrator = configured(first, second)

        outcome = await orchestrator.generate_with_fallback("A CRM", OPTIONS)

        assert outcome.success is False
        assert outcome.project is None
        assert outcome.errors[0] == "All AI providers failed. Tried: a, b"
        assert [attempt.provider for attempt in outcome.attempts] == ["a", "b"]
        assert outcome.attempts[1].retry_count == 2
        assert second.call_count == 3
        with pytest.raises(GenerationError, match="All AI providers failed"):
            outcome.raise_for_status()

    @pytest.mark.asyncio
    async def test_unconfigured_providers_are_skipped(self) -> None:
        """Only ready providers are attempted."""
        idle = MockProvider(name="idle")
        ready = MockProvider(name="ready")
        orchestrator = GenerationOrchestrator([idle, ready], default_provider="idle")
        orchestrator.configure({"ready": "key"})

        outcome = await orchestrator.generate_with_fallback("A CRM", OPTIONS)

        assert outcome.provider == "ready"
        assert [attempt.provider for attempt in outcome.attempts] == ["ready"]

    @pytest.mark.asyncio
    async def test_no_ready_providers(self) -> None:
        """Without a ready provider the outcome fails without attempts."""
        orchestrator = GenerationOrchestrator([MockProvider()])

        outcome = await orchestrator.generate_with_fallback("A CRM")

        assert outcome.success is False
        assert outcome.errors == (NO_PROVIDERS_MESSAGE,)
        assert outcome.attempts == ()
        with pytest.raises(NoProviderConfiguredError):
            outcome.raise_for_status()

    @pytest.mark.asyncio
    async def test_invalid_prompt_raises(self) -> None:
        """Invalid prompts fail fast instead of producing an outcome."""
        orchestrator = configured(MockProvider())

        with pytest.raises(InvalidInputError):
            await orchestrator.generate_with_fallback("  ")

    @pytest.mark.asyncio
    async def test_prompt_is_analyzed_once(self) -> None:
        """The orchestrator passes a hierarchical analysis to providers."""
        provider = MockProvider(default_response=json.dumps(make_draft()))
        orchestrator = configured(provider)

        outcome = await orchestrator.generate_with_fallback(
            "Sistema con módulos INTRANET, COMERCIAL y OPERACIONES", OPTIONS
        )

        assert outcome.project is not None
        metadata = outcome.project.hierarchy_metadata
        assert metadata is not None
        assert "INTRANET" in metadata.modules

    @pytest.mark.asyncio
    async def test_outcome_to_dict(self) -> None:
        """to_dict() serializes the project and attempts."""
        orchestrator = configured(MockProvider())

        data = (await orchestrator.generate_with_fallback("A CRM", OPTIONS)).to_dict()

        assert data["success"] is True
        assert data["project"]["name"] == "Sample Project"
        assert data["attempts"][0]["provider"] == "mock"
        json.dumps(data)


class TestProviderSelection:
    """Tests for registry and selection."""

    def test_default_registry(self) -> None:
        """The default providers are registered in fallback order."""
        orchestrator = GenerationOrchestrator(create_default_providers())

        assert list(orchestrator.providers) == ["openai", "gemini", "claude"]
        assert orchestrator.current_provider == "openai"
        assert orchestrator.is_ready() is False

    def test_configure_isolates_failures(self) -> None:
        """A bad key for one provider does not block the others."""
        orchestrator = GenerationOrchestrator(create_default_providers())

        status = orchestrator.configure(
            {"openai": "bad-format", "gemini": "g-key", "claude": None}, default_provider="openai"
        )

        assert status == {"openai": False, "gemini": True, "claude": False}
        assert orchestrator.current_provider == "gemini"

    def test_set_provider_errors(self) -> None:
        """Unknown and unconfigured providers cannot be selected."""
        orchestrator = GenerationOrchestrator([MockProvider(name="a"), MockProvider(name="b")])
        orchestrator.configure({"a": "key"})

        with pytest.raises(UnknownProviderError, match="Unknown provider: zzz"):
            orchestrator.set_provider("zzz")
        with pytest.raises(ProviderNotReadyError):
            orchestrator.set_provider("b")

    def test_active_provider_switches_to_ready_one(self) -> None:
        """get_active_provider() moves off an unready selection."""
        orchestrator = GenerationOrchestrator(
            [MockProvider(name="a"), MockProvider(name="b")], default_provider="a"
        )
        orchestrator.get_provider("b").configure("key")

        assert orchestrator.get_active_provider().name == "b"
        assert orchestrator.current_provider == "b"

    def test_active_provider_requires_a_ready_one(self) -> None:
        """No ready provider raises NoProviderReadyError."""
        with pytest.raises(NoProviderReadyError):
            GenerationOrchestrator([MockProvider()]).get_active_provider()

    def test_provider_status(self) -> None:
        """Status reports readiness, selection and model."""
        orchestrator = configured(MockProvider(name="a"), MockProvider(name="b"))

        status = orchestrator.get_provider_status()

        assert status["a"] == {"ready": True, "current": True, "model": "mock"}
        assert status["b"]["current"] is False

    @pytest.mark.asyncio
    async def test_generate_uses_active_provider(self) -> None:
        """generate() raises on failure and returns the project on success."""
        orchestrator = configured(MockProvider(name="a"))

        project = await orchestrator.generate("A CRM", OPTIONS)

        assert project.generated_by == "a"

    @pytest.mark.asyncio
    async def test_connection_tests(self) -> None:
        """Connections are tested per provider."""
        orchestrator = GenerationOrchestrator([MockProvider(name="a"), MockProvider(name="b")])
        orchestrator.configure({"a": "key"})

        results = await orchestrator.test_all_connections()

        assert results["a"].success is True
        assert results["b"].success is False
        assert (await orchestrator.test_connection("a")).success is True
        with pytest.raises(UnknownProviderError):
            await orchestrator.test_connection("zzz")
