"""Unit tests for src/healthcheck.py: no real API calls."""

import asyncio
from unittest.mock import AsyncMock

from src.generation import TextGenerator
from src.healthcheck import run_health_checks
from src.models import ModelResponse, Persona
from src.providers.base import ProviderError

from tests.conftest import MockProvider


def _ok_response(name: str) -> ModelResponse:
    return ModelResponse(provider=name, model="mock-model", content="OK", latency_sec=0.1, token_count=1)


def _persona(persona_id: str, model_id: str) -> Persona:
    return Persona(persona_id, persona_id.title(), "You are a test persona.", "Enif", model_id)


async def test_all_models_pass():
    """All models answer -> all marked ok, no errors."""
    ollama = MockProvider("ollama")
    ollama.generate = AsyncMock(return_value=_ok_response("ollama"))
    generator = TextGenerator({"ollama": ollama}, default_runtime="ollama")

    results = await run_health_checks(
        generator, [_persona("tesla", "ollama/mistral"), _persona("curie", "ollama/qwen3:8b")]
    )

    assert results == {"ollama/mistral": (True, ""), "ollama/qwen3:8b": (True, "")}
    pinged = {call.kwargs["model"] for call in ollama.generate.call_args_list}
    assert pinged == {"mistral", "qwen3:8b"}


async def test_shared_model_pinged_once():
    ollama = MockProvider("ollama")
    generator = TextGenerator({"ollama": ollama}, default_runtime="ollama")
    await run_health_checks(generator, [_persona("tesla", "mistral"), _persona("curie", "mistral")])
    assert ollama.generate.call_count == 1


async def test_one_model_fails():
    """A runtime that raises returns ok=False with the error message."""
    ollama = MockProvider("ollama")
    claude = MockProvider("claude")
    claude.generate = AsyncMock(side_effect=ProviderError("claude", "403 Forbidden"))
    generator = TextGenerator({"ollama": ollama, "claude": claude}, default_runtime="ollama")

    results = await run_health_checks(
        generator, [_persona("tesla", "ollama/mistral"), _persona("curie", "claude/claude-3-5-haiku-latest")]
    )

    assert results["ollama/mistral"] == (True, "")
    ok, err = results["claude/claude-3-5-haiku-latest"]
    assert ok is False
    assert "403" in err


async def test_unavailable_runtime_fails_without_call():
    ollama = MockProvider("ollama")
    generator = TextGenerator({"ollama": ollama}, default_runtime="ollama")

    results = await run_health_checks(generator, [_persona("tesla", "openai/gpt-4o-mini")])

    ok, err = results["openai/gpt-4o-mini"]
    assert ok is False
    assert "'openai' is not available" in err
    ollama.generate.assert_not_called()


async def test_empty_personas():
    """No personas returns empty results."""
    results = await run_health_checks(TextGenerator({}, default_runtime="ollama"), [])
    assert results == {}


async def test_timeout_counts_as_failure():
    """A runtime that hangs past the timeout is marked as failed."""
    slow = MockProvider("slow")

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    slow.generate = AsyncMock(side_effect=hang)
    generator = TextGenerator({"slow": slow}, default_runtime="slow")

    # Patch the timeout to 0.05s so the test runs fast
    import src.healthcheck as hc
    original = hc._TIMEOUT_SEC
    hc._TIMEOUT_SEC = 0.05
    try:
        results = await run_health_checks(generator, [_persona("tesla", "slow/model")])
    finally:
        hc._TIMEOUT_SEC = original

    ok, err = results["slow/model"]
    assert ok is False
    assert err == "TimeoutError"
