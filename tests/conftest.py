"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig, SpeechConfig
from src.artifacts import ArtifactStore
from src.assembly import AudioAssembler
from src.debate import DebateOrchestrator
from src.errors import SynthesisError
from src.generation import TextGenerator
from src.models import ModelResponse, Persona
from src.personas import InMemoryPersonaRepository
from src.providers.base import AIProvider
from src.speech.audio import CANONICAL_RATE, pcm_to_wav
from src.speech.base import SpeechSynthesizer


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="ollama",
        sdk="openai",
        model="mistral",
        timeout_sec=30,
        max_tokens=256,
        base_url="http://localhost:11434/v1",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        rounds=2,
        max_rounds=5,
        artifact_dir=tmp_path / "public",
        output_dir=tmp_path / "output",
        personas_file=tmp_path / "personas.yaml",
        runtime="ollama",
    )


@pytest.fixture
def sample_app_config(sample_defaults_config: DefaultsConfig, sample_model_config: ModelConfig) -> AppConfig:
    return AppConfig(
        defaults=sample_defaults_config,
        models={"ollama": sample_model_config},
        prompts=PromptsConfig(),
        speech=SpeechConfig(),
        available_providers={"ollama"},
    )


@pytest.fixture
def tesla() -> Persona:
    return Persona(
        id="tesla",
        display_name="Nikola Tesla",
        system_prompt="You are Nikola Tesla, inventor and visionary.",
        voice_id="21m00Tcm4TlvDq8ikWAM",
        model_id="mock/mock-model",
    )


@pytest.fixture
def nietzsche() -> Persona:
    return Persona(
        id="nietzsche",
        display_name="Friedrich Nietzsche",
        system_prompt="You are Friedrich Nietzsche, philosopher of the will to power.",
        voice_id="2EiwWnXFnvU5JabPnv8n",
        model_id="mock/mock-model",
    )


@pytest.fixture
def curie() -> Persona:
    return Persona(
        id="curie",
        display_name="Marie Curie",
        system_prompt="You are Marie Curie, physicist and chemist.",
        voice_id="AZnzlk1XvdvUeBnXmlld",
        model_id="mock/mock-model",
    )


@pytest.fixture
def persona_repo(tesla: Persona, nietzsche: Persona, curie: Persona) -> InMemoryPersonaRepository:
    return InMemoryPersonaRepository([tesla, nietzsche, curie])


@pytest.fixture
def store(tmp_path: Path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "public")


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def _complete(self, prompt: str, model: str) -> tuple[str, int | None]:
        return self._response_content, 10

    async def generate(  # type: ignore[override]
        self, prompt: str, round_number: int, model: str | None = None, timeout_sec: float | None = None,
    ) -> ModelResponse:
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(
            provider=self._name,
            model=model or "mock-model",
            content=self._response_content,
            latency_sec=0.1,
            token_count=10,
        )


def numbered_replies(provider_name: str = "mock"):
    """side_effect for MockProvider.generate: 'Utterance 1', 'Utterance 2', ..."""
    counter = {"n": 0}

    async def reply(prompt, round_number, model=None, timeout_sec=None):
        counter["n"] += 1
        return ModelResponse(provider_name, model or "mock-model", f"Utterance {counter['n']}", 0.1, 5)

    return reply


class StubSynthesizer(SpeechSynthesizer):
    """Returns silent canonical WAV clips; fails on the given 0-based call indexes."""

    def __init__(self, fail_on: set[int] | None = None, clip_seconds: float = 1.0, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self._fail_on = fail_on or set()
        self._frames = int(CANONICAL_RATE * clip_seconds)
        self._error = error or SynthesisError("stub voice unavailable")

    def name(self) -> str:
        return "stub"

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        index = len(self.calls)
        self.calls.append((text, voice_id))
        if index in self._fail_on:
            raise self._error
        return pcm_to_wav(b"\x00\x00" * self._frames)

    async def close(self) -> None:
        self.closed = True


class FakeFfmpeg:
    """Stands in for src.speech.audio.run_ffmpeg.

    Records every command, captures concat manifests before they are deleted,
    and writes ``output`` to the last argument when returncode is 0.
    """

    def __init__(self, returncode: int = 0, stderr: str = "", output: bytes = b"\x00\x00" * 480) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.output = output
        self.calls: list[list[str]] = []
        self.manifests: list[str] = []

    async def __call__(self, args: list[str], timeout_sec: float) -> tuple[int, str]:
        self.calls.append(list(args))
        if "-i" in args:
            source = Path(args[args.index("-i") + 1])
            if source.suffix == ".txt" and source.exists():
                self.manifests.append(source.read_text(encoding="utf-8"))
        if self.returncode == 0:
            Path(args[-1]).write_bytes(self.output)
        return self.returncode, self.stderr


@pytest.fixture
def fake_ffmpeg(monkeypatch) -> FakeFfmpeg:
    fake = FakeFfmpeg()
    monkeypatch.setattr("src.speech.audio.run_ffmpeg", fake)
    monkeypatch.setattr("src.assembly.run_ffmpeg", fake)
    return fake


@pytest.fixture
def mock_provider() -> MockProvider:
    provider = MockProvider("mock")
    provider.generate.side_effect = numbered_replies("mock")
    return provider


@pytest.fixture
def make_orchestrator(persona_repo, store, mock_provider):
    """Factory: build an orchestrator around the mock runtime and a temp store."""

    def _make(synthesizer: SpeechSynthesizer | None = None, **kwargs) -> DebateOrchestrator:
        generator = TextGenerator({"mock": mock_provider}, default_runtime="mock")
        assembler = AudioAssembler(store)
        kwargs.setdefault("max_rounds", 5)
        return DebateOrchestrator(persona_repo, generator, store, assembler, synthesizer, **kwargs)

    return _make
