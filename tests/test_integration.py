"""Integration tests: real runtimes, real speech backend, real ffmpeg. No mocks.

Needs a reachable Ollama server (or another configured runtime), ELEVENLABS_API_KEY
and ffmpeg on PATH.
"""

import os
import shutil
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

_missing = []
if not os.environ.get("ELEVENLABS_API_KEY", "").strip():
    _missing.append("ELEVENLABS_API_KEY")
if shutil.which("ffmpeg") is None:
    _missing.append("ffmpeg")
if not os.environ.get("RUN_INTEGRATION", "").strip():
    _missing.append("RUN_INTEGRATION=1")

if _missing:
    pytestmark = pytest.mark.skip(reason=f"Missing: {', '.join(_missing)}")


async def test_full_debate_pipeline(tmp_path: Path):
    """Run a real 1-round, 2-persona debate with audio and verify the episode."""
    from config.config_loader import load_config
    from src.cli import _build_all_providers
    from src.output import save_transcript
    from src.personas import YamlPersonaRepository
    from src.service import build_orchestrator, create_debate
    from src.speech.factory import build_synthesizer

    config = load_config()
    config.defaults.artifact_dir = tmp_path / "public"
    providers = _build_all_providers(config)
    assert providers, "No text runtime available"

    personas = YamlPersonaRepository(config.defaults.personas_file).snapshot()
    synthesizer = build_synthesizer(config.speech)
    try:
        orchestrator = build_orchestrator(config, personas, providers, synthesizer, seed=1)
        envelope = await create_debate(
            {"topic": "The Future of Humanity", "rounds": 1, "participants": ["tesla", "nietzsche"]},
            orchestrator,
            timeout_sec=600,
        )
    finally:
        await synthesizer.close()

    assert envelope["status"] == "success", envelope
    data = envelope["data"]
    assert len(data["transcript"]) == 2
    for turn in data["transcript"]:
        assert turn["text"].strip(), f"Empty utterance from {turn['speaker']}"
    assert data["podcast"], "Episode was not assembled"
    episode = config.defaults.artifact_dir / data["podcast"]
    assert episode.stat().st_size > 1000
    assert data["duration"] != "00:00"

    saved = save_transcript("The Future of Humanity", data, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "# Debate: The Future of Humanity" in content
    assert "**Participants:**" in content
