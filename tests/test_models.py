"""Tests for src/models.py dataclasses."""

import dataclasses

import pytest

from src.models import AssembledEpisode, DebateResult, ModelResponse, PromptContext, TranscriptTurn, format_duration


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "00:00"), (7.4, "00:07"), (59.6, "01:00"), (765, "12:45"), (3725, "62:05"), (-3, "00:00")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_model_response_optional_token_count():
    r = ModelResponse(provider="ollama", model="mistral", content="Some answer.", latency_sec=0.9, token_count=None)
    assert r.token_count is None


def test_transcript_turn_audio_defaults_to_none():
    turn = TranscriptTurn(speaker_name="Nikola Tesla", utterance_text="Hello.", round_number=1)
    assert turn.audio_ref is None


def test_prompt_context_is_frozen():
    context = PromptContext(system_prompt="You are Tesla.", topic="Energy", round_number=1)
    assert context.prior_turns == ()
    with pytest.raises(dataclasses.FrozenInstanceError):
        context.round_number = 2  # type: ignore[misc]


def test_assembled_episode_duration():
    assert AssembledEpisode(ref="abc_debate.mp3", duration_sec=125.2).duration == "02:05"


def test_debate_result_to_dict():
    result = DebateResult(
        topic="The Future of Humanity",
        run_id="abc",
        transcript=(
            TranscriptTurn("Nikola Tesla", "The future is mine.", 1, "abc_clip_000.wav"),
            TranscriptTurn("Friedrich Nietzsche", "Man must be overcome.", 1, None),
        ),
        podcast_ref="abc_debate.mp3",
        duration="00:09",
        audio_generated=True,
    )
    assert result.to_dict() == {
        "status": "success",
        "transcript": [
            {"speaker": "Nikola Tesla", "text": "The future is mine.", "audioFile": "abc_clip_000.wav"},
            {"speaker": "Friedrich Nietzsche", "text": "Man must be overcome.", "audioFile": ""},
        ],
        "podcast": "abc_debate.mp3",
        "duration": "00:09",
        "audioGenerated": True,
    }


def test_debate_result_without_podcast():
    result = DebateResult(
        topic="t", run_id="abc", transcript=(), podcast_ref=None, duration="00:00", audio_generated=False,
    )
    assert result.to_dict()["podcast"] == ""
