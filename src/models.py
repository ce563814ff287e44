"""Pure dataclasses for the debate podcast pipeline. No logic beyond formatting."""

from dataclasses import dataclass, field


def format_duration(seconds: float) -> str:
    """Render seconds as mm:ss (minutes are not wrapped at 60)."""
    total = int(round(max(seconds, 0.0)))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass(frozen=True)
class Persona:
    id: str
    display_name: str
    system_prompt: str
    voice_id: str
    model_id: str          # "runtime/model" or bare model name


@dataclass
class DebateRequest:
    topic: str
    round_count: int
    participant_ids: list[str]
    generate_audio: bool = True
    historical_texts: list[str] = field(default_factory=list)


@dataclass
class TranscriptTurn:
    speaker_name: str
    utterance_text: str
    round_number: int
    audio_ref: str | None = None


@dataclass(frozen=True)
class PromptContext:
    system_prompt: str
    topic: str
    round_number: int
    prior_turns: tuple[TranscriptTurn, ...] = ()


@dataclass
class ModelResponse:
    provider: str          # runtime name from settings.yaml, e.g. "ollama"
    model: str             # actual model string used
    content: str
    latency_sec: float
    token_count: int | None


@dataclass(frozen=True)
class AssembledEpisode:
    ref: str
    duration_sec: float

    @property
    def duration(self) -> str:
        return format_duration(self.duration_sec)


@dataclass(frozen=True)
class DebateResult:
    topic: str
    run_id: str
    transcript: tuple[TranscriptTurn, ...]
    podcast_ref: str | None
    duration: str
    audio_generated: bool
    status: str = field(default="success")

    def to_dict(self) -> dict:
        """Wire shape returned to the request entry point."""
        return {
            "status": self.status,
            "transcript": [
                {
                    "speaker": turn.speaker_name,
                    "text": turn.utterance_text,
                    "audioFile": turn.audio_ref or "",
                }
                for turn in self.transcript
            ],
            "podcast": self.podcast_ref or "",
            "duration": self.duration,
            "audioGenerated": self.audio_generated,
        }
