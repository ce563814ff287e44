"""Request entry points: schema validation and result envelopes.

Everything a caller (CLI, web handler) gets back is either
{"status": "success", ...} or {"status": "error", "message": ...}.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from config.config_loader import AppConfig
from src.artifacts import ArtifactStore
from src.assembly import AudioAssembler
from src.debate import DebateOrchestrator
from src.errors import GenerationError, PersonaExistsError, ValidationError
from src.generation import TextGenerator
from src.models import DebateRequest, Persona, TranscriptTurn
from src.personas import PersonaReader, PersonaRepository, slugify_persona_id
from src.providers.base import AIProvider
from src.speech.base import SpeechSynthesizer

logger = logging.getLogger(__name__)

_UNEXPECTED_MESSAGE = "An unexpected error occurred during debate generation."


class DebateInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    topic: str = Field(min_length=3, max_length=500)
    rounds: int = Field(ge=1, le=5)
    participants: list[str] = Field(min_length=2, max_length=5)
    generate_audio: bool = Field(default=True, alias="generateAudio")
    historical_texts: list[str] = Field(default_factory=list, alias="historicalTexts")


class PersonaInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: str | None = None
    name: str
    system_prompt: str = Field(alias="systemPrompt")
    voice_id: str = Field(alias="voiceId")
    model_id: str = Field(alias="modelId")


def _error(message: str) -> dict:
    return {"status": "error", "message": message}


_SCHEMA_MESSAGES = {
    ("topic", "string_too_short"): "Topic must be at least 3 characters long.",
    ("topic", "string_too_long"): "Topic must be at most 500 characters long.",
    ("rounds", "greater_than_equal"): "Number of rounds must be at least 1.",
    ("rounds", "less_than_equal"): "Number of rounds must be at most 5.",
    ("participants", "too_short"): "Select at least two participants.",
    ("participants", "too_long"): "Select at most five participants.",
}


def _schema_message(exc: SchemaError) -> str:
    """User-facing messages for schema errors, pydantic's text for anything unmapped."""
    parts = []
    for err in exc.errors():
        field = ".".join(str(loc) for loc in err["loc"])
        message = _SCHEMA_MESSAGES.get((field, err["type"]))
        if message is None:
            message = f"{field}: {err['msg']}" if field else err["msg"]
        parts.append(message)
    return ", ".join(parts)


def build_orchestrator(
    config: AppConfig,
    personas: PersonaReader,
    providers: Mapping[str, AIProvider],
    synthesizer: SpeechSynthesizer | None,
    seed: int | None = None,
) -> DebateOrchestrator:
    """Wire an orchestrator from configuration. Backend choice happens here, once."""
    store = ArtifactStore(config.defaults.artifact_dir)
    assembler = AudioAssembler(
        store,
        ffmpeg_binary=config.speech.ffmpeg_binary,
        quality=config.speech.episode_quality,
    )
    generator = TextGenerator(providers, config.defaults.runtime, config.prompts.turn, config.prompts.enhance)
    return DebateOrchestrator(
        personas,
        generator,
        store,
        assembler,
        synthesizer,
        min_participants=config.defaults.min_participants,
        max_participants=config.defaults.max_participants,
        max_rounds=config.defaults.max_rounds,
        seed=seed,
    )


async def create_debate(
    payload: Mapping,
    orchestrator: DebateOrchestrator,
    timeout_sec: float | None = None,
    on_turn_complete: Callable[[TranscriptTurn], None] | None = None,
) -> dict:
    """Validate payload, run the debate, and wrap the outcome in an envelope.

    Never raises for debate failures; cancellation still propagates.
    """
    try:
        data = DebateInput.model_validate(payload)
    except SchemaError as exc:
        return _error(_schema_message(exc))

    request = DebateRequest(
        topic=data.topic,
        round_count=data.rounds,
        participant_ids=list(data.participants),
        generate_audio=data.generate_audio,
        historical_texts=list(data.historical_texts),
    )

    try:
        result = await asyncio.wait_for(
            orchestrator.run(request, on_turn_complete=on_turn_complete),
            timeout=timeout_sec,
        )
    except (ValidationError, GenerationError) as exc:
        logger.error("Debate failed: %s", exc)
        return _error(str(exc))
    except TimeoutError:
        logger.error("Debate timed out after %ss", timeout_sec)
        return _error(f"Debate generation timed out after {timeout_sec} seconds.")
    except Exception:
        logger.exception("Unexpected error in create_debate")
        return _error(_UNEXPECTED_MESSAGE)

    return {"status": "success", "data": result.to_dict()}


def add_persona(payload: Mapping, repository: PersonaRepository) -> dict:
    """Validate and store a new persona. The id defaults to a slug of the name."""
    try:
        data = PersonaInput.model_validate(payload)
    except SchemaError as exc:
        return _error(_schema_message(exc))

    persona = Persona(
        id=data.id or slugify_persona_id(data.name),
        display_name=data.name,
        system_prompt=data.system_prompt,
        voice_id=data.voice_id,
        model_id=data.model_id,
    )
    try:
        repository.add(persona)
    except PersonaExistsError as exc:
        return _error(f"A participant with the ID '{exc.persona_id}' already exists.")
    except ValidationError as exc:
        return _error(str(exc))
    except OSError:
        logger.exception("Could not save persona %s", persona.id)
        return _error("Failed to save the new participant.")

    return {"status": "success", "persona": {"id": persona.id, "name": persona.display_name}}


def list_personas(personas: PersonaReader) -> list[dict]:
    return [{"id": p.id, "name": p.display_name} for p in personas.list_personas()]
