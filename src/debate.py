"""Debate orchestration: shuffled sequential turns, per-turn speech, episode assembly."""

import dataclasses
import logging
import random
from collections.abc import Callable

from src.artifacts import ArtifactStore
from src.assembly import AudioAssembler
from src.errors import AssemblyError, SynthesisError, ValidationError
from src.generation import TextGenerator
from src.models import DebateRequest, DebateResult, Persona, PromptContext, TranscriptTurn, format_duration
from src.personas import PersonaReader
from src.speech.base import SpeechSynthesizer

logger = logging.getLogger(__name__)

_NO_DURATION = format_duration(0)


class DebateOrchestrator:
    """Runs one debate per call to run(); holds no state between runs.

    Speaking order is re-shuffled every round. Pass ``seed`` (or an ``rng``)
    for reproducible orders in tests; the default is unseeded.
    """

    def __init__(
        self,
        personas: PersonaReader,
        generator: TextGenerator,
        store: ArtifactStore,
        assembler: AudioAssembler,
        synthesizer: SpeechSynthesizer | None = None,
        *,
        min_participants: int = 2,
        max_participants: int = 5,
        max_rounds: int | None = None,
        seed: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._personas = personas
        self._generator = generator
        self._store = store
        self._assembler = assembler
        self._synthesizer = synthesizer
        self._min_participants = min_participants
        self._max_participants = max_participants
        self._max_rounds = max_rounds
        self._rng = rng or random.Random(seed)

    @property
    def generator(self) -> TextGenerator:
        return self._generator

    def validate(self, request: DebateRequest) -> dict[str, Persona]:
        """Check the request and resolve every participant.

        Returns:
            participant id -> Persona

        Raises:
            ValidationError: Before any generation happens.
        """
        if not request.topic or not request.topic.strip():
            raise ValidationError("Topic must not be empty.")
        if request.round_count < 1:
            raise ValidationError("Number of rounds must be at least 1.")
        if self._max_rounds is not None and request.round_count > self._max_rounds:
            raise ValidationError(f"Number of rounds must be at most {self._max_rounds}.")

        count = len(request.participant_ids)
        if count < self._min_participants:
            raise ValidationError(f"Select at least {self._min_participants} participants.")
        if count > self._max_participants:
            raise ValidationError(f"Select at most {self._max_participants} participants.")
        if len(set(request.participant_ids)) != count:
            raise ValidationError("Participants must be distinct.")

        resolved: dict[str, Persona] = {}
        unknown: list[str] = []
        for participant_id in request.participant_ids:
            persona = self._personas.get(participant_id)
            if persona is None:
                unknown.append(participant_id)
            else:
                resolved[participant_id] = persona
        if unknown:
            raise ValidationError(f"Invalid participant ID: {', '.join(unknown)}")
        return resolved

    def speaking_order(self, participant_ids: list[str]) -> list[str]:
        order = list(participant_ids)
        self._rng.shuffle(order)
        return order

    async def run(
        self,
        request: DebateRequest,
        on_turn_complete: Callable[[TranscriptTurn], None] | None = None,
    ) -> DebateResult:
        """Run the full debate.

        Args:
            request: Topic, rounds, participants and the audio flag.
            on_turn_complete: Optional callback invoked after each turn is appended.

        Returns:
            DebateResult; audio problems never make this fail.

        Raises:
            ValidationError: Request rejected before any work.
            GenerationError: A turn (or a prompt refinement) produced no text; the run stops.
        """
        personas = self.validate(request)
        run_id = self._store.new_run_id()
        transcript: list[TranscriptTurn] = []

        logger.info(
            "Debate %s: '%s', %d rounds, %d participants, audio=%s",
            run_id, request.topic, request.round_count, len(personas), request.generate_audio,
        )

        if request.historical_texts:
            personas = await self._ground_personas(request, personas)

        for round_num in range(1, request.round_count + 1):
            order = self.speaking_order(request.participant_ids)
            logger.info("Round %d order: %s", round_num, ", ".join(order))

            for participant_id in order:
                persona = personas[participant_id]
                context = PromptContext(
                    system_prompt=persona.system_prompt,
                    topic=request.topic,
                    round_number=round_num,
                    prior_turns=tuple(transcript),
                )
                text = await self._generator.generate_turn(persona, context)

                turn = TranscriptTurn(
                    speaker_name=persona.display_name,
                    utterance_text=text,
                    round_number=round_num,
                )
                if request.generate_audio:
                    turn.audio_ref = await self._speak(run_id, len(transcript), persona, text, round_num)

                transcript.append(turn)
                if on_turn_complete:
                    on_turn_complete(turn)

        podcast_ref: str | None = None
        duration = _NO_DURATION
        clip_refs = [turn.audio_ref for turn in transcript if turn.audio_ref]

        if request.generate_audio and clip_refs:
            try:
                episode = await self._assembler.assemble(clip_refs, self._store.episode_name(run_id))
                podcast_ref = episode.ref
                duration = episode.duration
            except AssemblyError as exc:
                logger.warning("Debate %s: episode assembly failed, returning transcript only: %s", run_id, exc)
        elif request.generate_audio:
            logger.warning("Debate %s: no turn produced audio, skipping episode assembly", run_id)

        logger.info(
            "Debate %s complete: %d turns, %d with audio, podcast=%s",
            run_id, len(transcript), len(clip_refs), podcast_ref or "-",
        )

        return DebateResult(
            topic=request.topic,
            run_id=run_id,
            transcript=tuple(transcript),
            podcast_ref=podcast_ref,
            duration=duration,
            audio_generated=request.generate_audio,
        )

    async def _ground_personas(self, request: DebateRequest, personas: dict[str, Persona]) -> dict[str, Persona]:
        """Refine every system prompt against the request's historical texts, once per run."""
        grounded: dict[str, Persona] = {}
        for participant_id, persona in personas.items():
            prompt = await self._generator.enhance_prompt(
                request.topic, request.historical_texts, persona.system_prompt, persona.model_id,
            )
            grounded[participant_id] = dataclasses.replace(persona, system_prompt=prompt)
        logger.info(
            "Refined %d system prompts against %d historical texts", len(grounded), len(request.historical_texts),
        )
        return grounded

    async def _speak(
        self,
        run_id: str,
        index: int,
        persona: Persona,
        text: str,
        round_num: int,
    ) -> str | None:
        """Synthesize and store one clip. Returns its reference, or None on any failure."""
        if self._synthesizer is None:
            logger.warning("No speech backend configured; %s round %d has no audio", persona.display_name, round_num)
            return None
        try:
            wav = await self._synthesizer.synthesize(text, persona.voice_id)
            if not wav:
                raise SynthesisError("Speech backend returned no audio")
            return await self._store.write(self._store.clip_name(run_id, index), wav)
        except SynthesisError as exc:
            logger.warning("Speech synthesis failed for %s in round %d: %s", persona.display_name, round_num, exc)
        except Exception as exc:
            logger.warning(
                "Unexpected speech failure for %s in round %d: %s",
                persona.display_name, round_num, exc, exc_info=True,
            )
        return None
