"""Error taxonomy for a debate run.

ValidationError and GenerationError end the run. SynthesisError and
AssemblyError are caught where they happen and only cost audio.
"""


class DebateError(Exception):
    """Base for every error raised by the debate pipeline."""


class ValidationError(DebateError):
    """Malformed request or persona definition. Raised before any work starts."""


class GenerationError(DebateError):
    """Text generation failed or returned nothing; the debate cannot continue."""


class SynthesisError(DebateError):
    """Speech synthesis failed for a single turn."""


class AssemblyError(DebateError):
    """Concatenating the turn clips into one episode failed."""


class PersonaExistsError(DebateError):
    """A persona with the same id is already registered."""

    def __init__(self, persona_id: str) -> None:
        self.persona_id = persona_id
        super().__init__(f"Persona '{persona_id}' already exists")
