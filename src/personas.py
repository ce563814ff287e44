"""Persona registry: read capability for the orchestrator, add capability for everything else."""

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Protocol

import yaml

from src.errors import PersonaExistsError, ValidationError
from src.models import Persona

logger = logging.getLogger(__name__)

_PERSONA_ID_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class PersonaReader(Protocol):
    """What a debate run needs: lookups only."""

    def get(self, persona_id: str) -> Persona | None: ...

    def list_ids(self) -> set[str]: ...

    def list_personas(self) -> list[Persona]: ...


class PersonaRepository(PersonaReader, Protocol):
    def add(self, persona: Persona) -> Persona: ...


def slugify_persona_id(display_name: str) -> str:
    """'Albert Einstein' -> 'albert-einstein'."""
    slug = re.sub(r"\s+", "-", display_name.strip().lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return re.sub(r"-{2,}", "-", slug).strip("-")


def validate_persona_definition(persona: Persona) -> None:
    """Check a new persona definition.

    Raises:
        ValidationError: Listing every problem found, joined by ', '.
    """
    problems: list[str] = []
    if len(persona.id) < 3:
        problems.append("ID must be at least 3 characters long.")
    if not _PERSONA_ID_RE.match(persona.id):
        problems.append("ID can only contain lowercase letters, numbers, and hyphens.")
    if len(persona.display_name.strip()) < 3:
        problems.append("Name must be at least 3 characters long.")
    if len(persona.system_prompt.strip()) < 10:
        problems.append("System prompt must be at least 10 characters long.")
    if not persona.voice_id.strip():
        problems.append("Please select a voice.")
    if not persona.model_id.strip():
        problems.append("Please select a model.")
    if problems:
        raise ValidationError(", ".join(problems))


class InMemoryPersonaRepository:
    """Dict-backed repository; used for tests and as the loaded view of a file."""

    def __init__(self, personas: list[Persona] | None = None) -> None:
        self._personas: dict[str, Persona] = {p.id: p for p in personas or []}
        self._lock = threading.Lock()

    def get(self, persona_id: str) -> Persona | None:
        return self._personas.get(persona_id)

    def list_ids(self) -> set[str]:
        return set(self._personas)

    def list_personas(self) -> list[Persona]:
        return sorted(self._personas.values(), key=lambda p: p.display_name)

    def add(self, persona: Persona) -> Persona:
        validate_persona_definition(persona)
        with self._lock:
            if persona.id in self._personas:
                raise PersonaExistsError(persona.id)
            self._personas[persona.id] = persona
        return persona


def _persona_from_raw(persona_id: str, raw: dict) -> Persona:
    return Persona(
        id=persona_id,
        display_name=str(raw["name"]),
        system_prompt=str(raw["system_prompt"]),
        voice_id=str(raw["voice_id"]),
        model_id=str(raw["model_id"]),
    )


def _persona_to_raw(persona: Persona) -> dict:
    return {
        "name": persona.display_name,
        "system_prompt": persona.system_prompt,
        "voice_id": persona.voice_id,
        "model_id": persona.model_id,
    }


class YamlPersonaRepository:
    """Personas kept in a YAML mapping of id -> definition.

    Additions hold a lock, re-read the file, and replace it atomically, so
    two additions in the same process never overwrite each other.
    """

    _locks: dict[Path, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        with self._locks_guard:
            self._lock = self._locks.setdefault(self.path.resolve(), threading.Lock())

    def _load(self) -> dict[str, Persona]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        personas: dict[str, Persona] = {}
        for persona_id, definition in raw.items():
            try:
                personas[str(persona_id)] = _persona_from_raw(str(persona_id), definition)
            except (KeyError, TypeError) as exc:
                logger.warning("Skipping malformed persona '%s' in %s: %s", persona_id, self.path, exc)
        return personas

    def get(self, persona_id: str) -> Persona | None:
        return self._load().get(persona_id)

    def list_ids(self) -> set[str]:
        return set(self._load())

    def list_personas(self) -> list[Persona]:
        return sorted(self._load().values(), key=lambda p: p.display_name)

    def snapshot(self) -> InMemoryPersonaRepository:
        """Read the file once; a debate run uses this frozen view."""
        return InMemoryPersonaRepository(list(self._load().values()))

    def add(self, persona: Persona) -> Persona:
        validate_persona_definition(persona)
        with self._lock:
            current = self._load()
            if persona.id in current:
                raise PersonaExistsError(persona.id)
            current[persona.id] = persona
            self._write({pid: _persona_to_raw(p) for pid, p in current.items()})
        logger.info("Persona added: %s (%s)", persona.id, persona.display_name)
        return persona

    def _write(self, raw: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.stem}_", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(raw, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
