"""Directory-backed store for per-turn clips and assembled episodes."""

import asyncio
import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Write-once files under one root directory.

    References are file names relative to the root, the same strings a web
    layer serves for playback and download.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @staticmethod
    def new_run_id() -> str:
        return uuid.uuid4().hex[:12]

    @staticmethod
    def clip_name(run_id: str, index: int) -> str:
        return f"{run_id}_clip_{index:03d}.wav"

    @staticmethod
    def episode_name(run_id: str) -> str:
        return f"{run_id}_debate.mp3"

    def path(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Artifact reference escapes the store: {ref}")
        return path

    def exists(self, ref: str) -> bool:
        return self.path(ref).exists()

    async def write(self, name: str, data: bytes) -> str:
        """Persist data under name and return its reference."""
        path = self.path(name)
        await asyncio.to_thread(self._write_sync, path, data)
        logger.debug("Stored artifact %s (%d bytes)", name, len(data))
        return name

    def _write_sync(self, path: Path, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
