"""Concatenate per-turn WAV clips into one MP3 episode with ffmpeg."""

import logging
import tempfile
import wave
from collections.abc import Sequence
from pathlib import Path

from src.artifacts import ArtifactStore
from src.errors import AssemblyError
from src.models import AssembledEpisode
from src.speech.audio import read_wav_info, run_ffmpeg

logger = logging.getLogger(__name__)


def write_manifest(handle, clip_paths: Sequence[Path]) -> None:
    """Write an ffmpeg concat-demuxer list, one quoted absolute path per line."""
    for clip in clip_paths:
        escaped = str(clip.resolve()).replace("'", "'\\''")
        handle.write(f"file '{escaped}'\n")


class AudioAssembler:
    """Builds the episode file from clips already in the artifact store."""

    def __init__(
        self,
        store: ArtifactStore,
        ffmpeg_binary: str = "ffmpeg",
        quality: int = 4,
        timeout_sec: float = 300,
    ) -> None:
        self._store = store
        self._ffmpeg_binary = ffmpeg_binary
        self._quality = quality
        self._timeout_sec = timeout_sec

    def measure(self, clip_paths: Sequence[Path]) -> float:
        """Total duration in seconds of the concatenated clips."""
        total = 0.0
        for clip in clip_paths:
            try:
                total += read_wav_info(clip).duration_sec
            except (wave.Error, EOFError, OSError) as exc:
                raise AssemblyError(f"Cannot read clip {clip.name}: {exc}") from exc
        return total

    async def assemble(self, clip_refs: Sequence[str], output_name: str) -> AssembledEpisode:
        """Concatenate clip_refs in order into output_name.

        The manifest is a temp file in the store directory, unique per call,
        and is deleted on every exit path. A partial output is removed on failure.

        Raises:
            AssemblyError: On empty input, unreadable clips, or ffmpeg failure/timeout.
        """
        if not clip_refs:
            raise AssemblyError("No audio clips to assemble")

        clip_paths = [self._store.path(ref) for ref in clip_refs]
        missing = [p.name for p in clip_paths if not p.exists()]
        if missing:
            raise AssemblyError(f"Missing audio clips: {', '.join(missing)}")

        duration_sec = self.measure(clip_paths)
        output_path = self._store.path(output_name)
        self._store.root.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self._store.root,
            prefix=f"{Path(output_name).stem}_concat_",
            suffix=".txt",
            delete=False,
        ) as manifest:
            manifest_path = Path(manifest.name)
            write_manifest(manifest, clip_paths)

        logger.info("Concatenating %d clips into %s", len(clip_paths), output_name)

        succeeded = False
        try:
            cmd = [
                self._ffmpeg_binary,
                "-hide_banner", "-loglevel", "error",
                "-y",
                "-f", "concat",
                "-safe", "0",
                "-i", str(manifest_path),
                "-c:a", "libmp3lame",
                "-q:a", str(self._quality),
                str(output_path),
            ]
            try:
                returncode, stderr = await run_ffmpeg(cmd, self._timeout_sec)
            except FileNotFoundError as exc:
                raise AssemblyError(f"ffmpeg not found: {self._ffmpeg_binary}") from exc
            except TimeoutError as exc:
                raise AssemblyError(f"ffmpeg concatenation timed out after {self._timeout_sec}s") from exc

            if returncode != 0:
                raise AssemblyError(f"ffmpeg concatenation failed ({returncode}): {stderr.strip()[:500]}")
            if not output_path.exists():
                raise AssemblyError(f"Concatenated file not created: {output_name}")
            succeeded = True
        finally:
            manifest_path.unlink(missing_ok=True)
            if not succeeded:
                output_path.unlink(missing_ok=True)

        logger.info(
            "Episode %s assembled: %d clips, %.1fs, %d bytes",
            output_name, len(clip_paths), duration_sec, output_path.stat().st_size,
        )
        return AssembledEpisode(ref=output_name, duration_sec=duration_sec)
