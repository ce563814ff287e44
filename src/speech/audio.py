"""Canonical audio format: mono, 24 kHz, 16-bit PCM in a WAV container.

Every synthesis backend funnels its payload through this module so the
assembly stage never needs to know where a clip came from.
"""

import asyncio
import io
import logging
import tempfile
import wave
from dataclasses import dataclass
from pathlib import Path

from src.errors import SynthesisError

logger = logging.getLogger(__name__)

CANONICAL_RATE = 24000
CANONICAL_CHANNELS = 1
CANONICAL_SAMPLE_WIDTH = 2  # bytes

# Linear PCM bit depth -> ffmpeg raw format. L8 is unsigned with a 128 offset.
_PCM_FORMATS = {8: "u8", 16: "s16le", 24: "s24le", 32: "s32le"}


@dataclass(frozen=True)
class WavInfo:
    channels: int
    sample_rate: int
    sample_width: int
    frames: int

    @property
    def duration_sec(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0

    def is_canonical(self) -> bool:
        return (
            self.channels == CANONICAL_CHANNELS
            and self.sample_rate == CANONICAL_RATE
            and self.sample_width == CANONICAL_SAMPLE_WIDTH
        )


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = CANONICAL_RATE,
    channels: int = CANONICAL_CHANNELS,
    sample_width: int = CANONICAL_SAMPLE_WIDTH,
) -> bytes:
    """Wrap raw little-endian PCM samples in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


def read_wav_info(source: bytes | Path) -> WavInfo:
    """Read the header of a WAV file given as bytes or a path."""
    handle = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else str(source)
    with wave.open(handle, "rb") as wav:
        return WavInfo(
            channels=wav.getnchannels(),
            sample_rate=wav.getframerate(),
            sample_width=wav.getsampwidth(),
            frames=wav.getnframes(),
        )


def parse_audio_mime_type(mime_type: str) -> dict[str, int | str]:
    """Parse codec, bits per sample and rate from an audio MIME type.

    "audio/L16;codec=pcm;rate=24000" -> {"codec": "pcm", "bits_per_sample": 16, "rate": 24000}
    Anything that is not linear PCM keeps its subtype as codec ("mpeg", "wav", ...).
    """
    bits_per_sample = 16
    rate = CANONICAL_RATE
    codec = ""

    parts = [p.strip() for p in mime_type.split(";") if p.strip()]
    if parts:
        subtype = parts[0].split("/", 1)[-1]
        if subtype.upper().startswith("L") and subtype[1:].isdigit():
            codec = "pcm"
            bits_per_sample = int(subtype[1:])
        else:
            codec = subtype.lower()
    for param in parts[1:]:
        key, _, value = param.partition("=")
        key = key.strip().lower()
        if key == "rate":
            try:
                rate = int(value)
            except ValueError:
                logger.debug("Ignoring malformed rate in MIME type %s", mime_type)
        elif key == "codec" and value.strip():
            codec = value.strip().lower()
    return {"codec": codec, "bits_per_sample": bits_per_sample, "rate": rate}


async def run_ffmpeg(args: list[str], timeout_sec: float) -> tuple[int, str]:
    """Run ffmpeg, returning (exit code, stderr). Kills the process on timeout or cancellation."""
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_sec)
    except BaseException:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise
    return process.returncode, stderr.decode("utf-8", errors="replace")


async def transcode_to_pcm(
    data: bytes,
    input_format: str | None = None,
    *,
    input_rate: int | None = None,
    input_channels: int | None = None,
    ffmpeg_binary: str = "ffmpeg",
    timeout_sec: float = 60,
) -> bytes:
    """Decode arbitrary audio into canonical raw PCM (s16le, mono, 24 kHz) with ffmpeg.

    input_format is the ffmpeg demuxer name ("mp3", "s16le", ...); None lets
    ffmpeg probe. Raw PCM input needs input_rate (and input_channels if not mono).
    Temporary files are removed on every exit path.

    Raises:
        SynthesisError: If ffmpeg is missing, fails, times out or produces no samples.
    """
    with tempfile.TemporaryDirectory(prefix="transcode_") as tmp:
        src_path = Path(tmp) / "input.bin"
        out_path = Path(tmp) / "output.pcm"
        src_path.write_bytes(data)

        args = [ffmpeg_binary, "-hide_banner", "-loglevel", "error", "-y"]
        if input_format:
            args += ["-f", input_format]
        if input_rate:
            args += ["-ar", str(input_rate)]
        if input_channels:
            args += ["-ac", str(input_channels)]
        args += [
            "-i", str(src_path),
            "-f", "s16le",
            "-acodec", "pcm_s16le",
            "-ac", str(CANONICAL_CHANNELS),
            "-ar", str(CANONICAL_RATE),
            str(out_path),
        ]

        try:
            returncode, stderr = await run_ffmpeg(args, timeout_sec)
        except FileNotFoundError as exc:
            raise SynthesisError(f"ffmpeg not found: {ffmpeg_binary}") from exc
        except TimeoutError as exc:
            raise SynthesisError(f"ffmpeg transcode timed out after {timeout_sec}s") from exc

        if returncode != 0:
            raise SynthesisError(f"ffmpeg transcode failed ({returncode}): {stderr.strip()[:500]}")
        if not out_path.exists() or out_path.stat().st_size == 0:
            raise SynthesisError("ffmpeg transcode produced no audio")
        return out_path.read_bytes()


async def normalize_to_wav(
    data: bytes,
    mime_type: str,
    *,
    ffmpeg_binary: str = "ffmpeg",
    timeout_sec: float = 60,
) -> bytes:
    """Turn an audio payload of any supported MIME type into canonical WAV bytes.

    16-bit PCM already at the canonical rate is wrapped without spawning ffmpeg.
    """
    params = parse_audio_mime_type(mime_type)
    codec = params["codec"]
    if codec == "pcm":
        rate = int(params["rate"])
        if params["bits_per_sample"] == 16 and rate == CANONICAL_RATE:
            return pcm_to_wav(data)
        pcm_format = _PCM_FORMATS.get(int(params["bits_per_sample"]))
        if pcm_format is None:
            raise SynthesisError(f"Unsupported PCM bit depth in {mime_type}")
        pcm = await transcode_to_pcm(
            data, pcm_format, input_rate=rate, input_channels=1,
            ffmpeg_binary=ffmpeg_binary, timeout_sec=timeout_sec,
        )
        return pcm_to_wav(pcm)

    if codec in ("wav", "x-wav", "wave"):
        try:
            info = read_wav_info(data)
        except (wave.Error, EOFError) as exc:
            raise SynthesisError(f"Unreadable WAV payload: {exc}") from exc
        if info.is_canonical():
            return data

    input_format = "mp3" if codec in ("mpeg", "mp3") else None
    pcm = await transcode_to_pcm(
        data, input_format, ffmpeg_binary=ffmpeg_binary, timeout_sec=timeout_sec,
    )
    return pcm_to_wav(pcm)
