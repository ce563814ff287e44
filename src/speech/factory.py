"""Pick the speech backend named in configuration."""

from config.config_loader import SpeechConfig
from src.speech.base import SpeechSynthesizer
from src.speech.cloud import CloudSpeechSynthesizer
from src.speech.local import LocalSpeechSynthesizer


def build_synthesizer(config: SpeechConfig) -> SpeechSynthesizer:
    """Build the backend once per process; the orchestrator receives it ready-made."""
    if config.backend == "cloud":
        return CloudSpeechSynthesizer(
            config.cloud,
            ffmpeg_binary=config.ffmpeg_binary,
            transcode_timeout_sec=config.transcode_timeout_sec,
        )
    if config.backend == "local":
        return LocalSpeechSynthesizer(
            config.local,
            ffmpeg_binary=config.ffmpeg_binary,
            transcode_timeout_sec=config.transcode_timeout_sec,
        )
    raise ValueError(f"Unknown speech backend: {config.backend}")
