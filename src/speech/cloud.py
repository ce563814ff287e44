"""ElevenLabs text-to-speech backend over aiohttp.

The API streams MP3; every clip is transcoded to canonical PCM and wrapped
as WAV before it leaves this module.
"""

import logging
import os
import time

import aiohttp

from config.config_loader import CloudVoiceConfig
from src.errors import SynthesisError
from src.speech.audio import normalize_to_wav
from src.speech.base import SpeechSynthesizer

logger = logging.getLogger(__name__)


class CloudSpeechSynthesizer(SpeechSynthesizer):
    """ElevenLabs streaming TTS, normalized to canonical WAV."""

    def __init__(
        self,
        config: CloudVoiceConfig,
        ffmpeg_binary: str = "ffmpeg",
        transcode_timeout_sec: float = 60,
    ) -> None:
        self._config = config
        self._ffmpeg_binary = ffmpeg_binary
        self._transcode_timeout_sec = transcode_timeout_sec
        self._session: aiohttp.ClientSession | None = None

    def name(self) -> str:
        return "cloud"

    def _api_key(self) -> str:
        api_key = os.environ.get(self._config.api_key_env, "").strip()
        if not api_key:
            raise SynthesisError(
                f"ElevenLabs API key is missing. Set the {self._config.api_key_env} environment variable."
            )
        return api_key

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout_sec),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        api_key = self._api_key()
        session = await self._get_session()

        url = f"{self._config.base_url}/text-to-speech/{voice_id}/stream"
        headers = {
            "xi-api-key": api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        payload = {
            "text": text,
            "model_id": self._config.model_id,
            "voice_settings": {
                "stability": self._config.stability,
                "similarity_boost": self._config.similarity_boost,
            },
        }

        start = time.monotonic()
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status >= 300:
                    error_text = await response.text()
                    raise SynthesisError(
                        f"ElevenLabs API error: {response.status} {response.reason}: {error_text[:200]}"
                    )
                mp3_data = await response.read()
        except aiohttp.ClientError as exc:
            raise SynthesisError(f"ElevenLabs request failed: {exc}") from exc
        except TimeoutError as exc:
            raise SynthesisError(f"ElevenLabs request timed out after {self._config.timeout_sec}s") from exc

        if not mp3_data:
            raise SynthesisError("ElevenLabs returned an empty audio stream")

        logger.info(
            "ElevenLabs voice=%s: %d chars -> %d bytes in %.2fs",
            voice_id, len(text), len(mp3_data), time.monotonic() - start,
        )

        return await normalize_to_wav(
            mp3_data,
            "audio/mpeg",
            ffmpeg_binary=self._ffmpeg_binary,
            timeout_sec=self._transcode_timeout_sec,
        )
