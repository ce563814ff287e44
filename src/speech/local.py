"""Voice-preset speech backend using google-genai.

Talks to a generative audio model that speaks with a named prebuilt voice
(Algenib, Achernar, ...). base_url points the client at a self-hosted
gateway; without it the public endpoint is used.
"""

import asyncio
import base64
import binascii
import logging
import os

from google import genai
from google.genai import types as genai_types

from config.config_loader import LocalVoiceConfig
from src.errors import SynthesisError
from src.speech.audio import CANONICAL_RATE, normalize_to_wav
from src.speech.base import SpeechSynthesizer

logger = logging.getLogger(__name__)

_DEFAULT_MIME = f"audio/L16;codec=pcm;rate={CANONICAL_RATE}"
_LOCAL_PLACEHOLDER_KEY = "local"


def decode_audio_payload(data: bytes | str, mime_type: str | None) -> tuple[bytes, str]:
    """Decode an embedded audio payload into (raw bytes, MIME type).

    Accepts raw bytes, a base64 string, or a data URI
    ("data:audio/L16;rate=24000;base64,....").

    Raises:
        SynthesisError: If the payload is empty or not valid base64.
    """
    mime = mime_type or _DEFAULT_MIME
    if isinstance(data, str):
        if data.startswith("data:"):
            header, _, data = data.partition(",")
            mime = header[len("data:"):].removesuffix(";base64") or mime
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SynthesisError(f"Audio payload is not valid base64: {exc}") from exc
    else:
        raw = bytes(data)
    if not raw:
        raise SynthesisError("Audio payload is empty")
    return raw, mime


class LocalSpeechSynthesizer(SpeechSynthesizer):
    """Prebuilt-voice generative TTS, normalized to canonical WAV."""

    def __init__(
        self,
        config: LocalVoiceConfig,
        ffmpeg_binary: str = "ffmpeg",
        transcode_timeout_sec: float = 60,
    ) -> None:
        self._config = config
        self._ffmpeg_binary = ffmpeg_binary
        self._transcode_timeout_sec = transcode_timeout_sec
        self._client: genai.Client | None = None

    def name(self) -> str:
        return "local"

    def _get_client(self) -> genai.Client:
        if self._client is not None:
            return self._client
        api_key = os.environ.get(self._config.api_key_env or "", "").strip()
        if not api_key:
            if not self._config.base_url:
                raise SynthesisError(
                    f"No audio model endpoint: set {self._config.api_key_env} or speech.local.base_url"
                )
            api_key = _LOCAL_PLACEHOLDER_KEY
        http_options = (
            genai_types.HttpOptions(base_url=self._config.base_url) if self._config.base_url else None
        )
        self._client = genai.Client(api_key=api_key, http_options=http_options)
        return self._client

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        client = self._get_client()
        config = genai_types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=genai_types.SpeechConfig(
                voice_config=genai_types.VoiceConfig(
                    prebuilt_voice_config=genai_types.PrebuiltVoiceConfig(voice_name=voice_id),
                ),
            ),
        )
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self._config.model,
                    contents=text,
                    config=config,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise SynthesisError(f"Audio model timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise SynthesisError(f"Audio model call failed: {exc}") from exc

        inline = _first_inline_audio(response)
        if inline is None:
            raise SynthesisError(f"Audio model returned no audio for voice preset '{voice_id}'")

        raw, mime = decode_audio_payload(inline.data, inline.mime_type)
        logger.info("Audio model voice=%s: %d chars -> %d bytes (%s)", voice_id, len(text), len(raw), mime)

        return await normalize_to_wav(
            raw,
            mime,
            ffmpeg_binary=self._ffmpeg_binary,
            timeout_sec=self._transcode_timeout_sec,
        )


def _first_inline_audio(response) -> genai_types.Blob | None:
    for candidate in response.candidates or []:
        if candidate.content is None or not candidate.content.parts:
            continue
        for part in candidate.content.parts:
            if part.inline_data is not None and part.inline_data.data:
                return part.inline_data
    return None
