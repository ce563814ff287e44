"""Abstract base for speech synthesis backends."""

import base64
from abc import ABC, abstractmethod


class SpeechSynthesizer(ABC):
    """Turns one utterance into a canonical WAV clip (mono, 24 kHz, 16-bit)."""

    @abstractmethod
    def name(self) -> str:
        """Return the backend name ('cloud' or 'local')."""
        ...

    @abstractmethod
    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """Synthesize text with the given voice.

        Args:
            text: The utterance to speak.
            voice_id: Backend-specific voice identifier or preset name.

        Returns:
            Canonical WAV bytes.

        Raises:
            SynthesisError: On backend failure, missing credentials, empty audio
                or a failed format conversion.
        """
        ...

    async def close(self) -> None:
        """Release network sessions. Safe to call more than once."""

    async def synthesize_base64(self, text: str, voice_id: str) -> str:
        """Same as synthesize() but base64-encoded, for JSON transports."""
        return base64.b64encode(await self.synthesize(text, voice_id)).decode("ascii")
