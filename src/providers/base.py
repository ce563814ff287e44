"""Abstract base for all text-generation runtimes."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from config.config_loader import ModelConfig
from src.models import ModelResponse

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a runtime call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all text-generation runtimes.

    Subclasses only talk to their SDK in _complete(); generate() owns the
    timeout, timing, error mapping and logging shared by every runtime.
    """

    _config: ModelConfig

    def name(self) -> str:
        """Return the runtime name from settings.yaml (e.g. 'ollama', 'gemini')."""
        return self._config.name

    def model_string(self) -> str:
        """Return the runtime's default model identifier."""
        return self._config.model

    @abstractmethod
    async def _complete(self, prompt: str, model: str) -> tuple[str, int | None]:
        """Send one prompt. Returns (text, total token count or None)."""
        ...

    async def generate(
        self,
        prompt: str,
        round_number: int,
        model: str | None = None,
        timeout_sec: float | None = None,
    ) -> ModelResponse:
        """Generate a response for the given prompt.

        Args:
            prompt: The full prompt text to send.
            round_number: The debate round number (1-indexed, 0 for pings).
            model: Model to use; falls back to model_string() when None.
            timeout_sec: Per-call timeout; falls back to the configured one when None.

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        model = model or self.model_string()
        timeout_sec = timeout_sec or self._config.timeout_sec
        start = time.monotonic()
        try:
            content, token_count = await asyncio.wait_for(self._complete(prompt, model), timeout=timeout_sec)
        except ProviderError:
            raise
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        if not content:
            raise ProviderError(self.name(), f"Empty response from {model}")

        logger.info("%s/%s round %d: %.2fs, %s tokens", self.name(), model, round_number, latency, token_count)

        return ModelResponse(
            provider=self.name(),
            model=model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
