"""OpenAI-compatible runtime (OpenAI, Ollama, any /v1 server) using openai SDK with native async."""

import os

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from src.providers.base import AIProvider, ProviderError

# Local servers such as Ollama ignore the key, but the SDK refuses an empty one.
_LOCAL_PLACEHOLDER_KEY = "ollama"


class OpenAIProvider(AIProvider):
    """Chat completions over the openai SDK; base_url points it at a compatible server."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        if config.api_key_env:
            api_key = os.environ.get(config.api_key_env, "").strip()
            if not api_key:
                raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        elif config.base_url:
            api_key = _LOCAL_PLACEHOLDER_KEY
        else:
            raise ProviderError(config.name, "Either api_key_env or base_url is required")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    async def _complete(self, prompt: str, model: str) -> tuple[str, int | None]:
        response = await self._client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self._config.max_tokens,
        )
        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice else None
        usage = response.usage
        return content or "", usage.total_tokens if usage else None
