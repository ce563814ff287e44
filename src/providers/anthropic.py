"""Anthropic Claude runtime using anthropic SDK with native async."""

import os

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from src.providers.base import AIProvider, ProviderError


class AnthropicProvider(AIProvider):
    """Claude messages API; only text blocks count toward the utterance."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env or "", "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key, base_url=config.base_url)

    async def _complete(self, prompt: str, model: str) -> tuple[str, int | None]:
        response = await self._client.messages.create(
            model=model,
            max_tokens=self._config.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "\n".join(block.text for block in response.content or [] if block.type == "text")
        usage = response.usage
        return text, usage.input_tokens + usage.output_tokens if usage else None
