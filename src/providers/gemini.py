"""Gemini runtime using google-genai SDK with native async."""

import os

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from src.providers.base import AIProvider, ProviderError


class GeminiProvider(AIProvider):
    """Google Gemini via google-genai; base_url routes through a gateway."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env or "", "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        http_options = genai_types.HttpOptions(base_url=config.base_url) if config.base_url else None
        self._client = genai.Client(api_key=api_key, http_options=http_options)

    async def _complete(self, prompt: str, model: str) -> tuple[str, int | None]:
        response = await self._client.aio.models.generate_content(
            model=model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(max_output_tokens=self._config.max_tokens),
        )
        usage = response.usage_metadata
        return response.text or "", usage.total_token_count if usage else None
