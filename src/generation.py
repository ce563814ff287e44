"""Text generation: turn prompts, historical-accuracy refinement and runtime dispatch."""

import logging
from collections.abc import Iterable, Mapping

from config.config_loader import DEFAULT_ENHANCE_TEMPLATE, DEFAULT_TURN_TEMPLATE
from src.errors import GenerationError
from src.models import ModelResponse, Persona, PromptContext, TranscriptTurn
from src.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


def render_history(turns: Iterable[TranscriptTurn]) -> str:
    """Render prior turns as 'speaker: text' lines in emission order."""
    return "\n".join(f"{turn.speaker_name}: {turn.utterance_text}" for turn in turns)


def build_turn_prompt(context: PromptContext, template: str = DEFAULT_TURN_TEMPLATE) -> str:
    """Fill the turn template from a PromptContext.

    The template may use {system_prompt}, {topic}, {round} and {history}.
    """
    return template.format(
        system_prompt=context.system_prompt,
        topic=context.topic,
        round=context.round_number,
        history=render_history(context.prior_turns),
    )


def build_enhance_prompt(
    topic: str,
    historical_texts: Iterable[str],
    prompt: str,
    template: str = DEFAULT_ENHANCE_TEMPLATE,
) -> str:
    """Fill the refinement template; one historical text per line."""
    return template.format(topic=topic, prompt=prompt, texts="\n".join(historical_texts))


def split_model_id(model_id: str, default_runtime: str) -> tuple[str, str]:
    """Split 'runtime/model' into its parts; a bare name uses default_runtime.

    Only the first '/' separates, so 'ollama/library/mistral' keeps the
    remainder as the model name.
    """
    runtime, sep, model = model_id.partition("/")
    if not sep:
        return default_runtime, model_id
    return runtime, model


class TextGenerator:
    """Routes each persona to the runtime its model id names."""

    def __init__(
        self,
        providers: Mapping[str, AIProvider],
        default_runtime: str,
        template: str = DEFAULT_TURN_TEMPLATE,
        enhance_template: str = DEFAULT_ENHANCE_TEMPLATE,
    ) -> None:
        self._providers = dict(providers)
        self._default_runtime = default_runtime
        self._template = template
        self._enhance_template = enhance_template

    def resolve(self, model_id: str) -> tuple[AIProvider, str]:
        """Return (provider, model) for a persona model id.

        Raises:
            GenerationError: If the runtime is not configured or has no credentials.
        """
        runtime, model = split_model_id(model_id, self._default_runtime)
        provider = self._providers.get(runtime)
        if provider is None:
            raise GenerationError(f"Text runtime '{runtime}' is not available for model '{model_id}'")
        return provider, model or provider.model_string()

    async def generate_turn(self, persona: Persona, context: PromptContext) -> str:
        """Generate one utterance for persona. The text is returned verbatim.

        Raises:
            GenerationError: On runtime failure (after one retry on timeout) or empty output.
        """
        provider, model = self.resolve(persona.model_id)
        prompt = build_turn_prompt(context, self._template)
        logger.debug("Prompt for %s (round %d):\n%s", persona.display_name, context.round_number, prompt)

        try:
            response = await _call_provider(provider, prompt, context.round_number, model)
        except ProviderError as exc:
            raise GenerationError(
                f"Text generation failed for {persona.display_name} in round {context.round_number}: {exc}"
            ) from exc

        if not response.content or not response.content.strip():
            raise GenerationError(
                f"Empty utterance from {persona.display_name} in round {context.round_number}"
            )
        return response.content

    async def enhance_prompt(
        self,
        topic: str,
        historical_texts: list[str],
        prompt: str,
        model_id: str,
    ) -> str:
        """Ask the model to rewrite prompt so it stays true to historical_texts.

        Returns prompt unchanged when there are no texts.

        Raises:
            GenerationError: On runtime failure or an empty revision.
        """
        texts = [t.strip() for t in historical_texts if t and t.strip()]
        if not texts:
            return prompt

        provider, model = self.resolve(model_id)
        request = build_enhance_prompt(topic, texts, prompt, self._enhance_template)
        try:
            response = await _call_provider(provider, request, 0, model)
        except ProviderError as exc:
            raise GenerationError(f"Prompt refinement failed for model '{model_id}': {exc}") from exc

        revised = (response.content or "").strip()
        if not revised:
            raise GenerationError(f"Empty prompt refinement from model '{model_id}'")
        logger.debug("Refined prompt with %d historical texts:\n%s", len(texts), revised)
        return revised


async def _call_provider(
    provider: AIProvider,
    prompt: str,
    round_number: int,
    model: str,
) -> ModelResponse:
    """Call a provider, retrying once on timeout with 1.5x the timeout.

    Raises ProviderError on permanent failure; unexpected exceptions are
    wrapped in ProviderError.
    """
    try:
        return await provider.generate(prompt, round_number, model)
    except ProviderError as exc:
        if "timed out" not in str(exc).lower():
            raise
        cfg = getattr(provider, "_config", None)
        retry_timeout = cfg.timeout_sec * 1.5 if cfg is not None else None
        logger.warning(
            "Runtime %s timed out in round %d, retrying with %ss",
            provider.name(), round_number, retry_timeout or "default",
        )
        try:
            return await provider.generate(prompt, round_number, model, timeout_sec=retry_timeout)
        except ProviderError:
            raise
        except Exception as retry_exc:
            raise ProviderError(provider.name(), f"Unexpected error on retry: {retry_exc}") from retry_exc
    except Exception as exc:
        raise ProviderError(provider.name(), f"Unexpected error: {exc}") from exc
