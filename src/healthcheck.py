"""Runtime health checks: ping every model the selected personas use before a debate."""

import asyncio
import logging
from collections.abc import Iterable

from src.errors import GenerationError
from src.generation import TextGenerator
from src.models import Persona

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(generator: TextGenerator, model_id: str) -> tuple[str, bool, str]:
    """Ping a single model id. Returns (model_id, ok, error_message)."""
    try:
        provider, model = generator.resolve(model_id)
    except GenerationError as exc:
        return model_id, False, str(exc)
    try:
        await asyncio.wait_for(
            provider.generate(_PING_PROMPT, round_number=0, model=model),
            timeout=_TIMEOUT_SEC,
        )
        return model_id, True, ""
    except Exception as exc:
        return model_id, False, str(exc) or type(exc).__name__


async def run_health_checks(
    generator: TextGenerator,
    personas: Iterable[Persona],
) -> dict[str, tuple[bool, str]]:
    """Ping each distinct model id in parallel.

    Returns:
        Dict mapping model id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    model_ids = sorted({p.model_id for p in personas})
    results = await asyncio.gather(*(_check_one(generator, m) for m in model_ids))
    for model_id, ok, err in results:
        if not ok:
            logger.debug("Health check failed for %s: %s", model_id, err)
    return {model_id: (ok, err) for model_id, ok, err in results}
