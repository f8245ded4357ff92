"""Content generator -- the text/code generation collaborator of a build.

The orchestrator only needs ``generate(prompt_context) -> text``; how the
text is produced is up to the implementation.  :class:`LLMContentGenerator`
forwards to the chat API configured in settings.
"""

import logging
from typing import Protocol

import httpx

from liveforge.clients import llm_client
from liveforge.config import resolve_llm_provider, settings
from liveforge.errors import GenerationError

logger = logging.getLogger(__name__)


class ContentGenerator(Protocol):
    async def generate(self, prompt_context: str, *, system_prompt: str = "") -> str:
        """Return unstructured generated text for *prompt_context*."""
        ...


class LLMContentGenerator:
    """Generates text through :func:`llm_client.chat`."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        provider: str = "anthropic",
        max_tokens: int = 4096,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.provider = provider
        self.max_tokens = max_tokens

    async def generate(self, prompt_context: str, *, system_prompt: str = "") -> str:
        if not self.api_key:
            raise GenerationError(f"No API key configured for provider {self.provider!r}")
        try:
            result = await llm_client.chat(
                api_key=self.api_key,
                model=self.model,
                system_prompt=system_prompt,
                messages=[{"role": "user", "content": prompt_context}],
                max_tokens=self.max_tokens,
                provider=self.provider,
            )
        except (ValueError, httpx.HTTPError) as exc:
            raise GenerationError(str(exc) or type(exc).__name__) from exc

        usage = result.get("usage", {})
        logger.info(
            "Generated %d chars with %s (in=%s out=%s tokens)",
            len(result["text"]), self.model,
            usage.get("input_tokens", 0), usage.get("output_tokens", 0),
        )
        return result["text"]


class UnavailableContentGenerator:
    """Used when no provider is configured: every call fails, builds use templates."""

    async def generate(self, prompt_context: str, *, system_prompt: str = "") -> str:
        raise GenerationError("No LLM provider configured")


def get_content_generator() -> ContentGenerator:
    """Build the generator described by the current settings."""
    provider = resolve_llm_provider()
    if provider == "anthropic":
        return LLMContentGenerator(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.LLM_MODEL,
            provider="anthropic",
            max_tokens=settings.LLM_MAX_TOKENS,
        )
    if provider == "openai":
        return LLMContentGenerator(
            api_key=settings.OPENAI_API_KEY,
            model=settings.LLM_MODEL,
            provider="openai",
            max_tokens=settings.LLM_MAX_TOKENS,
        )
    logger.warning("No LLM provider configured -- builds will use template generation.")
    return UnavailableContentGenerator()
