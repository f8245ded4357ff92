"""LLM client -- chat completions against Anthropic or OpenAI over raw httpx.

:func:`chat` is the only entry point the rest of the app uses.  It returns
``{"text": str, "usage": {"input_tokens": int, "output_tokens": int}}``
whichever provider answered.

Errors:
  * transport failures, timeouts and 429/5xx answers are retried with
    exponential backoff, then re-raised as ``httpx`` exceptions
  * any other 4xx and malformed replies raise ``ValueError``
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_API_VERSION = "2023-06-01"
OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

MAX_RETRIES = 3
RETRY_BACKOFF_BASE = 2.0  # seconds: 2, 4, 8
MAX_RETRY_WAIT = 30.0
_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 529})

_client: httpx.AsyncClient | None = None


def _get_client() -> httpx.AsyncClient:
    """Shared pooled client for every LLM call."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=120.0)
    return _client


async def close_client() -> None:
    """Close the shared client.  Called during app shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


def _retry_delay(exc: Exception, attempt: int, backoff_base: float) -> float | None:
    """Seconds to wait before the next attempt, or ``None`` if *exc* is final."""
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code not in _RETRYABLE_STATUS_CODES:
            return None
        retry_after = exc.response.headers.get("retry-after")
        if retry_after:
            try:
                return min(float(retry_after), MAX_RETRY_WAIT)
            except ValueError:
                pass
    elif not isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return None
    return min(backoff_base ** (attempt + 1), MAX_RETRY_WAIT)


async def _retry_on_transient(
    call: Callable[[], Awaitable[T]],
    *,
    max_retries: int = MAX_RETRIES,
    backoff_base: float = RETRY_BACKOFF_BASE,
) -> T:
    """Await ``call()`` until it succeeds, a final error occurs, or retries run out.

    *call* must build a fresh awaitable on every invocation.
    """
    attempt = 0
    while True:
        try:
            return await call()
        except (httpx.HTTPStatusError, httpx.TimeoutException, httpx.TransportError) as exc:
            wait = _retry_delay(exc, attempt, backoff_base)
            if wait is None or attempt >= max_retries:
                raise
            logger.warning(
                "LLM request failed with %s (attempt %d/%d), retrying in %.1fs",
                _describe(exc), attempt + 1, max_retries + 1, wait,
            )
            await asyncio.sleep(wait)
            attempt += 1


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    return type(exc).__name__


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or response.text
    except (ValueError, AttributeError):
        return response.text


async def _post(provider: str, url: str, headers: dict, body: dict) -> dict:
    """POST *body* with retries; returns the decoded JSON reply."""

    async def _call() -> dict:
        response = await _get_client().post(url, headers=headers, json=body)
        if response.status_code in _RETRYABLE_STATUS_CODES:
            response.raise_for_status()
        if response.status_code >= 400:
            raise ValueError(f"{provider} API {response.status_code}: {_error_message(response)}")
        return response.json()

    return await _retry_on_transient(_call)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


async def chat_anthropic(
    api_key: str,
    model: str,
    system_prompt: str,
    messages: list[dict],
    max_tokens: int = 2048,
) -> dict:
    """Anthropic Messages API; text blocks of the reply are joined by newlines."""
    body: dict = {"model": model, "max_tokens": max_tokens, "messages": messages}
    if system_prompt:
        body["system"] = system_prompt
    headers = {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_API_VERSION,
        "Content-Type": "application/json",
    }

    data = await _post("Anthropic", ANTHROPIC_MESSAGES_URL, headers, body)
    blocks = data.get("content") or []
    if not blocks:
        raise ValueError("Empty response from Anthropic API")
    texts = [b["text"] for b in blocks if b.get("type") == "text"]
    if not texts:
        raise ValueError("No text block in Anthropic API response")

    usage = data.get("usage", {})
    return {
        "text": "\n".join(texts),
        "usage": {
            "input_tokens": usage.get("input_tokens", 0),
            "output_tokens": usage.get("output_tokens", 0),
        },
        "stop_reason": data.get("stop_reason", "end_turn"),
    }


async def chat_openai(
    api_key: str,
    model: str,
    system_prompt: str,
    messages: list[dict],
    max_tokens: int = 2048,
) -> dict:
    """OpenAI Chat Completions API; the system prompt becomes the first message."""
    chat_messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
    chat_messages.extend(messages)
    body = {"model": model, "messages": chat_messages, "max_completion_tokens": max_tokens}
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    data = await _post("OpenAI", OPENAI_CHAT_URL, headers, body)
    choices = data.get("choices") or []
    if not choices:
        raise ValueError("Empty response from OpenAI API")
    content = choices[0].get("message", {}).get("content")
    if not content:
        raise ValueError("No content in OpenAI API response")

    usage = data.get("usage", {})
    return {
        "text": content,
        "usage": {
            "input_tokens": usage.get("prompt_tokens", 0),
            "output_tokens": usage.get("completion_tokens", 0),
        },
    }


async def chat(
    api_key: str,
    model: str,
    system_prompt: str,
    messages: list[dict],
    max_tokens: int = 2048,
    provider: str = "anthropic",
) -> dict:
    """Send one chat request to *provider* (``"anthropic"`` or ``"openai"``)."""
    if provider == "openai":
        return await chat_openai(api_key, model, system_prompt, messages, max_tokens)
    return await chat_anthropic(api_key, model, system_prompt, messages, max_tokens)
