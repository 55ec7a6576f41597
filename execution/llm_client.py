"""Thin wrapper around the OpenAI SDK for LLM calls.

Provides one-shot JSON-friendly chat calls for discovery suggestions and
clarity scoring, and token streaming for specification generation.
Only transport concerns live here: error wrapping and availability checks.
"""

from dataclasses import dataclass
from typing import Iterator

from config.settings import (
    LLM_ENABLED,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
)


class LLMUnavailableError(Exception):
    """Raised when the LLM service is not configured or reachable."""


class LLMClientError(Exception):
    """Raised when the LLM API returns an error."""


@dataclass
class LLMResponse:
    """Structured response from an LLM call."""

    content: str
    model: str
    usage: dict
    stop_reason: str


def is_available() -> bool:
    """Check if the OpenAI API key is configured and LLM calls are enabled."""
    return bool(OPENAI_API_KEY) and LLM_ENABLED


def _client():
    if not is_available():
        raise LLMUnavailableError("OPENAI_API_KEY is not configured")

    try:
        import openai
    except ImportError as e:
        raise LLMUnavailableError(
            "openai package is not installed. Run: pip install openai"
        ) from e

    return openai, openai.OpenAI(api_key=OPENAI_API_KEY)


def _build_messages(system_prompt: str, messages: list[dict]) -> list[dict]:
    openai_messages = [{"role": "system", "content": system_prompt}]
    openai_messages.extend(messages)
    return openai_messages


def chat(
    system_prompt: str,
    messages: list[dict],
    model: str | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
    response_format: dict | None = None,
) -> LLMResponse:
    """Send a conversation to the OpenAI API and return the response.

    Args:
        system_prompt: The system instruction for the conversation.
        messages: List of message dicts with 'role' and 'content' keys.
        model: Model to use (defaults to LLM_MODEL from settings).
        max_tokens: Max tokens in response (defaults to LLM_MAX_TOKENS).
        temperature: Sampling temperature (defaults to LLM_TEMPERATURE).
        response_format: Optional OpenAI response_format, e.g. JSON mode.

    Returns:
        LLMResponse with the assistant's reply.

    Raises:
        LLMUnavailableError: If no API key is configured.
        LLMClientError: If the API call fails.
    """
    openai, client = _client()

    create_kwargs = {
        "model": model or LLM_MODEL,
        "max_tokens": max_tokens or LLM_MAX_TOKENS,
        "temperature": temperature if temperature is not None else LLM_TEMPERATURE,
        "messages": _build_messages(system_prompt, messages),
    }
    if response_format is not None:
        create_kwargs["response_format"] = response_format

    try:
        response = client.chat.completions.create(**create_kwargs)
    except openai.APIError as e:
        raise LLMClientError(f"OpenAI API error: {e}") from e
    except Exception as e:
        raise LLMClientError(f"LLM call failed: {e}") from e

    choice = response.choices[0]
    return LLMResponse(
        content=choice.message.content,
        model=response.model,
        usage={
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
        },
        stop_reason=choice.finish_reason,
    )


def stream_chat(
    system_prompt: str,
    messages: list[dict],
    model: str | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> Iterator[str]:
    """Stream a completion from the OpenAI API as text chunks.

    The generator returning normally is the end-of-stream signal; an
    aborted stream raises instead.

    Args:
        system_prompt: The system instruction for the conversation.
        messages: List of message dicts with 'role' and 'content' keys.
        model: Model to use (defaults to LLM_MODEL from settings).
        max_tokens: Max tokens in response (defaults to LLM_MAX_TOKENS).
        temperature: Sampling temperature (defaults to LLM_TEMPERATURE).

    Yields:
        Non-empty text deltas in order.

    Raises:
        LLMUnavailableError: If no API key is configured.
        LLMClientError: If the API call fails or the stream breaks.
    """
    openai, client = _client()

    try:
        stream = client.chat.completions.create(
            model=model or LLM_MODEL,
            max_tokens=max_tokens or LLM_MAX_TOKENS,
            temperature=temperature if temperature is not None else LLM_TEMPERATURE,
            messages=_build_messages(system_prompt, messages),
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
    except openai.APIError as e:
        raise LLMClientError(f"OpenAI API error: {e}") from e
    except Exception as e:
        raise LLMClientError(f"LLM stream failed: {e}") from e
