"""LLM access via LiteLLM, plus API key lookup."""

from __future__ import annotations

import os

from smashcut.core.config import LLMConfig, SmashcutConfig

API_KEY_ENV = "ANTHROPIC_API_KEY"


def get_api_key(config: SmashcutConfig | LLMConfig) -> str | None:
    """Return the configured API key, else ``ANTHROPIC_API_KEY``, else None.

    Blank values count as missing.
    """
    llm = config.llm if isinstance(config, SmashcutConfig) else config
    for candidate in (llm.api_key, os.environ.get(API_KEY_ENV)):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def complete(
    messages: list[dict[str, str]],
    config: LLMConfig,
    api_key: str | None = None,
    **kwargs: object,
) -> str:
    """Send a chat completion request via LiteLLM.

    Args:
        messages: Chat messages in OpenAI format.
        config: LLM configuration.
        api_key: Key passed through to the provider.
        **kwargs: Additional kwargs passed to litellm.completion.

    Returns:
        The assistant's response text.
    """
    try:
        from litellm import completion
    except ImportError:
        raise ImportError("LiteLLM is not installed. Install with: pip install 'smashcut[llm]'")

    response = completion(
        model=config.model,
        messages=messages,
        api_base=config.api_base,
        api_key=api_key,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        **kwargs,
    )
    return response.choices[0].message.content
