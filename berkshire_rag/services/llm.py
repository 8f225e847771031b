# =============================================================================
# LLM Completion Clients — Pluggable Provider
# =============================================================================
#
# Single-turn completions for the Answer Composer, behind one Protocol:
#
#   LLMProvider (Protocol)
#   ├── OpenAICompatibleProvider — OpenAI (default: gpt-4o-mini) or any
#   │                              OpenAI-compatible endpoint via base_url
#   ├── AnthropicProvider        — Claude via the native Anthropic SDK
#   └── build_llm_provider()     — reads Settings, returns None when no
#                                  credential is configured (degraded mode)
#
# An empty completion is a valid result (content == ""), not an error.
# SDK failures are translated: timeouts → ModelTimeoutError, everything
# else from the SDK → ModelError. SDK-level retries are disabled.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from berkshire_rag.config import Settings
from berkshire_rag.errors import ModelError, ModelTimeoutError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """
    Standardised response from any LLM provider.

    Normalises the Anthropic and OpenAI response formats.
    """

    content: str           # The generated text ("" if the model returned none)
    model: str             # Model identifier reported by the API
    input_tokens: int      # Tokens consumed by the prompt
    output_tokens: int     # Tokens generated in the response


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """Anything with an async `complete()` in this shape."""

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation messages as dicts with "role" and "content".
            system: Optional system prompt.
            temperature: Override sampling temperature.
            max_tokens: Override max output tokens.

        Raises:
            ModelError: On quota, network or malformed-response failures.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: OpenAI-Compatible
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Provider for OpenAI and any API that follows the OpenAI chat spec.

    Switching endpoints is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_API_KEY=your-key
        LLM_MODEL=deepseek-chat
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        from openai import AsyncOpenAI

        if not api_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {
            "api_key": api_key,
            "timeout": timeout,
            "max_retries": 0,
        }
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        import openai

        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, str]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=all_messages,
                max_tokens=max_tokens or self._max_tokens,
                temperature=self._temperature if temperature is None else temperature,
            )
        except openai.APITimeoutError as exc:
            raise ModelTimeoutError(f"Completion request timed out: {exc}") from exc
        except openai.APIError as exc:
            raise ModelError(f"Completion request failed: {exc}") from exc

        if not response.choices:
            raise ModelError("Completion response contained no choices")

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


# ---------------------------------------------------------------------------
# Implementation 2: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    Anthropic takes the system prompt as a top-level `system=` kwarg,
    not as a message with role "system".
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-6",
        temperature: float = 0.1,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        from anthropic import AsyncAnthropic

        if not api_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        import anthropic

        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APITimeoutError as exc:
            raise ModelTimeoutError(f"Completion request timed out: {exc}") from exc
        except anthropic.APIError as exc:
            raise ModelError(f"Completion request failed: {exc}") from exc

        # First text block, if any
        content = ""
        for block in response.content:
            if block.type == "text":
                content = block.text
                break

        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def build_llm_provider(
    config: Settings,
) -> OpenAICompatibleProvider | AnthropicProvider | None:
    """
    Build the configured completion provider.

    Returns None when no credential is configured for the selected
    provider. Callers treat None as degraded mode, never as an error.

    Raises:
        ValueError: If LLM_PROVIDER names an unknown provider.
    """
    if not config.llm_enabled:
        logger.info(
            "No credential for LLM provider '%s'; answers run in degraded mode",
            config.llm_provider,
        )
        return None

    if config.llm_provider == "anthropic":
        return AnthropicProvider(
            api_key=config.completion_api_key,
            model=config.llm_model,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            timeout=config.llm_timeout_seconds,
        )

    if config.llm_provider == "openai_compatible":
        return OpenAICompatibleProvider(
            api_key=config.completion_api_key,
            model=config.llm_model,
            base_url=config.llm_base_url,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            timeout=config.llm_timeout_seconds,
        )

    raise ValueError(
        f"Unknown LLM provider '{config.llm_provider}'. "
        "Supported: 'openai_compatible', 'anthropic'"
    )
