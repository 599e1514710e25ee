"""LLM Provider abstraction — OpenAI, Gemini, Anthropic behind one interface.

Each provider wraps its native SDK directly. ``generate()`` is synchronous;
the gateway runs it in a worker thread under a timeout.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from config.settings import settings

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """Base class for LLM providers."""

    @abstractmethod
    def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        """Synchronous chat completion. Returns the model's text response."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Provider name for logging."""
        ...


class OpenAIProvider(LLMProvider):
    """OpenAI (or any OpenAI-compatible endpoint) via the openai SDK."""

    def __init__(self) -> None:
        import openai

        self._client = openai.OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url or None,
            max_retries=0,  # retries are owned by the gateway
        )
        self._model = settings.openai_model

    def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        response = self._client.chat.completions.create(
            model=kwargs.get("model", self._model),
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=kwargs.get("max_tokens", 1000),
            temperature=kwargs.get("temperature", 0.7),
        )
        return (response.choices[0].message.content or "").strip()

    def name(self) -> str:
        return "openai"


class GeminiProvider(LLMProvider):
    """Google Gemini via google-genai SDK."""

    def __init__(self) -> None:
        from google import genai

        self._client = genai.Client(api_key=settings.gemini_api_key)
        self._model = settings.gemini_model

    def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        response = self._client.models.generate_content(
            model=kwargs.get("model", self._model),
            contents=f"{system_prompt}\n\n{user_prompt}",
        )
        return (response.text or "").strip()

    def name(self) -> str:
        return "gemini"


class AnthropicProvider(LLMProvider):
    """Anthropic Claude via anthropic SDK."""

    def __init__(self) -> None:
        import anthropic

        self._client = anthropic.Anthropic(api_key=settings.anthropic_api_key, max_retries=0)
        self._model = settings.claude_model

    def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        response = self._client.messages.create(
            model=kwargs.get("model", self._model),
            max_tokens=kwargs.get("max_tokens", 1000),
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        return response.content[0].text.strip()

    def name(self) -> str:
        return "anthropic"


# ---------------------------------------------------------------------------
# Provider resolution: singleton with auto-detection
# ---------------------------------------------------------------------------

_provider: LLMProvider | None = None


def is_configured() -> bool:
    return bool(settings.openai_api_key or settings.gemini_api_key or settings.anthropic_api_key)


def get_provider() -> LLMProvider:
    """Get the configured LLM provider (singleton).

    Resolution order:
    1. LLM_PROVIDER env var (explicit: "openai" / "gemini" / "anthropic")
    2. Auto-detect from which API keys are set (openai first)
    """
    global _provider
    if _provider is not None:
        return _provider

    explicit = (settings.llm_provider or "").lower()

    if explicit == "openai" and settings.openai_api_key:
        _provider = OpenAIProvider()
    elif explicit == "gemini" and settings.gemini_api_key:
        _provider = GeminiProvider()
    elif explicit == "anthropic" and settings.anthropic_api_key:
        _provider = AnthropicProvider()
    elif settings.openai_api_key:
        _provider = OpenAIProvider()
    elif settings.gemini_api_key:
        _provider = GeminiProvider()
    elif settings.anthropic_api_key:
        _provider = AnthropicProvider()
    else:
        raise RuntimeError(
            "No LLM provider configured. Set at least one of: "
            "OPENAI_API_KEY, GEMINI_API_KEY, ANTHROPIC_API_KEY"
        )

    logger.info("LLM provider initialized: %s", _provider.name())
    return _provider


def reset_provider() -> None:
    """Reset singleton (for testing or key rotation)."""
    global _provider
    _provider = None
