"""LLM gateway — timeout, bounded retry and rate limiting around the provider.

Callers get text back or an ``LLMUnavailableError``; they are expected to
fall back to the local templated analysis on the latter.
"""

from __future__ import annotations

import asyncio
import logging

from config.settings import settings
from publishing_intel.assistant.llm_providers import get_provider, is_configured
from publishing_intel.errors import LLMUnavailableError

logger = logging.getLogger(__name__)

_semaphore = asyncio.Semaphore(5)

# base delay between attempts; doubles each retry
_BACKOFF_SECONDS = 1.0


async def complete(system_prompt: str, user_prompt: str, **kwargs) -> str:
    """Run one completion with ``llm_timeout_seconds`` per attempt.

    Makes ``1 + llm_max_retries`` attempts in total.

    Raises:
        LLMUnavailableError: no provider configured, or every attempt failed/timed out.
    """
    if not is_configured():
        raise LLMUnavailableError("No LLM provider configured")
    try:
        provider = get_provider()
    except Exception as exc:
        raise LLMUnavailableError(f"LLM provider init failed: {exc}") from exc

    attempts = 1 + max(0, settings.llm_max_retries)
    last_error: Exception | None = None

    async with _semaphore:
        for attempt in range(attempts):
            try:
                text = await asyncio.wait_for(
                    asyncio.to_thread(provider.generate, system_prompt, user_prompt, **kwargs),
                    timeout=settings.llm_timeout_seconds,
                )
                if not text:
                    raise ValueError("empty completion")
                return text
            except asyncio.TimeoutError:
                last_error = TimeoutError(f"timed out after {settings.llm_timeout_seconds:.0f}s")
            except Exception as exc:
                last_error = exc

            logger.warning(
                "LLM call failed (attempt %d/%d, %s): %s",
                attempt + 1,
                attempts,
                provider.name(),
                str(last_error)[:200],
            )
            if attempt + 1 < attempts:
                await asyncio.sleep(_BACKOFF_SECONDS * 2**attempt)

    raise LLMUnavailableError(f"LLM call failed after {attempts} attempts: {last_error}")
