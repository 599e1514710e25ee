"""Chat service — templated report, optionally reworded by an LLM."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.assistant import llm_gateway
from publishing_intel.assistant.router import generate_response
from publishing_intel.errors import LLMUnavailableError

logger = logging.getLogger(__name__)

SYSTEM_PROMPTS = {
    "sales": "You are a Sales Assistant for a scientific publishing platform. Focus on revenue opportunities and lead prioritization.",
    "marketing": "You are a Marketing Assistant for a scientific publishing platform. Focus on market analysis and campaign optimization.",
    "research": "You are a Research Assistant for a scientific publishing platform. Focus on publication trends and research insights.",
    "general": "You are an AI assistant for a scientific publishing intelligence platform.",
}

USER_PROMPT = """\
A user asked: {message}

Answer using ONLY the figures in this analysis of the subscription database.
Browsing activity and costs marked estimated are synthesized, not measured.

{analysis}
"""


@dataclass
class ChatAnswer:
    response: str
    used_llm: bool
    report: str


async def answer(
    session: AsyncSession,
    message: str,
    assistant_type: str = "general",
    university_filter: str | None = "all",
    use_llm: bool = True,
) -> ChatAnswer:
    """Answer a chat message.

    The local report is always built first; the LLM only reformats it. Any
    LLM problem falls back to the local report without surfacing an error.
    """
    report = await generate_response(session, message, assistant_type, university_filter)
    if not use_llm:
        return ChatAnswer(response=report, used_llm=False, report=report)

    system_prompt = SYSTEM_PROMPTS.get(assistant_type, SYSTEM_PROMPTS["general"])
    try:
        text = await llm_gateway.complete(system_prompt, USER_PROMPT.format(message=message, analysis=report))
    except LLMUnavailableError as exc:
        logger.info("Using local analysis: %s", exc)
        return ChatAnswer(response=report, used_llm=False, report=report)
    return ChatAnswer(response=text, used_llm=True, report=report)
