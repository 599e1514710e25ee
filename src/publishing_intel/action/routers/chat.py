"""Chat assistant route."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.action.dependencies import get_session
from publishing_intel.assistant.chat import answer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    assistant_type: str = Field(default="general", alias="assistantType")
    university_filter: Optional[str] = Field(default="all", alias="universityFilter")
    use_llm: bool = Field(default=True, alias="useLlm")


@router.post("/api/chat/send")
async def chat_send(req: ChatRequest, session: AsyncSession = Depends(get_session)) -> dict:
    """Answer a question about the subscription data."""
    if not req.message.strip():
        raise HTTPException(status_code=400, detail="Please provide a message to analyze.")

    logger.info("Chat request (%s, filter=%s)", req.assistant_type, req.university_filter)
    result = await answer(
        session,
        req.message,
        assistant_type=req.assistant_type,
        university_filter=req.university_filter,
        use_llm=req.use_llm,
    )
    return {
        "response": result.response,
        "sessionId": f"session_{int(time.time() * 1000)}",
        "assistantType": req.assistant_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "usedLlm": result.used_llm,
    }
