import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ai.context_builder import build_messages, build_system_prompt, gather_coach_stats
from ai.providers import ProviderError, get_provider
from auth.utils import get_current_user
from config import settings
from db.database import get_db
from db.models import User
from services.stats_service import UpstreamReadError
from utils.datetime_utils import today_for_tz

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    history: list[ChatTurn] = Field(default_factory=list)


@router.post("")
async def chat(payload: ChatRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Ask the coach a question with the user's recent stats as context."""
    if not settings.AI_API_KEY:
        raise HTTPException(status_code=503, detail="AI assistant is not configured")

    try:
        provider = get_provider(
            settings.AI_PROVIDER,
            settings.AI_API_KEY,
            model=settings.AI_MODEL,
            timeout_seconds=settings.AI_TIMEOUT_SECONDS,
        )
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    try:
        stats = gather_coach_stats(db, user, today_for_tz(user.timezone))
    except UpstreamReadError as exc:
        logger.exception("Coach context read failed for user %s", user.id)
        raise HTTPException(status_code=500, detail=f"Failed to load coach context: {exc}")
    messages = build_messages([turn.model_dump() for turn in payload.history], payload.message)
    try:
        result = await provider.chat(messages=messages, system=build_system_prompt(user, stats))
    except ProviderError as exc:
        logger.warning(f"AI chat failed for user {user.id}: {exc}")
        raise HTTPException(status_code=502, detail="AI assistant is unavailable right now")

    return {"content": result.get("content", ""), "model": result.get("model")}
