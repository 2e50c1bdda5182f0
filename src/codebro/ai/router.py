"""AI assistant endpoints: chat and daily usage."""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from codebro.ai.schemas import ChatRequest, ChatResponse, UsageResponse
from codebro.ai.service import AssistantService, PlaceholderResponder, Responder, SqlUsageStore, UsageStore
from codebro.auth.dependencies import get_current_identity
from codebro.auth.jwt import Identity
from codebro.config import Settings, get_settings
from codebro.database import get_session
from codebro.dependencies import utcnow

router = APIRouter(prefix="/api/v1/ai", tags=["AI Assistant"])


async def get_usage_store(db: AsyncSession = Depends(get_session)) -> UsageStore:
    return SqlUsageStore(db)


def get_responder() -> Responder:
    return PlaceholderResponder()


async def get_assistant(
    usage: UsageStore = Depends(get_usage_store),
    responder: Responder = Depends(get_responder),
    settings: Settings = Depends(get_settings),
) -> AssistantService:
    return AssistantService(usage, responder, settings.ai_daily_limit, settings.ai_model_name)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    identity: Identity = Depends(get_current_identity),
    assistant: AssistantService = Depends(get_assistant),
    now: datetime = Depends(utcnow),
):
    """Send one message to the assistant (counts against the daily quota)."""
    return await assistant.chat(identity.user_id, body.message, now)


@router.get("/usage", response_model=UsageResponse)
async def usage(
    identity: Identity = Depends(get_current_identity),
    assistant: AssistantService = Depends(get_assistant),
    now: datetime = Depends(utcnow),
):
    """Messages used today and when the quota resets."""
    return await assistant.get_usage(identity.user_id, now)
