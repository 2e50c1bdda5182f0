"""AI assistant request/response models."""

from datetime import datetime

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field("", max_length=4000)


class ChatResponse(BaseModel):
    response: str
    remaining: int
    limit: int


class UsageResponse(BaseModel):
    used: int
    remaining: int
    limit: int
    resets_at: datetime
