"""Schemas for message board endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class MessageCreateRequest(BaseModel):
    author: str = ""
    body: str = ""


class MessageItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author: str
    body: str
    created_at: datetime


class MessageListResponse(BaseModel):
    messages: list[MessageItem]


class MessageCreateResponse(BaseModel):
    message: MessageItem


class MessageDeleteResponse(BaseModel):
    ok: bool = True
