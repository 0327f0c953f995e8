"""Schemas for the chat proxy endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ChatMessageIn(BaseModel):
    role: str = Field(min_length=1, max_length=32)
    content: Any = ""


class ChatRequest(BaseModel):
    messages: list[ChatMessageIn] = Field(default_factory=list)


class ChatResponse(BaseModel):
    reply: str
