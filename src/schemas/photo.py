"""Schemas for photo generation endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PhotoGenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(alias="imageUrl")
    provider: str
    reason: Optional[str] = None


class GolferGroup(BaseModel):
    label: str
    names: list[str]


class GolferRosterResponse(BaseModel):
    groups: list[GolferGroup]


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
