"""Pydantic schemas for discussion threads and account credits."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.domain.models import DiscussionSender


class DiscussionCreateRequest(BaseModel):
    analysisId: str = Field(
        ...,
        validation_alias=AliasChoices("analysisId", "analysis_id"),
        serialization_alias="analysisId",
    )
    message: str
    sender: DiscussionSender = DiscussionSender.USER

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("message")
    @classmethod
    def _require_message(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message cannot be empty")
        return value


class DiscussionResponse(BaseModel):
    id: str
    analysisId: str = Field(
        ...,
        validation_alias=AliasChoices("analysisId", "analysis_id"),
        serialization_alias="analysisId",
    )
    message: str
    sender: DiscussionSender
    createdAt: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class CreditsResponse(BaseModel):
    credits: int
    isAnonymous: bool
