"""Pydantic schemas for analysis requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.domain.models import AnalysisKind, JobStatus, ProviderId


class AnalysisCreateRequest(BaseModel):
    type: AnalysisKind
    textContent: str = Field(
        ...,
        validation_alias=AliasChoices("textContent", "text_content"),
        serialization_alias="textContent",
    )
    additionalContext: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("additionalContext", "additional_context"),
        serialization_alias="additionalContext",
    )
    llmProvider: ProviderId = Field(
        ...,
        validation_alias=AliasChoices("llmProvider", "llm_provider"),
        serialization_alias="llmProvider",
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("textContent")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Text content cannot be empty")
        return value

    @field_validator("additionalContext")
    @classmethod
    def _blank_context_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class AnalysisCreatedResponse(BaseModel):
    analysisId: str


class ContestRequest(BaseModel):
    contestMessage: str = Field(..., min_length=1)


class AnalysisResponse(BaseModel):
    id: str
    type: AnalysisKind
    textContent: str = Field(
        ...,
        validation_alias=AliasChoices("textContent", "text_content"),
        serialization_alias="textContent",
    )
    additionalContext: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("additionalContext", "additional_context"),
        serialization_alias="additionalContext",
    )
    llmProvider: ProviderId = Field(
        ...,
        validation_alias=AliasChoices("llmProvider", "llm_provider"),
        serialization_alias="llmProvider",
    )
    status: JobStatus
    userId: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("userId", "user_id"),
        serialization_alias="userId",
    )
    results: Optional[dict[str, Any]] = None
    saved: bool = False
    createdAt: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )
    updatedAt: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class StopResponse(BaseModel):
    message: str
