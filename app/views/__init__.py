"""Pydantic schemas used as views in the MVC architecture."""

from .analyses import (
    AnalysisCreatedResponse,
    AnalysisCreateRequest,
    AnalysisResponse,
    ContestRequest,
    StopResponse,
)
from .common import ErrorResponse, SuccessResponse
from .discussions import CreditsResponse, DiscussionCreateRequest, DiscussionResponse

__all__ = [
    "AnalysisCreateRequest",
    "AnalysisCreatedResponse",
    "AnalysisResponse",
    "ContestRequest",
    "CreditsResponse",
    "DiscussionCreateRequest",
    "DiscussionResponse",
    "StopResponse",
    "ErrorResponse",
    "SuccessResponse",
]
