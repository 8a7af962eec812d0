"""Discussion controller: messages exchanged about a finished analysis."""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, HTTPException, status

from app.controllers.dependencies import AnalysisRepoDep, DiscussionRepoDep
from app.domain.models import Discussion
from app.views import DiscussionCreateRequest, DiscussionResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/discussions",
    tags=["discussions"],
    responses={404: {"model": ErrorResponse}},
)


@router.post("", response_model=DiscussionResponse)
async def create_discussion(
    payload: DiscussionCreateRequest,
    discussions: DiscussionRepoDep,
    jobs: AnalysisRepoDep,
) -> DiscussionResponse:
    if await jobs.get_job(payload.analysisId) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found"
        )

    discussion = await discussions.create_discussion(
        Discussion(
            id=str(uuid4()),
            analysis_id=payload.analysisId,
            message=payload.message,
            sender=payload.sender,
        )
    )
    logger.info(
        "Added %s message to analysis %s",
        discussion.sender.value,
        discussion.analysis_id,
    )
    return DiscussionResponse.model_validate(discussion)


@router.get("/{analysis_id}", response_model=list[DiscussionResponse])
async def list_discussions(
    analysis_id: str, discussions: DiscussionRepoDep
) -> list[DiscussionResponse]:
    return [
        DiscussionResponse.model_validate(message)
        for message in await discussions.list_by_analysis(analysis_id)
    ]
