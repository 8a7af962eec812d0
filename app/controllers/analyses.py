"""Analysis controller: create, observe, stop and export streaming analyses."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import PlainTextResponse, StreamingResponse

from app.application.interfaces import AnalysisRepositoryInterface
from app.config.settings import settings
from app.controllers.dependencies import (
    AnalysisRepoDep,
    CurrentUserDep,
    IntakeDep,
    OptionalUserDep,
    RegistryDep,
)
from app.domain.events import (
    CompleteEvent,
    ErrorEvent,
    StoppedEvent,
    StreamEvent,
    is_terminal,
)
from app.domain.models import AnalysisJob, JobStatus
from app.services.access_policy import AccessTier, truncate_for_display
from app.services.broadcast import BroadcastRegistry
from app.services.orchestrator import JobNotFound
from app.services.question_sets import make_batches
from app.services.report import format_analysis_report, report_filename
from app.services.response_parser import parse_question_responses
from app.views import (
    AnalysisCreatedResponse,
    AnalysisCreateRequest,
    AnalysisResponse,
    ContestRequest,
    ErrorResponse,
    StopResponse,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/analyses",
    tags=["analyses"],
    responses={404: {"model": ErrorResponse}},
)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
KEEPALIVE_SECONDS = 15.0


def _sse(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.to_wire())}\n\n"


def present_results(job: AnalysisJob) -> Optional[dict[str, Any]]:
    """Return the results a reader may see; stored results are never modified.

    Completed results of a partial-tier run are cut with the sentence-aware
    display truncation, and every completed result set gains the parsed
    per-question answers of what is shown.
    """

    results = job.results
    if not results or "batches" not in results:
        return results

    view = dict(results)
    if results.get("accessTier") != AccessTier.FULL.value:
        percentage = settings.analysis.preview_percentage
        view["summary"] = truncate_for_display(results.get("summary", ""), percentage)
        view["batches"] = [
            truncate_for_display(batch, percentage) for batch in results["batches"]
        ]

    groups = make_batches(results.get("questions", []), settings.analysis.batch_size)
    parsed: list[dict[str, Any]] = []
    for batch, questions in zip(view["batches"], groups):
        parsed.extend(parse_question_responses(batch, questions))
    view["questionResults"] = parsed
    return view


def _to_response(job: AnalysisJob) -> AnalysisResponse:
    response = AnalysisResponse.model_validate(job)
    return response.model_copy(update={"results": present_results(job)})


async def _get_job_or_404(
    jobs: AnalysisRepositoryInterface, analysis_id: str
) -> AnalysisJob:
    job = await jobs.get_job(analysis_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found"
        )
    return job


def _settled_event(job: AnalysisJob, run_in_flight: bool) -> Optional[StreamEvent]:
    """Terminal event for a job nobody will emit events for any more."""

    if job.status is JobStatus.COMPLETED:
        return CompleteEvent()
    if job.status is JobStatus.ERROR:
        error = (job.results or {}).get("error", "Analysis failed")
        return ErrorEvent(error=str(error))
    if job.status is JobStatus.STREAMING and not run_in_flight:
        return StoppedEvent()
    return None


async def _event_stream(
    analysis_id: str,
    registry: BroadcastRegistry,
    jobs: AnalysisRepositoryInterface,
) -> AsyncIterator[str]:
    queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
    registry.subscribe(analysis_id, queue.put_nowait)
    try:
        # The run may have settled between the status check and the subscription.
        job = await jobs.get_job(analysis_id)
        if job is not None and job.status in (JobStatus.COMPLETED, JobStatus.ERROR):
            queue.put_nowait(_settled_event(job, run_in_flight=True))

        while True:
            try:
                event = await asyncio.wait_for(queue.get(), KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield _sse(event)
            if is_terminal(event):
                break
    finally:
        registry.unsubscribe_all(analysis_id)


@router.post("", response_model=AnalysisCreatedResponse)
async def create_analysis(
    payload: AnalysisCreateRequest,
    intake: IntakeDep,
    user_id: OptionalUserDep,
) -> AnalysisCreatedResponse:
    job = await intake.submit(
        kind=payload.type,
        text=payload.textContent,
        provider=payload.llmProvider,
        context=payload.additionalContext,
        user_id=user_id,
    )
    return AnalysisCreatedResponse(analysisId=job.id)


@router.get("/recent", response_model=list[AnalysisResponse])
async def list_recent_analyses(
    jobs: AnalysisRepoDep,
    limit: int = Query(10, ge=1, le=50),
) -> list[AnalysisResponse]:
    return [_to_response(job) for job in await jobs.list_recent(limit)]


@router.get("/saved", response_model=list[AnalysisResponse])
async def list_saved_analyses(
    jobs: AnalysisRepoDep,
    user_id: OptionalUserDep,
) -> list[AnalysisResponse]:
    return [_to_response(job) for job in await jobs.list_saved(user_id)]


@router.get("/mine", response_model=list[AnalysisResponse])
async def list_my_analyses(
    jobs: AnalysisRepoDep,
    user_id: CurrentUserDep,
) -> list[AnalysisResponse]:
    return [_to_response(job) for job in await jobs.list_by_user(user_id)]


@router.get("/{analysis_id}", response_model=AnalysisResponse)
async def get_analysis(analysis_id: str, jobs: AnalysisRepoDep) -> AnalysisResponse:
    return _to_response(await _get_job_or_404(jobs, analysis_id))


@router.delete("/{analysis_id}", response_model=StopResponse)
async def stop_analysis(analysis_id: str, registry: RegistryDep) -> StopResponse:
    if not registry.stop(analysis_id):
        logger.info("Stop requested for analysis %s with no open channel", analysis_id)
    return StopResponse(message="Analysis stopped")


@router.get("/{analysis_id}/stream")
async def stream_analysis(
    analysis_id: str,
    jobs: AnalysisRepoDep,
    registry: RegistryDep,
) -> StreamingResponse:
    job = await _get_job_or_404(jobs, analysis_id)

    settled = _settled_event(job, run_in_flight=registry.is_active(analysis_id))
    if settled is not None:

        async def single_event() -> AsyncIterator[str]:
            yield _sse(settled)

        body = single_event()
    else:
        body = _event_stream(analysis_id, registry, jobs)

    return StreamingResponse(body, media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/{analysis_id}/contest", response_model=AnalysisCreatedResponse)
async def contest_analysis(
    analysis_id: str,
    payload: ContestRequest,
    intake: IntakeDep,
    user_id: OptionalUserDep,
) -> AnalysisCreatedResponse:
    try:
        job = await intake.contest(analysis_id, payload.contestMessage, user_id)
    except JobNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Original analysis not found",
        ) from None
    return AnalysisCreatedResponse(analysisId=job.id)


@router.patch("/{analysis_id}/save", response_model=SuccessResponse)
async def save_analysis(analysis_id: str, jobs: AnalysisRepoDep) -> SuccessResponse:
    await _get_job_or_404(jobs, analysis_id)
    await jobs.mark_saved(analysis_id)
    return SuccessResponse(message="Analysis saved")


@router.get("/{analysis_id}/download", response_class=PlainTextResponse)
async def download_analysis(analysis_id: str, jobs: AnalysisRepoDep) -> PlainTextResponse:
    job = await _get_job_or_404(jobs, analysis_id)
    content = format_analysis_report(job, present_results(job))
    return PlainTextResponse(
        content,
        headers={
            "Content-Disposition": f'attachment; filename="{report_filename(job)}"'
        },
    )
