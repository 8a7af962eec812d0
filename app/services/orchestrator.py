"""Per-job state machine driving one streaming analysis from summary to completion.

A run resolves the caller's access tier (consuming credits for full access),
streams a summary, then streams the kind's questions in fixed-size batches
with a progress-ticking pause between batches. Every increment is broadcast
as a snapshot, truncated for partial-tier readers, while the untruncated text
is what gets persisted.

Stopping is cooperative: the registry marks the job's channel inactive and the
run notices between blocking steps (and within one tick of a pause), returning
without touching the stored results. The run claims its channel before looking
up the account and only ever watches that channel, so a stop is honoured even
when it lands before streaming starts.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from app.application.interfaces import (
    AccountRepositoryInterface,
    AnalysisRepositoryInterface,
)
from app.config.settings import AnalysisConfig, settings
from app.domain.events import (
    BatchCompleteEvent,
    CompleteEvent,
    DelayEvent,
    RawStreamEvent,
    StreamEvent,
    SummaryEvent,
)
from app.domain.models import AnalysisJob, JobStatus
from app.services.access_policy import AccessTier, tier_for, truncate
from app.services.broadcast import BroadcastChannel, BroadcastRegistry
from app.services.llm_client import ProviderClient
from app.services.prompt_builder import (
    as_user_messages,
    build_batch_prompt,
    build_summary_prompt,
)
from app.services.question_sets import get_question_set, make_batches
from app.telemetry import record_analysis_outcome

logger = logging.getLogger(__name__)


class AnalysisError(RuntimeError):
    """Base class for failures that end an analysis run."""


class JobNotFound(AnalysisError, LookupError):
    """Raised when the job id does not exist."""


class JobNotRunnable(AnalysisError):
    """Raised when a job is asked to run from any status other than pending."""


class EmptyProviderResponse(AnalysisError):
    """Raised when a vendor stream ends without a single text increment."""


class AnalysisPhaseError(AnalysisError):
    """Wraps the failure of the summary phase or of one batch."""


class PersistenceVerificationFailed(AnalysisError):
    """Raised when results read back as empty right after being written."""


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"


def iso_timestamp() -> str:
    """UTC timestamp in the ``2024-01-31T12:00:00.000Z`` form stored in results."""

    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class AnalysisOrchestrator:
    def __init__(
        self,
        jobs: AnalysisRepositoryInterface,
        accounts: AccountRepositoryInterface,
        provider: ProviderClient,
        registry: BroadcastRegistry,
        config: AnalysisConfig | None = None,
    ) -> None:
        self._jobs = jobs
        self._accounts = accounts
        self._provider = provider
        self._registry = registry
        self._config = config or settings.analysis

    async def start(self, job_id: str) -> RunOutcome:
        """Run the job to completion, or until it is stopped.

        Failures after the job was found are recorded on the job (status
        ``error`` plus an error payload) and then re-raised.
        """

        job = await self._jobs.get_job(job_id)
        if job is None:
            raise JobNotFound(f"Analysis {job_id} not found")
        if job.status is not JobStatus.PENDING:
            raise JobNotRunnable(
                f"Analysis {job_id} is {job.status.value}; only pending analyses can run"
            )

        logger.info(
            "Starting %s analysis %s with provider %s",
            job.type.value,
            job.id,
            job.llm_provider.value,
        )
        channel = self._registry.claim(job.id)
        try:
            tier = await self._resolve_tier(job, channel)
            await self._jobs.set_status(job.id, JobStatus.STREAMING)
            if channel.active:
                outcome = await self._run(job, tier, channel)
            else:
                logger.info("Analysis %s stopped before streaming began", job.id)
                outcome = RunOutcome.STOPPED
        except Exception as exc:
            logger.error("Analysis %s failed: %s", job.id, exc)
            await self._record_failure(job, exc)
            record_analysis_outcome(job.type.value, "error")
            raise

        record_analysis_outcome(job.type.value, outcome.value)
        if outcome is RunOutcome.COMPLETED:
            self._registry.discard(job.id)
        else:
            # Listeners that attached after the stop would otherwise wait forever.
            self._registry.stop(job.id)
        return outcome

    async def _resolve_tier(self, job: AnalysisJob, channel: BroadcastChannel) -> AccessTier:
        if job.user_id is None:
            return AccessTier.PARTIAL

        account = await self._accounts.get_account(job.user_id)
        if account is None:
            logger.warning("Analysis %s references unknown user %s", job.id, job.user_id)
            return AccessTier.PARTIAL
        if not channel.active:
            # Stopped during the lookup; nothing will be streamed, so nothing is charged.
            return AccessTier.PARTIAL

        cost = self._config.credit_cost(job.type.value)
        tier = tier_for(account.credits, account.unlimited, cost)
        if tier is AccessTier.FULL and not account.unlimited:
            if not await self._accounts.deduct_credits(account.id, cost):
                # Balance changed between the read and the conditional decrement.
                logger.info("Credit deduction lost a race for user %s", account.id)
                return AccessTier.PARTIAL
            logger.info("Consumed %d credits from user %s for %s", cost, account.id, job.id)
        return tier

    def _preview(self, text: str, tier: AccessTier) -> str:
        return truncate(
            text,
            tier,
            self._config.preview_strategy,
            self._config.preview_percentage,
        )

    def _emit(self, job_id: str, channel: BroadcastChannel, event: StreamEvent) -> None:
        # A halted run stays silent even if a late listener reopened the job id.
        if channel.active:
            self._registry.emit(job_id, event)

    async def _collect(
        self,
        job: AnalysisJob,
        channel: BroadcastChannel,
        prompt: str,
        tier: AccessTier,
        make_event: Callable[[str], StreamEvent],
    ) -> str:
        """Stream one prompt, broadcasting the growing snapshot; return the full text."""

        accumulated = ""

        def on_chunk(text: str) -> None:
            nonlocal accumulated
            accumulated += text
            self._emit(job.id, channel, make_event(self._preview(accumulated, tier)))

        stream = self._provider.stream(job.llm_provider, as_user_messages(prompt), on_chunk)
        async for _ in stream:
            pass
        return accumulated

    async def _summarize(
        self, job: AnalysisJob, channel: BroadcastChannel, tier: AccessTier
    ) -> str:
        try:
            summary = await self._collect(
                job,
                channel,
                build_summary_prompt(job.text_content),
                tier,
                lambda snapshot: SummaryEvent(content=snapshot),
            )
            if not summary:
                raise EmptyProviderResponse(
                    "No content received from LLM during summary generation"
                )
        except Exception as exc:
            raise AnalysisPhaseError(f"Summary generation failed: {exc}") from exc
        return summary

    async def _process_batch(
        self,
        job: AnalysisJob,
        channel: BroadcastChannel,
        questions: list[str],
        batch_number: int,
        tier: AccessTier,
    ) -> str:
        question_set = get_question_set(job.type)
        prompt = build_batch_prompt(
            job.text_content,
            questions,
            job.additional_context,
            question_set.mode,
            question_set.family,
        )
        try:
            response = await self._collect(
                job,
                channel,
                prompt,
                tier,
                lambda snapshot: RawStreamEvent(batch_number=batch_number, raw_content=snapshot),
            )
            if not response:
                raise EmptyProviderResponse(
                    f"No content received from LLM for batch {batch_number}"
                )
        except Exception as exc:
            raise AnalysisPhaseError(
                f"Batch {batch_number} processing failed: {exc}"
            ) from exc

        self._emit(
            job.id,
            channel,
            BatchCompleteEvent(
                batch_number=batch_number,
                final_raw_response=self._preview(response, tier),
            ),
        )
        return response

    async def _pause(self, job_id: str, channel: BroadcastChannel) -> None:
        """Tick ``delay`` progress from 0 to 100, returning early once halted."""

        delay = self._config.inter_batch_delay_seconds
        tick = self._config.delay_tick_seconds
        if delay <= 0:
            return

        steps = max(1, round(delay / tick))
        for step in range(steps + 1):
            progress = math.floor(step * 100 / steps + 0.5)
            self._emit(job_id, channel, DelayEvent(progress=progress))
            if await channel.wait_for_halt(tick):
                return

    async def _run(
        self, job: AnalysisJob, tier: AccessTier, channel: BroadcastChannel
    ) -> RunOutcome:
        question_set = get_question_set(job.type)
        summary = await self._summarize(job, channel, tier)

        batches = make_batches(question_set.questions, self._config.batch_size)
        responses: list[str] = []
        for index, questions in enumerate(batches):
            batch_number = index + 1
            if not channel.active:
                logger.info("Analysis %s stopped before batch %d", job.id, batch_number)
                return RunOutcome.STOPPED

            responses.append(
                await self._process_batch(job, channel, questions, batch_number, tier)
            )
            logger.info(
                "Analysis %s finished batch %d/%d", job.id, batch_number, len(batches)
            )

            if not channel.active:
                logger.info("Analysis %s stopped after batch %d", job.id, batch_number)
                return RunOutcome.STOPPED

            if batch_number < len(batches):
                await self._pause(job.id, channel)

        results: dict[str, Any] = {
            "summary": summary,
            "batches": responses,
            "questions": list(question_set.questions),
            "type": job.type.value,
            "completedAt": iso_timestamp(),
            "accessTier": tier.value,
        }
        await self._jobs.set_results(job.id, results)

        stored = await self._jobs.get_job(job.id)
        if stored is None or not stored.results:
            raise PersistenceVerificationFailed(
                "Analysis processing completed but results were not saved"
            )

        await self._jobs.set_status(job.id, JobStatus.COMPLETED)
        self._emit(job.id, channel, CompleteEvent())
        logger.info("Analysis %s completed (%s access)", job.id, tier.value)
        return RunOutcome.COMPLETED

    async def _record_failure(self, job: AnalysisJob, exc: Exception) -> None:
        payload = {
            "error": str(exc),
            "failedAt": iso_timestamp(),
            "type": job.type.value,
        }
        try:
            await self._jobs.set_results(job.id, payload)
            await self._jobs.set_status(job.id, JobStatus.ERROR)
        except Exception:
            logger.exception("Could not record failure of analysis %s", job.id)


__all__ = [
    "AnalysisError",
    "AnalysisOrchestrator",
    "AnalysisPhaseError",
    "EmptyProviderResponse",
    "JobNotFound",
    "JobNotRunnable",
    "PersistenceVerificationFailed",
    "RunOutcome",
    "iso_timestamp",
]
