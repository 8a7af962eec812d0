"""Create analysis jobs and launch their runs in the background."""

from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from app.application.interfaces import AnalysisRepositoryInterface
from app.domain.events import ErrorEvent
from app.domain.models import AnalysisJob, AnalysisKind, ProviderId
from app.services.broadcast import BroadcastRegistry
from app.services.orchestrator import AnalysisOrchestrator, JobNotFound, JobNotRunnable

logger = logging.getLogger(__name__)

CONTEST_FEEDBACK_PREFIX = "\n\nUser feedback: "


class AnalysisIntake:
    """Entry point used by the HTTP layer to start analyses fire-and-forget."""

    def __init__(
        self,
        jobs: AnalysisRepositoryInterface,
        orchestrator: AnalysisOrchestrator,
        registry: BroadcastRegistry,
    ) -> None:
        self._jobs = jobs
        self._orchestrator = orchestrator
        self._registry = registry
        # Strong references so running tasks are not garbage-collected.
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> int:
        return len(self._tasks)

    async def create(
        self,
        *,
        kind: AnalysisKind | str,
        text: str,
        provider: ProviderId | str,
        context: str | None = None,
        user_id: int | None = None,
    ) -> AnalysisJob:
        job = AnalysisJob(
            id=str(uuid4()),
            type=AnalysisKind(kind),
            text_content=text,
            additional_context=context or None,
            llm_provider=ProviderId(provider),
            user_id=user_id,
        )
        return await self._jobs.create_job(job)

    def launch(self, job_id: str) -> asyncio.Task[None]:
        # Open the channel now so a stop issued before the task runs is remembered.
        owns_channel = job_id not in self._registry
        self._registry.open(job_id)
        task = asyncio.create_task(
            self._run(job_id, owns_channel), name=f"analysis-{job_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def submit(self, **fields) -> AnalysisJob:
        """Create a pending job and start it without waiting for the run."""

        job = await self.create(**fields)
        self.launch(job.id)
        logger.info("Queued %s analysis %s", job.type.value, job.id)
        return job

    async def contest(
        self, job_id: str, feedback: str, user_id: int | None = None
    ) -> AnalysisJob:
        """Re-run an analysis with the user's objection appended to its context."""

        original = await self._jobs.get_job(job_id)
        if original is None:
            raise JobNotFound(f"Analysis {job_id} not found")

        context = f"{original.additional_context or ''}{CONTEST_FEEDBACK_PREFIX}{feedback}"
        return await self.submit(
            kind=original.type,
            text=original.text_content,
            provider=original.llm_provider,
            context=context,
            user_id=user_id,
        )

    async def _run(self, job_id: str, owns_channel: bool = True) -> None:
        release = True
        try:
            await self._orchestrator.start(job_id)
        except JobNotRunnable as exc:
            # The channel may belong to the run that is already streaming this job.
            logger.warning("Ignoring launch of analysis %s: %s", job_id, exc)
            release = owns_channel
        except Exception as exc:
            logger.exception("Analysis %s failed", job_id)
            self._registry.emit(job_id, ErrorEvent(error=str(exc)))
        finally:
            if release:
                self._registry.discard(job_id)

    async def wait_idle(self) -> None:
        """Wait for every launched run to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["AnalysisIntake", "CONTEST_FEEDBACK_PREFIX"]
