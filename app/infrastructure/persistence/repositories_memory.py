"""In-memory repositories for tests and database-less deployments."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from app.application.interfaces import (
    AccountRepositoryInterface,
    AnalysisRepositoryInterface,
    DiscussionRepositoryInterface,
)
from app.domain.models import (
    Account,
    AnalysisJob,
    Discussion,
    JobStatus,
    can_transition,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryAnalysisRepository(AnalysisRepositoryInterface):
    """Keep analysis jobs in a process-local dict (copies in, copies out)."""

    def __init__(self) -> None:
        self._jobs: dict[str, AnalysisJob] = {}

    async def create_job(self, job: AnalysisJob) -> AnalysisJob:
        now = _now()
        stored = job.model_copy(
            update={"created_at": job.created_at or now, "updated_at": now},
            deep=True,
        )
        self._jobs[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def _touch(self, job_id: str, **changes: Any) -> bool:
        job = self._jobs.get(job_id)
        if job is None:
            return False
        self._jobs[job_id] = job.model_copy(update={**changes, "updated_at": _now()}, deep=True)
        return True

    async def set_status(self, job_id: str, status: JobStatus) -> None:
        job = self._jobs.get(job_id)
        target = JobStatus(status)
        if job is None or not can_transition(job.status, target):
            logger.warning("Refused status change of analysis %s to %s", job_id, target.value)
            return
        self._touch(job_id, status=target)

    async def set_results(self, job_id: str, results: dict[str, Any]) -> None:
        self._touch(job_id, results=results)

    async def mark_saved(self, job_id: str) -> bool:
        return self._touch(job_id, saved=True)

    @staticmethod
    def _newest(jobs: Iterable[AnalysisJob], limit: int) -> List[AnalysisJob]:
        ordered = sorted(jobs, key=lambda job: job.created_at or _now(), reverse=True)
        return [job.model_copy(deep=True) for job in ordered[:limit]]

    async def list_recent(self, limit: int = 10) -> List[AnalysisJob]:
        return self._newest(
            (job for job in self._jobs.values() if job.status is JobStatus.COMPLETED),
            limit,
        )

    async def list_saved(
        self, user_id: Optional[int] = None, limit: int = 50
    ) -> List[AnalysisJob]:
        return self._newest(
            (
                job
                for job in self._jobs.values()
                if job.saved and (user_id is None or job.user_id == user_id)
            ),
            limit,
        )

    async def list_by_user(self, user_id: int, limit: int = 50) -> List[AnalysisJob]:
        return self._newest(
            (job for job in self._jobs.values() if job.user_id == user_id), limit
        )


class InMemoryAccountRepository(AccountRepositoryInterface):
    """Keep accounts in a process-local dict."""

    def __init__(self, accounts: Iterable[Account] = ()) -> None:
        self._accounts: dict[int, Account] = {account.id: account for account in accounts}

    def add(self, account: Account) -> Account:
        self._accounts[account.id] = account
        return account

    async def get_account(self, user_id: int) -> Optional[Account]:
        account = self._accounts.get(user_id)
        return account.model_copy() if account else None

    async def get_credit_balance(self, user_id: int) -> int:
        account = self._accounts.get(user_id)
        return account.credits if account else 0

    async def deduct_credits(self, user_id: int, amount: int) -> bool:
        # No await between the check and the write, so this is atomic on the loop.
        account = self._accounts.get(user_id)
        if account is None or account.credits < amount:
            return False
        self._accounts[user_id] = account.model_copy(
            update={"credits": account.credits - amount}
        )
        return True


class InMemoryDiscussionRepository(DiscussionRepositoryInterface):
    """Keep discussion threads in process-local lists, one per analysis."""

    def __init__(self) -> None:
        self._threads: dict[str, list[Discussion]] = {}

    async def create_discussion(self, discussion: Discussion) -> Discussion:
        stored = discussion.model_copy(
            update={"created_at": discussion.created_at or _now()}
        )
        self._threads.setdefault(stored.analysis_id, []).append(stored)
        return stored.model_copy()

    async def list_by_analysis(self, analysis_id: str) -> List[Discussion]:
        return [message.model_copy() for message in self._threads.get(analysis_id, [])]


__all__ = [
    "InMemoryAccountRepository",
    "InMemoryAnalysisRepository",
    "InMemoryDiscussionRepository",
]
