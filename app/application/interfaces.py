from abc import ABC, abstractmethod
from typing import Any, List, Optional

from app.domain.models import Account, AnalysisJob, Discussion, JobStatus


class AnalysisRepositoryInterface(ABC):
    """Persistence contract for analysis jobs"""

    @abstractmethod
    async def create_job(self, job: AnalysisJob) -> AnalysisJob:
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        ...

    @abstractmethod
    async def set_status(self, job_id: str, status: JobStatus) -> None:
        ...

    @abstractmethod
    async def set_results(self, job_id: str, results: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def mark_saved(self, job_id: str) -> bool:
        ...

    @abstractmethod
    async def list_recent(self, limit: int = 10) -> List[AnalysisJob]:
        """Most recent completed jobs, newest first."""

    @abstractmethod
    async def list_saved(
        self, user_id: Optional[int] = None, limit: int = 50
    ) -> List[AnalysisJob]:
        ...

    @abstractmethod
    async def list_by_user(self, user_id: int, limit: int = 50) -> List[AnalysisJob]:
        ...


class AccountRepositoryInterface(ABC):
    """Persistence contract for credit-holding accounts"""

    @abstractmethod
    async def get_account(self, user_id: int) -> Optional[Account]:
        ...

    @abstractmethod
    async def get_credit_balance(self, user_id: int) -> int:
        ...

    @abstractmethod
    async def deduct_credits(self, user_id: int, amount: int) -> bool:
        """Atomically subtract ``amount`` only if the balance covers it."""


class DiscussionRepositoryInterface(ABC):
    """Persistence contract for discussion messages"""

    @abstractmethod
    async def create_discussion(self, discussion: Discussion) -> Discussion:
        ...

    @abstractmethod
    async def list_by_analysis(self, analysis_id: str) -> List[Discussion]:
        """Messages of one analysis, oldest first."""
