from contextlib import AbstractAsyncContextManager
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

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
from app.models.analysis import Analysis as AnalysisEntity
from app.models.discussion import Discussion as DiscussionEntity
from app.models.user import User as UserEntity

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _default_scope() -> AbstractAsyncContextManager[AsyncSession]:
    from app.database import session_scope

    return session_scope()


class SQLAlchemyAnalysisRepository(AnalysisRepositoryInterface):
    """SQLAlchemy implementation of the analysis repository.

    Runs outlive the request that launched them, so every call opens its own
    short-lived session instead of borrowing the request's.
    """

    def __init__(self, session_scope: SessionScope = _default_scope):
        self._session_scope = session_scope

    async def create_job(self, job: AnalysisJob) -> AnalysisJob:
        db_job = AnalysisEntity(
            id=job.id,
            type=job.type.value,
            text_content=job.text_content,
            additional_context=job.additional_context,
            llm_provider=job.llm_provider.value,
            status=job.status.value,
            user_id=job.user_id,
            results=job.results,
            saved=job.saved,
        )
        async with self._session_scope() as session:
            session.add(db_job)
            await session.commit()
            await session.refresh(db_job)
            return AnalysisJob.model_validate(db_job)

    async def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(AnalysisEntity).where(AnalysisEntity.id == job_id)
            )
            db_job = result.scalar_one_or_none()
            return AnalysisJob.model_validate(db_job) if db_job else None

    async def _update(self, job_id: str, *conditions: Any, **values: Any) -> int:
        async with self._session_scope() as session:
            result = await session.execute(
                update(AnalysisEntity)
                .where(AnalysisEntity.id == job_id, *conditions)
                .values(updated_at=datetime.utcnow(), **values)
            )
            await session.commit()
            return result.rowcount

    async def set_status(self, job_id: str, status: JobStatus) -> None:
        target = JobStatus(status)
        sources = [s.value for s in JobStatus if can_transition(s, target)]
        updated = await self._update(
            job_id, AnalysisEntity.status.in_(sources), status=target.value
        )
        if not updated:
            logger.warning("Refused status change of analysis %s to %s", job_id, target.value)

    async def set_results(self, job_id: str, results: dict[str, Any]) -> None:
        await self._update(job_id, results=results)

    async def mark_saved(self, job_id: str) -> bool:
        return await self._update(job_id, saved=True) > 0

    async def _list(self, *conditions: Any, limit: int) -> List[AnalysisJob]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(AnalysisEntity)
                .where(*conditions)
                .order_by(AnalysisEntity.created_at.desc())
                .limit(limit)
            )
            rows = result.scalars().all()
            return [AnalysisJob.model_validate(row) for row in rows]

    async def list_recent(self, limit: int = 10) -> List[AnalysisJob]:
        return await self._list(
            AnalysisEntity.status == JobStatus.COMPLETED.value, limit=limit
        )

    async def list_saved(
        self, user_id: Optional[int] = None, limit: int = 50
    ) -> List[AnalysisJob]:
        conditions = [AnalysisEntity.saved.is_(True)]
        if user_id is not None:
            conditions.append(AnalysisEntity.user_id == user_id)
        return await self._list(*conditions, limit=limit)

    async def list_by_user(self, user_id: int, limit: int = 50) -> List[AnalysisJob]:
        return await self._list(AnalysisEntity.user_id == user_id, limit=limit)


class SQLAlchemyAccountRepository(AccountRepositoryInterface):
    """SQLAlchemy implementation of the account repository"""

    def __init__(self, session_scope: SessionScope = _default_scope):
        self._session_scope = session_scope

    async def get_account(self, user_id: int) -> Optional[Account]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(UserEntity).where(UserEntity.id == user_id)
            )
            db_user = result.scalar_one_or_none()
            return Account.model_validate(db_user) if db_user else None

    async def get_credit_balance(self, user_id: int) -> int:
        async with self._session_scope() as session:
            result = await session.execute(
                select(UserEntity.credits).where(UserEntity.id == user_id)
            )
            return result.scalar_one_or_none() or 0

    async def deduct_credits(self, user_id: int, amount: int) -> bool:
        async with self._session_scope() as session:
            result = await session.execute(
                update(UserEntity)
                .where(UserEntity.id == user_id, UserEntity.credits >= amount)
                .values(credits=UserEntity.credits - amount)
            )
            await session.commit()
            return result.rowcount == 1


class SQLAlchemyDiscussionRepository(DiscussionRepositoryInterface):
    """SQLAlchemy implementation of the discussion repository"""

    def __init__(self, session_scope: SessionScope = _default_scope):
        self._session_scope = session_scope

    async def create_discussion(self, discussion: Discussion) -> Discussion:
        db_discussion = DiscussionEntity(
            id=discussion.id,
            analysis_id=discussion.analysis_id,
            message=discussion.message,
            sender=discussion.sender.value,
        )
        async with self._session_scope() as session:
            session.add(db_discussion)
            await session.commit()
            await session.refresh(db_discussion)
            return Discussion.model_validate(db_discussion)

    async def list_by_analysis(self, analysis_id: str) -> List[Discussion]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(DiscussionEntity)
                .where(DiscussionEntity.analysis_id == analysis_id)
                .order_by(DiscussionEntity.created_at)
            )
            return [Discussion.model_validate(row) for row in result.scalars().all()]
