"""SQL repositories exercised against a throwaway SQLite database."""

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.domain.models import (
    AnalysisJob,
    AnalysisKind,
    Discussion,
    DiscussionSender,
    JobStatus,
    ProviderId,
)
from app.infrastructure.persistence.repositories_sqlalchemy import (
    SQLAlchemyAccountRepository,
    SQLAlchemyAnalysisRepository,
    SQLAlchemyDiscussionRepository,
)
from app.models import Base, User


def _with_repositories(tmp_path, scenario):
    """Run ``scenario(jobs, accounts, discussions)`` with user 1 holding 100 credits."""

    async def main():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'analyses.db'}")
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            sessions = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
            async with sessions() as session:
                session.add(User(id=1, username="ada", credits=100))
                await session.commit()
            return await scenario(
                SQLAlchemyAnalysisRepository(sessions),
                SQLAlchemyAccountRepository(sessions),
                SQLAlchemyDiscussionRepository(sessions),
            )
        finally:
            await engine.dispose()

    return asyncio.run(main())


def _job(job_id: str, user_id=None) -> AnalysisJob:
    return AnalysisJob(
        id=job_id,
        type=AnalysisKind.COGNITIVE,
        text_content="text",
        llm_provider=ProviderId.ANTHROPIC,
        user_id=user_id,
    )


def test_deduction_of_exactly_the_balance(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        return await accounts.deduct_credits(1, 100), await accounts.get_credit_balance(1)

    assert _with_repositories(tmp_path, scenario) == (True, 0)


def test_deduction_above_the_balance_is_refused(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        return (
            await accounts.deduct_credits(1, 101),
            await accounts.deduct_credits(99, 1),
            await accounts.get_credit_balance(1),
            await accounts.get_credit_balance(99),
        )

    assert _with_repositories(tmp_path, scenario) == (False, False, 100, 0)


def test_concurrent_deductions_cannot_overdraw(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        outcomes = await asyncio.gather(
            accounts.deduct_credits(1, 60),
            accounts.deduct_credits(1, 60),
        )
        return sorted(outcomes), await accounts.get_credit_balance(1)

    outcomes, balance = _with_repositories(tmp_path, scenario)

    assert outcomes == [False, True]
    assert balance == 40


def test_account_lookup(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        return await accounts.get_account(1), await accounts.get_account(2)

    account, missing = _with_repositories(tmp_path, scenario)

    assert account.username == "ada"
    assert account.credits == 100
    assert account.unlimited is False
    assert missing is None


def test_status_never_moves_backwards(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        await jobs.create_job(_job("a", user_id=1))
        await jobs.set_status("a", JobStatus.STREAMING)
        await jobs.set_status("a", JobStatus.COMPLETED)
        await jobs.set_status("a", JobStatus.STREAMING)
        await jobs.set_status("a", JobStatus.ERROR)
        return await jobs.get_job("a")

    assert _with_repositories(tmp_path, scenario).status is JobStatus.COMPLETED


def test_pending_job_cannot_skip_to_completed(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        await jobs.create_job(_job("a"))
        await jobs.set_status("a", JobStatus.COMPLETED)
        return await jobs.get_job("a")

    assert _with_repositories(tmp_path, scenario).status is JobStatus.PENDING


def test_results_and_listings(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        await jobs.create_job(_job("a", user_id=1))
        await jobs.create_job(_job("b"))
        await jobs.set_status("a", JobStatus.STREAMING)
        await jobs.set_results("a", {"summary": "s", "batches": ["1. ok"]})
        await jobs.set_status("a", JobStatus.COMPLETED)
        saved = await jobs.mark_saved("b")
        missing = await jobs.mark_saved("nope")
        return (
            await jobs.get_job("a"),
            saved,
            missing,
            await jobs.list_recent(),
            await jobs.list_saved(),
            await jobs.list_by_user(1),
        )

    stored, saved, missing, recent, saved_jobs, mine = _with_repositories(tmp_path, scenario)

    assert stored.results == {"summary": "s", "batches": ["1. ok"]}
    assert stored.llm_provider is ProviderId.ANTHROPIC
    assert saved is True
    assert missing is False
    assert [job.id for job in recent] == ["a"]
    assert [job.id for job in saved_jobs] == ["b"]
    assert [job.id for job in mine] == ["a"]


def test_discussion_thread(tmp_path) -> None:
    async def scenario(jobs, accounts, discussions):
        for message_id, text, sender in (
            ("m1", "Why this score?", DiscussionSender.USER),
            ("m2", "Scores follow the rubric.", DiscussionSender.SYSTEM),
        ):
            await discussions.create_discussion(
                Discussion(id=message_id, analysis_id="a", message=text, sender=sender)
            )
        return await discussions.list_by_analysis("a"), await discussions.list_by_analysis("b")

    thread, empty = _with_repositories(tmp_path, scenario)

    assert [(m.id, m.sender) for m in thread] == [
        ("m1", DiscussionSender.USER),
        ("m2", DiscussionSender.SYSTEM),
    ]
    assert thread[0].created_at is not None
    assert empty == []
