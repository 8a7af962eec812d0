from __future__ import annotations

import asyncio

from app.domain.models import (
    Account,
    AnalysisJob,
    AnalysisKind,
    Discussion,
    DiscussionSender,
    JobStatus,
    ProviderId,
)
from app.infrastructure.persistence.repositories_memory import (
    InMemoryAccountRepository,
    InMemoryAnalysisRepository,
    InMemoryDiscussionRepository,
)


def _job(job_id: str, user_id=None) -> AnalysisJob:
    return AnalysisJob(
        id=job_id,
        type=AnalysisKind.COGNITIVE,
        text_content="text",
        llm_provider=ProviderId.OPENAI,
        user_id=user_id,
    )


def test_jobs_are_copied_in_and_out() -> None:
    repo = InMemoryAnalysisRepository()

    async def scenario():
        created = await repo.create_job(_job("a"))
        created.text_content = "mutated"
        await repo.set_results("a", {"summary": "s"})
        fetched = await repo.get_job("a")
        fetched.results["summary"] = "changed"
        return created, await repo.get_job("a")

    created, stored = asyncio.run(scenario())

    assert created.created_at is not None
    assert stored.text_content == "text"
    assert stored.results == {"summary": "s"}


def test_status_changes_follow_the_lifecycle() -> None:
    repo = InMemoryAnalysisRepository()

    async def scenario():
        await repo.create_job(_job("a"))
        await repo.set_status("a", JobStatus.STREAMING)
        await repo.set_status("a", JobStatus.COMPLETED)
        await repo.set_status("a", JobStatus.ERROR)
        return await repo.get_job("a")

    assert asyncio.run(scenario()).status is JobStatus.COMPLETED


def test_listings() -> None:
    repo = InMemoryAnalysisRepository()

    async def scenario():
        for job_id, user_id in (("a", 1), ("b", 2), ("c", 1)):
            await repo.create_job(_job(job_id, user_id))
        await repo.set_status("a", JobStatus.STREAMING)
        await repo.set_status("a", JobStatus.COMPLETED)
        assert await repo.mark_saved("c") is True
        assert await repo.mark_saved("missing") is False
        return (
            await repo.list_recent(),
            await repo.list_saved(),
            await repo.list_saved(user_id=2),
            await repo.list_by_user(1),
        )

    recent, saved, saved_by_other, mine = asyncio.run(scenario())

    assert [job.id for job in recent] == ["a"]
    assert [job.id for job in saved] == ["c"]
    assert saved_by_other == []
    assert {job.id for job in mine} == {"a", "c"}


def test_conditional_credit_deduction() -> None:
    repo = InMemoryAccountRepository([Account(id=1, username="ada", credits=100)])

    async def scenario():
        first = await repo.deduct_credits(1, 60)
        second = await repo.deduct_credits(1, 60)
        unknown = await repo.deduct_credits(99, 1)
        return first, second, unknown, await repo.get_credit_balance(1)

    assert asyncio.run(scenario()) == (True, False, False, 40)


def test_discussions_are_kept_per_analysis_in_order() -> None:
    repo = InMemoryDiscussionRepository()

    async def scenario():
        thread = (("m1", "a", "first"), ("m2", "b", "other"), ("m3", "a", "second"))
        for message_id, analysis_id, text in thread:
            await repo.create_discussion(
                Discussion(
                    id=message_id,
                    analysis_id=analysis_id,
                    message=text,
                    sender=DiscussionSender.USER,
                )
            )
        return await repo.list_by_analysis("a"), await repo.list_by_analysis("none")

    thread, empty = asyncio.run(scenario())

    assert [message.message for message in thread] == ["first", "second"]
    assert all(message.created_at is not None for message in thread)
    assert empty == []
