"""Run-level behaviour of the analysis orchestrator and intake."""

from __future__ import annotations

import asyncio

import pytest

from conftest import Harness, Recorder, ScriptedProvider, fast_config

from app.domain.models import Account, AnalysisKind, JobStatus
from app.services.access_policy import AccessTier
from app.services.llm_client import ProviderHttpError
from app.services.orchestrator import (
    AnalysisPhaseError,
    JobNotFound,
    JobNotRunnable,
    RunOutcome,
)
from app.services.question_sets import (
    PromptMode,
    QuestionFamily,
    QuestionSet,
    get_question_set,
)

TERMINAL = {"complete", "error", "stopped"}


def test_literal_two_question_run(monkeypatch: pytest.MonkeyPatch) -> None:
    two_questions = QuestionSet(
        AnalysisKind.PSYCHOLOGICAL,
        QuestionFamily.PSYCHOLOGICAL,
        PromptMode.STANDARD,
        ("IS IT CLEAR?", "IS IT HONEST?"),
    )
    monkeypatch.setattr(
        "app.services.orchestrator.get_question_set", lambda kind: two_questions
    )
    harness = Harness(
        ScriptedProvider(["Hello", " world"], ["Answer ", "one."]),
        accounts=[Account(id=1, username="ada", credits=10_000)],
    )

    async def scenario():
        job = await harness.add_job(user_id=1)
        recorder = harness.listen(job.id)
        outcome = await harness.orchestrator.start(job.id)
        return job, recorder, outcome

    job, recorder, outcome = asyncio.run(scenario())

    assert outcome is RunOutcome.COMPLETED
    assert recorder.types == [
        "summary",
        "summary",
        "raw_stream",
        "raw_stream",
        "batch_complete",
        "complete",
    ]
    assert recorder.of_type("summary")[-1].content == "Hello world"
    assert [e.raw_content for e in recorder.of_type("raw_stream")] == ["Answer ", "Answer one."]
    batch_complete = recorder.of_type("batch_complete")[0]
    assert batch_complete.to_wire()["batchNumber"] == 1
    assert batch_complete.to_wire()["finalRawResponse"] == "Answer one."
    assert batch_complete.is_complete is True

    stored = asyncio.run(harness.jobs.get_job(job.id))
    assert stored.status is JobStatus.COMPLETED
    assert stored.results["summary"] == "Hello world"
    assert stored.results["batches"] == ["Answer one."]
    assert stored.results["questions"] == ["IS IT CLEAR?", "IS IT HONEST?"]
    assert stored.results["type"] == "psychological"
    assert stored.results["accessTier"] == "full"
    assert stored.results["completedAt"].endswith("Z")


def test_partial_tier_persists_untruncated_text() -> None:
    summary = "one two three four five six seven eight nine ten"
    answer = "1. alpha beta gamma delta epsilon zeta eta theta iota kappa"
    harness = Harness(
        ScriptedProvider(["one two three four five ", "six seven eight nine ten"], default=[answer]),
    )

    async def scenario():
        job = await harness.add_job()
        recorder = harness.listen(job.id)
        await harness.orchestrator.start(job.id)
        return job, recorder

    job, recorder = asyncio.run(scenario())

    assert recorder.of_type("summary")[-1].content == "one two three..."
    for event in recorder.of_type("batch_complete"):
        assert event.final_raw_response == "1. alpha beta..."

    stored = asyncio.run(harness.jobs.get_job(job.id))
    assert stored.results["summary"] == summary
    assert stored.results["batches"] == [answer, answer]
    assert stored.results["accessTier"] == AccessTier.PARTIAL.value


def test_batches_follow_question_set_and_prompt_mode() -> None:
    harness = Harness(ScriptedProvider(["Summary."]))

    async def scenario():
        job = await harness.add_job(
            kind=AnalysisKind.MICROPSYCHOPATHOLOGICAL, context="Written in 1990."
        )
        await harness.orchestrator.start(job.id)

    asyncio.run(scenario())

    questions = get_question_set(AnalysisKind.MICROPSYCHOPATHOLOGICAL).questions
    # One summary call plus ceil(10 / 5) batch calls.
    assert len(harness.provider.calls) == 3
    summary_prompt = harness.provider.calls[0][1][0]["content"]
    assert summary_prompt.startswith("First, summarize this text and categorize it:")

    first_batch = harness.provider.calls[1][1][0]["content"]
    assert first_batch.startswith("MICRO PSYCHOPATHOLOGICAL ANALYSIS")
    assert "Additional Context: Written in 1990." in first_batch
    assert f"1. {questions[0]}" in first_batch
    assert f"5. {questions[4]}" in first_batch
    assert questions[5] not in first_batch

    second_batch = harness.provider.calls[2][1][0]["content"]
    assert f"1. {questions[5]}" in second_batch


@pytest.mark.parametrize(
    "scripts, expected",
    [
        ((["Fine."],), "complete"),
        (([],), "error"),
        ((["Fine."], ProviderHttpError("zhi1", 500, "boom")), "error"),
    ],
)
def test_exactly_one_terminal_event(scripts, expected) -> None:
    harness = Harness(ScriptedProvider(*scripts))

    async def scenario():
        job = await harness.intake.submit(
            kind=AnalysisKind.PSYCHOLOGICAL, text="Some text.", provider="zhi1"
        )
        recorder = harness.listen(job.id)
        await harness.intake.wait_idle()
        return recorder

    recorder = asyncio.run(scenario())

    terminal = [t for t in recorder.types if t in TERMINAL]
    assert terminal == [expected]
    assert recorder.types[-1] == expected


def test_stop_before_first_batch_leaves_results_untouched() -> None:
    harness = Harness(ScriptedProvider(["Hello", " world"]))

    async def scenario():
        job = await harness.add_job()
        recorder = harness.listen(job.id)

        def stop_on_summary(event) -> None:
            if event.type == "summary":
                harness.registry.stop(job.id)

        harness.registry.subscribe(job.id, stop_on_summary)
        outcome = await harness.orchestrator.start(job.id)
        return job, recorder, outcome

    job, recorder, outcome = asyncio.run(scenario())

    assert outcome is RunOutcome.STOPPED
    assert recorder.types == ["summary", "stopped"]
    assert not recorder.of_type("raw_stream")
    assert not recorder.of_type("batch_complete")
    # Only the summary call reached the vendor.
    assert len(harness.provider.calls) == 1

    stored = asyncio.run(harness.jobs.get_job(job.id))
    assert stored.results is None
    assert stored.status is JobStatus.STREAMING


def test_stop_during_delay_ends_run_within_a_tick() -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        config=fast_config(inter_batch_delay_seconds=30, delay_tick_seconds=0.01),
    )

    async def scenario():
        job = await harness.add_job()
        recorder = harness.listen(job.id)

        def stop_on_delay(event) -> None:
            if event.type == "delay" and event.progress > 0:
                harness.registry.stop(job.id)

        harness.registry.subscribe(job.id, stop_on_delay)
        outcome = await asyncio.wait_for(harness.orchestrator.start(job.id), 5)
        return recorder, outcome

    recorder, outcome = asyncio.run(scenario())

    assert outcome is RunOutcome.STOPPED
    assert recorder.types[-1] == "stopped"
    assert len(recorder.of_type("batch_complete")) == 1
    assert len(harness.provider.calls) == 2


def test_delay_progress_between_batches() -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        config=fast_config(inter_batch_delay_seconds=0.01, delay_tick_seconds=0.005),
    )

    async def scenario():
        job = await harness.add_job(kind=AnalysisKind.PSYCHOLOGICAL)
        recorder = harness.listen(job.id)
        await harness.orchestrator.start(job.id)
        return recorder

    recorder = asyncio.run(scenario())

    # Two batches, so exactly one pause between them.
    assert [e.progress for e in recorder.of_type("delay")] == [0, 50, 100]
    first_delay = recorder.types.index("delay")
    assert recorder.types[first_delay - 1] == "batch_complete"
    assert recorder.types[first_delay + 3] == "raw_stream"


def test_credit_gate_below_cost_is_partial_without_deduction() -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        accounts=[Account(id=7, username="low", credits=1000)],
    )

    async def scenario():
        job = await harness.add_job(kind=AnalysisKind.PSYCHOLOGICAL, user_id=7)
        await harness.orchestrator.start(job.id)
        return await harness.jobs.get_job(job.id), await harness.accounts.get_credit_balance(7)

    stored, balance = asyncio.run(scenario())

    assert stored.results["accessTier"] == "partial"
    assert balance == 1000


def test_credit_gate_at_cost_is_full_and_deducts_exactly() -> None:
    cost = fast_config().credit_cost("psychological")
    harness = Harness(
        ScriptedProvider(["Summary."]),
        accounts=[Account(id=7, username="rich", credits=cost + 250)],
    )

    async def scenario():
        job = await harness.add_job(kind=AnalysisKind.PSYCHOLOGICAL, user_id=7)
        await harness.orchestrator.start(job.id)
        return await harness.jobs.get_job(job.id), await harness.accounts.get_credit_balance(7)

    stored, balance = asyncio.run(scenario())

    assert stored.results["accessTier"] == "full"
    assert balance == 250


def test_credit_gate_unlimited_account_is_never_charged() -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        accounts=[Account(id=1, username="owner", credits=0, unlimited=True)],
    )

    async def scenario():
        job = await harness.add_job(kind=AnalysisKind.COMPREHENSIVE_COGNITIVE, user_id=1)
        await harness.orchestrator.start(job.id)
        return await harness.jobs.get_job(job.id), await harness.accounts.get_credit_balance(1)

    stored, balance = asyncio.run(scenario())

    assert stored.results["accessTier"] == "full"
    assert balance == 0


def test_credit_costs_are_overridable() -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        accounts=[Account(id=3, username="cheap", credits=10)],
        config=fast_config(credit_costs={"psychological": 10}),
    )

    async def scenario():
        job = await harness.add_job(kind=AnalysisKind.PSYCHOLOGICAL, user_id=3)
        await harness.orchestrator.start(job.id)
        return await harness.jobs.get_job(job.id), await harness.accounts.get_credit_balance(3)

    stored, balance = asyncio.run(scenario())

    assert stored.results["accessTier"] == "full"
    assert balance == 0


def test_concurrent_runs_cannot_overdraw_credits() -> None:
    cost = fast_config().credit_cost("psychological")
    harness = Harness(
        ScriptedProvider(default=["1. Done. 70/100"]),
        accounts=[Account(id=9, username="twice", credits=cost)],
    )

    async def scenario():
        first = await harness.add_job(user_id=9)
        second = await harness.add_job(user_id=9)
        await asyncio.gather(
            harness.orchestrator.start(first.id),
            harness.orchestrator.start(second.id),
        )
        return [
            (await harness.jobs.get_job(job.id)).results["accessTier"]
            for job in (first, second)
        ], await harness.accounts.get_credit_balance(9)

    tiers, balance = asyncio.run(scenario())

    assert sorted(tiers) == ["full", "partial"]
    assert balance == 0


def test_empty_summary_stream_fails_the_job() -> None:
    harness = Harness(ScriptedProvider([]))

    async def scenario():
        job = await harness.add_job()
        recorder = harness.listen(job.id)
        with pytest.raises(AnalysisPhaseError) as excinfo:
            await harness.orchestrator.start(job.id)
        return job, recorder, excinfo.value

    job, recorder, error = asyncio.run(scenario())

    assert "Summary generation failed" in str(error)
    assert recorder.of_type("summary") == []
    stored = asyncio.run(harness.jobs.get_job(job.id))
    assert stored.status is JobStatus.ERROR
    assert "Summary generation failed" in stored.results["error"]
    assert stored.results["type"] == "psychological"
    assert "failedAt" in stored.results


def test_empty_batch_aborts_the_whole_job() -> None:
    harness = Harness(ScriptedProvider(["Summary."], ["1. First batch."], []))

    async def scenario():
        job = await harness.add_job(kind=AnalysisKind.PSYCHOLOGICAL)
        with pytest.raises(AnalysisPhaseError, match="Batch 2 processing failed"):
            await harness.orchestrator.start(job.id)
        return await harness.jobs.get_job(job.id)

    stored = asyncio.run(scenario())

    assert stored.status is JobStatus.ERROR
    assert "batches" not in stored.results
    assert "No content received from LLM for batch 2" in stored.results["error"]


def test_intake_broadcasts_run_failures() -> None:
    harness = Harness(ScriptedProvider(ProviderHttpError("zhi1", 401, "bad key")))

    async def scenario():
        job = await harness.intake.submit(
            kind="cognitive", text="Text.", provider="zhi1"
        )
        recorder = harness.listen(job.id)
        await harness.intake.wait_idle()
        return job, recorder

    job, recorder = asyncio.run(scenario())

    errors = recorder.of_type("error")
    assert len(errors) == 1
    assert "Summary generation failed" in errors[0].error
    assert "401" in errors[0].error
    assert job.id not in harness.registry
    assert harness.intake.running == 0


def test_missing_job_raises() -> None:
    harness = Harness(ScriptedProvider())

    with pytest.raises(JobNotFound):
        asyncio.run(harness.orchestrator.start("does-not-exist"))


def test_only_pending_jobs_can_start() -> None:
    harness = Harness(ScriptedProvider(["Summary."]))

    async def scenario():
        job = await harness.add_job()
        await harness.orchestrator.start(job.id)
        with pytest.raises(JobNotRunnable):
            await harness.orchestrator.start(job.id)

    asyncio.run(scenario())
    # The rejected second start never reached the vendor.
    assert len(harness.provider.calls) == 3


def test_contest_reruns_with_feedback_appended() -> None:
    harness = Harness(ScriptedProvider(default=["1. Fine. 60/100"]))

    async def scenario():
        original = await harness.add_job(context="Draft essay.")
        contested = await harness.intake.contest(original.id, "Scores are too low", user_id=4)
        await harness.intake.wait_idle()
        return original, await harness.jobs.get_job(contested.id)

    original, contested = asyncio.run(scenario())

    assert contested.id != original.id
    assert contested.text_content == original.text_content
    assert contested.additional_context == "Draft essay.\n\nUser feedback: Scores are too low"
    assert contested.user_id == 4
    assert contested.status is JobStatus.COMPLETED


def test_contest_of_unknown_job_raises() -> None:
    harness = Harness(ScriptedProvider())

    with pytest.raises(JobNotFound):
        asyncio.run(harness.intake.contest("missing", "why?"))


def test_stop_while_resolving_access_is_honoured(monkeypatch: pytest.MonkeyPatch) -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        accounts=[Account(id=1, username="ada", credits=10_000)],
    )
    lookup = harness.accounts.get_account

    async def slow_lookup(user_id):
        await asyncio.sleep(0.05)
        return await lookup(user_id)

    monkeypatch.setattr(harness.accounts, "get_account", slow_lookup)

    async def scenario():
        job = await harness.add_job(user_id=1)
        recorder = harness.listen(job.id)
        run = asyncio.create_task(harness.orchestrator.start(job.id))
        await asyncio.sleep(0.01)
        accepted = harness.registry.stop(job.id)
        return job, recorder, accepted, await run

    job, recorder, accepted, outcome = asyncio.run(scenario())

    assert accepted is True
    assert outcome is RunOutcome.STOPPED
    assert recorder.types == ["stopped"]
    assert harness.provider.calls == []
    assert asyncio.run(harness.accounts.get_credit_balance(1)) == 10_000

    stored = asyncio.run(harness.jobs.get_job(job.id))
    assert stored.status is JobStatus.STREAMING
    assert stored.results is None


def test_stop_before_the_run_task_starts() -> None:
    harness = Harness(ScriptedProvider(["Summary."]))

    async def scenario():
        job = await harness.intake.submit(
            kind="cognitive", text="Text.", provider="zhi1"
        )
        recorder = harness.listen(job.id)
        accepted = harness.registry.stop(job.id)
        await harness.intake.wait_idle()
        return job, recorder, accepted

    job, recorder, accepted = asyncio.run(scenario())

    assert accepted is True
    assert recorder.types == ["stopped"]
    assert harness.provider.calls == []
    assert job.id not in harness.registry
    stored = asyncio.run(harness.jobs.get_job(job.id))
    assert stored.status is JobStatus.STREAMING
    assert stored.results is None


def test_late_listener_of_stopped_run_is_told_it_stopped() -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        config=fast_config(inter_batch_delay_seconds=30, delay_tick_seconds=0.01),
    )

    async def scenario():
        job = await harness.add_job()
        late = Recorder()

        def stop_then_relisten(event) -> None:
            if event.type == "delay" and event.progress > 0:
                harness.registry.stop(job.id)
                harness.registry.subscribe(job.id, late)

        harness.registry.subscribe(job.id, stop_then_relisten)
        outcome = await asyncio.wait_for(harness.orchestrator.start(job.id), 5)
        return outcome, late

    outcome, late = asyncio.run(scenario())

    assert outcome is RunOutcome.STOPPED
    # Nothing from the halted run leaks to the new channel, only the stop notice.
    assert late.types == ["stopped"]


def test_second_launch_leaves_the_running_job_alone() -> None:
    harness = Harness(
        ScriptedProvider(["Summary."]),
        config=fast_config(inter_batch_delay_seconds=0.05, delay_tick_seconds=0.01),
    )

    async def scenario():
        job = await harness.intake.submit(
            kind="psychological", text="Text.", provider="zhi1"
        )
        recorder = harness.listen(job.id)
        await asyncio.sleep(0.02)
        harness.intake.launch(job.id)
        await harness.intake.wait_idle()
        return job, recorder

    job, recorder = asyncio.run(scenario())

    assert recorder.types[-1] == "complete"
    assert not recorder.of_type("error")
    assert not recorder.of_type("stopped")
    stored = asyncio.run(harness.jobs.get_job(job.id))
    assert stored.status is JobStatus.COMPLETED
    assert job.id not in harness.registry


def test_relaunch_of_settled_job_releases_its_channel() -> None:
    harness = Harness(ScriptedProvider(["Summary."]))

    async def scenario():
        job = await harness.add_job()
        await harness.orchestrator.start(job.id)
        await harness.intake.launch(job.id)
        return job

    job = asyncio.run(scenario())

    assert job.id not in harness.registry
    assert len(harness.provider.calls) == 3
