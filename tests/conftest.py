"""Shared test helpers: in-memory storage and a scripted LLM vendor."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Iterable, Optional, Sequence, Union

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from app.config.dependencies import reset_dependencies  # noqa: E402
from app.config.settings import AnalysisConfig, settings  # noqa: E402

settings.storage_backend = "memory"
reset_dependencies()

from app.domain.models import Account, AnalysisJob, AnalysisKind, ProviderId  # noqa: E402
from app.infrastructure.persistence.repositories_memory import (  # noqa: E402
    InMemoryAccountRepository,
    InMemoryAnalysisRepository,
)
from app.services.broadcast import BroadcastRegistry  # noqa: E402
from app.services.intake import AnalysisIntake  # noqa: E402
from app.services.orchestrator import AnalysisOrchestrator  # noqa: E402

Script = Union[Sequence[str], Exception]

DEFAULT_ANSWER = ("1. Insightful and well developed. Score: 82/100",)


class ScriptedProvider:
    """Stand-in for ProviderClient replaying one scripted stream per call."""

    def __init__(self, *scripts: Script, default: Script = DEFAULT_ANSWER) -> None:
        self.scripts = list(scripts)
        self.default = default
        self.calls: list[tuple[str, list[dict[str, str]]]] = []

    async def stream(self, provider, messages, on_chunk=None):
        self.calls.append((ProviderId(provider).value, [dict(m) for m in messages]))
        script = self.scripts.pop(0) if self.scripts else self.default
        if isinstance(script, Exception):
            raise script
        for text in script:
            if on_chunk is not None:
                on_chunk(text)
            yield text

    async def aclose(self) -> None:
        return None


class Recorder:
    """Subscriber collecting every event it is handed."""

    def __init__(self) -> None:
        self.events: list = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.type for event in self.events]

    def of_type(self, event_type: str) -> list:
        return [event for event in self.events if event.type == event_type]


class Harness:
    """Orchestrator wired to in-memory collaborators."""

    def __init__(
        self,
        provider: ScriptedProvider,
        accounts: Iterable[Account] = (),
        config: Optional[AnalysisConfig] = None,
    ) -> None:
        self.jobs = InMemoryAnalysisRepository()
        self.accounts = InMemoryAccountRepository(accounts)
        self.registry = BroadcastRegistry()
        self.provider = provider
        self.config = config or fast_config()
        self.orchestrator = AnalysisOrchestrator(
            self.jobs, self.accounts, provider, self.registry, self.config
        )
        self.intake = AnalysisIntake(self.jobs, self.orchestrator, self.registry)

    async def add_job(
        self,
        kind: AnalysisKind = AnalysisKind.PSYCHOLOGICAL,
        text: str = "The quick brown fox jumps over the lazy dog.",
        user_id: Optional[int] = None,
        context: Optional[str] = None,
    ) -> AnalysisJob:
        return await self.intake.create(
            kind=kind,
            text=text,
            provider=ProviderId.OPENAI,
            context=context,
            user_id=user_id,
        )

    def listen(self, job_id: str) -> Recorder:
        recorder = Recorder()
        self.registry.subscribe(job_id, recorder)
        return recorder


def fast_config(**overrides) -> AnalysisConfig:
    values = {"inter_batch_delay_seconds": 0, "delay_tick_seconds": 0.001}
    values.update(overrides)
    return AnalysisConfig(**values)
