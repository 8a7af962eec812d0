"""Process-wide service instances shared by the HTTP layer and background runs."""

from functools import lru_cache

from app.application.interfaces import (
    AccountRepositoryInterface,
    AnalysisRepositoryInterface,
    DiscussionRepositoryInterface,
)
from app.services.broadcast import BroadcastRegistry
from app.services.intake import AnalysisIntake
from app.services.llm_client import ProviderClient
from app.services.orchestrator import AnalysisOrchestrator

from .settings import settings


@lru_cache
def get_registry() -> BroadcastRegistry:
    return BroadcastRegistry()


@lru_cache
def get_provider_client() -> ProviderClient:
    return ProviderClient(settings.providers)


@lru_cache
def get_analysis_repository() -> AnalysisRepositoryInterface:
    """Repository selected by ``STORAGE_BACKEND``."""

    if settings.storage_backend == "memory":
        from app.infrastructure.persistence.repositories_memory import (
            InMemoryAnalysisRepository,
        )

        return InMemoryAnalysisRepository()

    from app.infrastructure.persistence.repositories_sqlalchemy import (
        SQLAlchemyAnalysisRepository,
    )

    return SQLAlchemyAnalysisRepository()


@lru_cache
def get_account_repository() -> AccountRepositoryInterface:
    if settings.storage_backend == "memory":
        from app.infrastructure.persistence.repositories_memory import (
            InMemoryAccountRepository,
        )

        return InMemoryAccountRepository()

    from app.infrastructure.persistence.repositories_sqlalchemy import (
        SQLAlchemyAccountRepository,
    )

    return SQLAlchemyAccountRepository()


@lru_cache
def get_discussion_repository() -> DiscussionRepositoryInterface:
    if settings.storage_backend == "memory":
        from app.infrastructure.persistence.repositories_memory import (
            InMemoryDiscussionRepository,
        )

        return InMemoryDiscussionRepository()

    from app.infrastructure.persistence.repositories_sqlalchemy import (
        SQLAlchemyDiscussionRepository,
    )

    return SQLAlchemyDiscussionRepository()


@lru_cache
def get_orchestrator() -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        get_analysis_repository(),
        get_account_repository(),
        get_provider_client(),
        get_registry(),
        settings.analysis,
    )


@lru_cache
def get_intake() -> AnalysisIntake:
    return AnalysisIntake(get_analysis_repository(), get_orchestrator(), get_registry())


def reset_dependencies() -> None:
    """Drop every cached instance so the next lookup rebuilds it from settings."""

    for getter in (
        get_registry,
        get_provider_client,
        get_analysis_repository,
        get_account_repository,
        get_discussion_repository,
        get_orchestrator,
        get_intake,
    ):
        getter.cache_clear()
