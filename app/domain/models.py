from typing import Any, Optional
from pydantic import BaseModel
from datetime import datetime
from enum import Enum


class AnalysisKind(str, Enum):
    COGNITIVE = "cognitive"
    COMPREHENSIVE_COGNITIVE = "comprehensive-cognitive"
    MICROCOGNITIVE = "microcognitive"
    PSYCHOLOGICAL = "psychological"
    COMPREHENSIVE_PSYCHOLOGICAL = "comprehensive-psychological"
    MICROPSYCHOLOGICAL = "micropsychological"
    PSYCHOPATHOLOGICAL = "psychopathological"
    COMPREHENSIVE_PSYCHOPATHOLOGICAL = "comprehensive-psychopathological"
    MICROPSYCHOPATHOLOGICAL = "micropsychopathological"


class ProviderId(str, Enum):
    """Wire identifiers of the supported LLM vendors."""

    OPENAI = "zhi1"
    ANTHROPIC = "zhi2"
    DEEPSEEK = "zhi3"
    PERPLEXITY = "zhi4"


class JobStatus(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERROR = "error"


# Allowed forward moves of the job lifecycle.
_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.STREAMING, JobStatus.ERROR}),
    JobStatus.STREAMING: frozenset({JobStatus.COMPLETED, JobStatus.ERROR}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ERROR: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True when ``current -> target`` respects the monotonic lifecycle."""

    return target in _TRANSITIONS[current]


class AnalysisJob(BaseModel):
    """Domain model for one user-requested analysis run"""
    id: str
    type: AnalysisKind
    text_content: str
    additional_context: Optional[str] = None
    llm_provider: ProviderId
    status: JobStatus = JobStatus.PENDING
    user_id: Optional[int] = None
    results: Optional[dict[str, Any]] = None
    saved: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Account(BaseModel):
    """Domain model for the credit-holding account behind a job"""
    id: int
    username: str
    credits: int = 0
    unlimited: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DiscussionSender(str, Enum):
    USER = "user"
    SYSTEM = "system"


class Discussion(BaseModel):
    """One message of the conversation attached to an analysis"""
    id: str
    analysis_id: str
    message: str
    sender: DiscussionSender
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
