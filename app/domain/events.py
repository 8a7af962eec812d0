"""Wire events broadcast to the subscribers of an analysis job.

Every event is a snapshot, never a diff. Field names and the ``type``
discriminator are the contract with existing browser clients, so they are
serialized with their camelCase aliases exactly as listed here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def clock_timestamp(moment: datetime | None = None) -> str:
    """Return a ``h:mm:ss AM`` style local time label."""

    moment = moment or datetime.now()
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment:%M}:{moment:%S} {meridiem}"


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class SummaryEvent(_Event):
    type: Literal["summary"] = "summary"
    content: str


class RawStreamEvent(_Event):
    type: Literal["raw_stream"] = "raw_stream"
    batch_number: int = Field(alias="batchNumber")
    raw_content: str = Field(alias="rawContent")
    timestamp: str = Field(default_factory=clock_timestamp)


class BatchCompleteEvent(_Event):
    type: Literal["batch_complete"] = "batch_complete"
    batch_number: int = Field(alias="batchNumber")
    final_raw_response: str = Field(alias="finalRawResponse")
    is_complete: bool = Field(default=True, alias="isComplete")
    timestamp: str = Field(default_factory=clock_timestamp)


class DelayEvent(_Event):
    type: Literal["delay"] = "delay"
    progress: int


class CompleteEvent(_Event):
    type: Literal["complete"] = "complete"


class StoppedEvent(_Event):
    type: Literal["stopped"] = "stopped"
    message: str = "Analysis stopped by user"


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Annotated[
    Union[
        SummaryEvent,
        RawStreamEvent,
        BatchCompleteEvent,
        DelayEvent,
        CompleteEvent,
        StoppedEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)

TERMINAL_EVENT_TYPES = frozenset({"complete", "stopped", "error"})


def is_terminal(event: StreamEvent) -> bool:
    """Return True for the events that end a job's observable stream."""

    return event.type in TERMINAL_EVENT_TYPES


__all__ = [
    "BatchCompleteEvent",
    "CompleteEvent",
    "DelayEvent",
    "ErrorEvent",
    "RawStreamEvent",
    "StoppedEvent",
    "StreamEvent",
    "SummaryEvent",
    "TERMINAL_EVENT_TYPES",
    "clock_timestamp",
    "is_terminal",
    "stream_event_adapter",
]
