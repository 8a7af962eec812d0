"""In-process fan-out of stream events, one channel per in-flight job."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from app.domain.events import StoppedEvent, StreamEvent
from app.telemetry import set_open_channels

logger = logging.getLogger(__name__)

Subscriber = Callable[[StreamEvent], None]


@dataclass
class BroadcastChannel:
    """Subscribers of one job plus the flag and signal used to halt its run."""

    subscribers: list[Subscriber] = field(default_factory=list)
    active: bool = True
    halted: asyncio.Event = field(default_factory=asyncio.Event)

    def add(self, subscriber: Subscriber) -> None:
        if not any(existing is subscriber for existing in self.subscribers):
            self.subscribers.append(subscriber)

    def deactivate(self) -> None:
        self.active = False
        self.halted.set()

    async def wait_for_halt(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True as soon as the channel is halted."""

        if not self.active:
            return True
        try:
            await asyncio.wait_for(self.halted.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class BroadcastRegistry:
    """Map job ids to broadcast channels.

    A channel exists while a run is in flight or a listener is attached.
    Emitting to an absent or inactive channel is a no-op, which is how a
    stopped run goes quiet without raising.

    Halting a channel (``stop`` or ``unsubscribe_all``) is remembered until the
    job is discarded, so a run that claims its channel afterwards starts out
    halted instead of on a fresh channel.
    """

    def __init__(self) -> None:
        self._channels: dict[str, BroadcastChannel] = {}
        self._halted: set[str] = set()

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._channels

    def _publish_size(self) -> None:
        set_open_channels(len(self._channels))

    def open(self, job_id: str) -> BroadcastChannel:
        """Return the job's channel, creating it only when absent."""

        channel = self._channels.get(job_id)
        if channel is None:
            channel = self._channels[job_id] = BroadcastChannel()
            self._publish_size()
        return channel

    def claim(self, job_id: str) -> BroadcastChannel:
        """Return the channel a run watches for halts.

        A job that was halted before its run got here receives a detached,
        already halted channel.
        """

        if job_id in self._halted:
            channel = BroadcastChannel()
            channel.deactivate()
            return channel
        return self.open(job_id)

    def subscribe(self, job_id: str, subscriber: Subscriber) -> None:
        channel = self.open(job_id)
        channel.add(subscriber)
        channel.active = True

    def is_active(self, job_id: str) -> bool:
        channel = self._channels.get(job_id)
        return channel is not None and channel.active

    def emit(self, job_id: str, event: StreamEvent) -> None:
        channel = self._channels.get(job_id)
        if channel is None or not channel.active:
            return
        self._deliver(job_id, channel, event)

    def _halt(self, job_id: str) -> BroadcastChannel | None:
        channel = self._channels.pop(job_id, None)
        if channel is None:
            return None
        channel.deactivate()
        self._halted.add(job_id)
        self._publish_size()
        return channel

    def unsubscribe_all(self, job_id: str) -> None:
        """Drop every listener and the channel without telling anyone."""

        channel = self._halt(job_id)
        if channel is None:
            return
        channel.subscribers.clear()
        logger.info("Closed broadcast channel for analysis %s", job_id)

    def stop(self, job_id: str) -> bool:
        """Halt the job's run and tell current listeners it was stopped.

        Returns False when no channel existed for ``job_id``.
        """

        channel = self._halt(job_id)
        if channel is None:
            return False
        self._deliver(job_id, channel, StoppedEvent())
        channel.subscribers.clear()
        logger.info("Stopped analysis %s", job_id)
        return True

    def discard(self, job_id: str) -> None:
        """Forget a finished run's channel and halt record; safe to call more than once."""

        self._halted.discard(job_id)
        channel = self._channels.pop(job_id, None)
        if channel is not None:
            channel.deactivate()
            self._publish_size()

    @staticmethod
    def _deliver(job_id: str, channel: BroadcastChannel, event: StreamEvent) -> None:
        for subscriber in list(channel.subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception(
                    "Subscriber failed while handling %s event for analysis %s",
                    event.type,
                    job_id,
                )


__all__ = ["BroadcastChannel", "BroadcastRegistry", "Subscriber"]
