from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List

from registry.app.events.emitter import VerificationEventEmitter
from registry.app.events.models import TERMINAL_EVENT_TYPES, VerificationEvent

logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter(VerificationEventEmitter):
    """
    Buffers one verification's events for a single SSE consumer.

    Events are delivered in emission order. The first terminal event
    (completed or failed) closes the buffer and ends the stream.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[VerificationEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: VerificationEvent) -> None:
        if self._closed:
            return

        try:
            await self._queue.put(event)
        except RuntimeError as exc:
            # Queue bound to a loop that has already closed
            logger.debug("Dropping verification event: %s", exc)
            return

        if event.event_type in TERMINAL_EVENT_TYPES:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[VerificationEvent]:
        """Yield buffered events until the buffer is closed."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event

    async def drain(self) -> List[VerificationEvent]:
        """Collect every event up to close(). Test and batch helper."""
        return [event async for event in self.stream()]
