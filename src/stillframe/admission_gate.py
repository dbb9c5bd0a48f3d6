"""Counting gate that caps how many extractions run an external process at once."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from .exceptions import ExtractionCancelledError

logger = logging.getLogger(__name__)


class AdmissionGate:
    """
    FIFO admission into a fixed number of slots.

    ``acquire`` can be abandoned through a cancellation event or by cancelling
    the awaiting task; in both cases no slot stays consumed. Use ``slot()`` to
    pair every successful acquire with exactly one release.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1 (got {capacity})")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_use = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self.capacity - self._in_use

    async def acquire(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        """
        Wait for a free slot.

        Raises:
            ExtractionCancelledError: If ``cancel_event`` is set before a slot
                is granted
        """
        if cancel_event is None:
            await self._semaphore.acquire()
            self._in_use += 1
            return

        if cancel_event.is_set():
            raise ExtractionCancelledError("Cancelled while waiting for an extraction slot")

        acquire_task = asyncio.ensure_future(self._semaphore.acquire())
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        granted = False
        try:
            await asyncio.wait({acquire_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
            granted = _succeeded(acquire_task) and not cancel_event.is_set()
        finally:
            cancel_task.cancel()
            if not acquire_task.done():
                acquire_task.cancel()
                acquire_task.add_done_callback(self._return_abandoned_slot)
            elif not granted and _succeeded(acquire_task):
                self._semaphore.release()

        if not granted:
            raise ExtractionCancelledError("Cancelled while waiting for an extraction slot")
        self._in_use += 1

    def _return_abandoned_slot(self, task: asyncio.Future) -> None:
        # A cancelled acquire can still complete if the slot was granted first.
        if _succeeded(task):
            self._semaphore.release()

    def release(self) -> None:
        if self._in_use <= 0:
            raise RuntimeError("AdmissionGate released more times than it was acquired")
        self._in_use -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self, cancel_event: Optional[asyncio.Event] = None) -> AsyncIterator[None]:
        await self.acquire(cancel_event)
        logger.debug("Admission slot acquired (%d/%d in use)", self._in_use, self.capacity)
        try:
            yield
        finally:
            self.release()
            logger.debug("Admission slot released (%d/%d in use)", self._in_use, self.capacity)


def _succeeded(task: asyncio.Future) -> bool:
    return task.done() and not task.cancelled() and task.exception() is None


__all__ = ["AdmissionGate"]
