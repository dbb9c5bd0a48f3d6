"""Decide whether a running extraction is still making progress."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..exceptions import ExtractionCancelledError
from .progress_probe import count_matching_files

if TYPE_CHECKING:
    from ..process_handle import ProcessHandle

logger = logging.getLogger(__name__)


class StallDetector:
    """
    Polls a running process and its output directory.

    Each round waits up to ``poll_interval_seconds`` for the process to exit.
    A process that is still running must have produced at least one new
    output file since the previous round; otherwise it is considered stalled.
    The tool's own progress output is not consulted.
    """

    def __init__(
        self,
        target_directory: Path,
        output_extension: str,
        poll_interval_seconds: float,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.target_directory = target_directory
        self.output_extension = output_extension
        self.poll_interval_seconds = poll_interval_seconds
        self.cancel_event = cancel_event
        self.last_count = 0
        self.rounds = 0

    async def run(self, handle: "ProcessHandle") -> bool:
        """
        Return True when the process exited on its own, False when it stalled.

        Raises:
            ExtractionCancelledError: If the cancel event fires first
        """
        while True:
            self.rounds += 1
            if await handle.wait_for_exit(self.poll_interval_seconds, interrupt=self.cancel_event):
                return True

            if self.cancel_event is not None and self.cancel_event.is_set():
                raise ExtractionCancelledError("Extraction cancelled while the process was running")

            count = count_matching_files(self.target_directory, self.output_extension)
            if count <= self.last_count:
                logger.warning(
                    "No new %s files in %s after %.1fs (count %d); treating pid %s as stalled",
                    self.output_extension,
                    self.target_directory,
                    self.poll_interval_seconds,
                    count,
                    handle.pid,
                )
                return False

            logger.debug("pid %s produced %d new files", handle.pid, count - self.last_count)
            self.last_count = count
