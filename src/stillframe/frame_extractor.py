"""
Supervised still-frame extraction.

``FrameExtractor`` runs an external extraction command under three
guarantees: at most ``max_concurrent_extractions`` child processes at once, a
stalled child is killed instead of waited on forever, and each invocation ends
in exactly one outcome (a result, a tool failure or a cancellation).

Usage:
    extractor = FrameExtractor()
    await extractor.extract_video_images_on_interval(
        "/media/movie.mkv",
        container="mkv",
        interval_seconds=10,
        target_directory=Path("/cache/trickplay/movie"),
        filename_prefix="img_",
        max_width=320,
    )
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .admission_gate import AdmissionGate
from .config.settings import ExtractionSettings, get_extraction_settings
from .exceptions import FfmpegError
from .ffmpeg_command import build_interval_extraction_command, get_input_argument
from .frame_extractor_helpers import StallDetector, count_matching_files
from .process_handle import ProcessHandle
from .process_registry import ProcessRegistry, RunningProcessSnapshot

logger = logging.getLogger(__name__)

FAILED_EXIT_CODE = -1


@dataclass(frozen=True)
class ExtractionRequest:
    """Everything needed to run and supervise one extraction."""

    executable: str
    arguments: Sequence[str]
    target_directory: Path
    cancel_event: Optional[asyncio.Event] = field(default=None, compare=False)
    poll_interval_seconds: float = 30.0
    output_extension: str = ".jpg"
    termination_grace_seconds: float = 1.0
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.executable:
            raise ValueError("executable must not be empty")
        if self.poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be positive (got {self.poll_interval_seconds})")
        if self.termination_grace_seconds < 0:
            raise ValueError(f"termination_grace_seconds must be non-negative (got {self.termination_grace_seconds})")
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "target_directory", Path(self.target_directory))

    @property
    def command(self) -> List[str]:
        return [self.executable, *self.arguments]

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    @property
    def input_target(self) -> str:
        return self.description or self.command_line


@dataclass(frozen=True)
class ExtractionResult:
    exit_code: int
    frame_count: int
    elapsed_seconds: float


class FrameExtractor:
    """Runs extraction commands under a shared concurrency cap and registry."""

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        *,
        registry: Optional[ProcessRegistry] = None,
        admission: Optional[AdmissionGate] = None,
    ):
        self.settings = settings or get_extraction_settings()
        self.registry = registry or ProcessRegistry()
        self.admission = admission or AdmissionGate(self.settings.max_concurrent_extractions)

    def running_processes(self) -> List[RunningProcessSnapshot]:
        return self.registry.snapshot()

    async def extract_video_images_on_interval(
        self,
        input_file: Union[str, Path],
        *,
        interval_seconds: float,
        target_directory: Union[str, Path],
        filename_prefix: str,
        container: Optional[str] = None,
        max_width: Optional[int] = None,
        is_remote: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExtractionResult:
        """Extract one image every ``interval_seconds`` from ``input_file`` into ``target_directory``."""
        input_argument = get_input_argument(input_file, is_remote=is_remote)
        target_directory = Path(target_directory)

        command = build_interval_extraction_command(
            self.settings.ffmpeg_path,
            input_argument,
            target_directory=target_directory,
            filename_prefix=filename_prefix,
            interval_seconds=interval_seconds,
            thread_count=self.settings.thread_count,
            max_width=max_width,
            container=container,
            output_extension=self.settings.output_extension,
        )
        target_directory.mkdir(parents=True, exist_ok=True)
        request = ExtractionRequest(
            executable=command[0],
            arguments=command[1:],
            target_directory=target_directory,
            cancel_event=cancel_event,
            poll_interval_seconds=self.settings.poll_interval_seconds,
            output_extension=self.settings.output_extension,
            termination_grace_seconds=self.settings.termination_grace_seconds,
            description=input_argument,
        )
        return await self.extract_frames(request)

    async def extract_frames(self, request: ExtractionRequest) -> ExtractionResult:
        """
        Run ``request`` to completion or to a stall.

        Raises:
            ProcessLaunchError: If the executable cannot be spawned
            FfmpegError: If the process stalled and had to be terminated
            ExtractionCancelledError: If ``request.cancel_event`` fired
        """
        logger.info(request.command_line)
        started = time.monotonic()
        ran_to_completion = False

        async with self.admission.slot(request.cancel_event):
            with ProcessHandle(request.command, self.registry) as handle:
                try:
                    await handle.start()
                    detector = StallDetector(
                        request.target_directory,
                        request.output_extension,
                        request.poll_interval_seconds,
                        request.cancel_event,
                    )
                    ran_to_completion = await detector.run(handle)
                finally:
                    if handle.started and not ran_to_completion:
                        outcome = await handle.terminate(request.termination_grace_seconds)
                        logger.debug("Termination of pid %s finished with %s", handle.pid, outcome.value)

        # A stall verdict wins over any exit code seen while terminating.
        if not ran_to_completion:
            msg = f"ffmpeg image extraction failed for {request.input_target}"
            logger.error(msg)
            raise FfmpegError(msg, input_target=request.input_target, exit_code=FAILED_EXIT_CODE)

        exit_code = handle.exit_code if handle.exit_code is not None else 0
        if exit_code != 0:
            logger.warning("%s exited with code %d for %s", request.executable, exit_code, request.input_target)

        return ExtractionResult(
            exit_code=exit_code,
            frame_count=count_matching_files(request.target_directory, request.output_extension),
            elapsed_seconds=time.monotonic() - started,
        )


__all__ = [
    "FAILED_EXIT_CODE",
    "ExtractionRequest",
    "ExtractionResult",
    "FrameExtractor",
]
