"""Supervised extraction of periodic still frames with an external transcoder."""

from .admission_gate import AdmissionGate
from .exceptions import (
    ApplicationError,
    ExternalToolError,
    ExtractionCancelledError,
    FfmpegError,
    ProcessLaunchError,
)
from .frame_extractor import FAILED_EXIT_CODE, ExtractionRequest, ExtractionResult, FrameExtractor
from .process_handle import ProcessHandle, TerminationOutcome
from .process_registry import ProcessRegistry, RunningProcessSnapshot

__all__ = [
    "FAILED_EXIT_CODE",
    "AdmissionGate",
    "ApplicationError",
    "ExternalToolError",
    "ExtractionCancelledError",
    "ExtractionRequest",
    "ExtractionResult",
    "FfmpegError",
    "FrameExtractor",
    "ProcessHandle",
    "ProcessLaunchError",
    "ProcessRegistry",
    "RunningProcessSnapshot",
    "TerminationOutcome",
]
