"""Exception classes for frame extraction.

All package errors inherit from :class:`ApplicationError` so callers can catch
one base type. Keyword arguments are stored as attributes for debugging:

    err = FfmpegError("extraction failed", input_target="file:/media/a.mkv")
    err.input_target  # "file:/media/a.mkv"
"""

from typing import Any


class ApplicationError(Exception):
    """Base exception for all stillframe errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        if not message:
            message = self.__class__.__doc__ or "Application error occurred"
        super().__init__(message)
        for key, value in kwargs.items():
            setattr(self, key, value)


class ProcessLaunchError(ApplicationError):
    """External process could not be spawned."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        if not message:
            message = "External process could not be spawned"
        super().__init__(message, **kwargs)


class ExternalToolError(ApplicationError):
    """External tool failed to complete."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        if not message:
            message = "External tool failed to complete"
        super().__init__(message, **kwargs)


class FfmpegError(ExternalToolError):
    """ffmpeg failed to complete."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        if not message:
            message = "ffmpeg failed to complete"
        super().__init__(message, **kwargs)


class ExtractionCancelledError(ApplicationError):
    """Extraction was cancelled by the caller."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        if not message:
            message = "Extraction was cancelled by the caller"
        super().__init__(message, **kwargs)


__all__ = [
    "ApplicationError",
    "ExternalToolError",
    "ExtractionCancelledError",
    "FfmpegError",
    "ProcessLaunchError",
]
