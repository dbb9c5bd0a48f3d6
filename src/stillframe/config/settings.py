from __future__ import annotations

"""Extraction settings resolved from the environment."""


from dataclasses import dataclass
from functools import lru_cache

from . import ConfigurationError, env_int, env_seconds, env_str

DEFAULT_FFMPEG_PATH = "ffmpeg"
DEFAULT_MAX_CONCURRENT_EXTRACTIONS = 2
DEFAULT_POLL_INTERVAL_SECONDS = 30.0
DEFAULT_TERMINATION_GRACE_SECONDS = 1.0
DEFAULT_OUTPUT_EXTENSION = ".jpg"


@dataclass(frozen=True)
class ExtractionSettings:
    ffmpeg_path: str = DEFAULT_FFMPEG_PATH
    thread_count: int = 0
    max_concurrent_extractions: int = DEFAULT_MAX_CONCURRENT_EXTRACTIONS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    termination_grace_seconds: float = DEFAULT_TERMINATION_GRACE_SECONDS
    output_extension: str = DEFAULT_OUTPUT_EXTENSION

    def __post_init__(self) -> None:
        if not self.ffmpeg_path:
            raise ConfigurationError.missing_value("ffmpeg_path")
        if self.thread_count < 0:
            raise ConfigurationError.invalid_value("thread_count", self.thread_count, "Must be >= 0")
        if self.max_concurrent_extractions < 1:
            raise ConfigurationError.invalid_value(
                "max_concurrent_extractions", self.max_concurrent_extractions, "At least one extraction must be allowed"
            )
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError.invalid_value("poll_interval_seconds", self.poll_interval_seconds, "Must be positive")
        if self.termination_grace_seconds < 0:
            raise ConfigurationError.invalid_value(
                "termination_grace_seconds", self.termination_grace_seconds, "Must be non-negative"
            )
        if not self.output_extension.startswith("."):
            raise ConfigurationError.invalid_value("output_extension", self.output_extension, "Must start with '.'")


def load_extraction_settings() -> ExtractionSettings:
    """Build settings from ``STILLFRAME_*`` variables without caching."""
    return ExtractionSettings(
        ffmpeg_path=env_str("STILLFRAME_FFMPEG_PATH", or_value=DEFAULT_FFMPEG_PATH),
        thread_count=env_int("STILLFRAME_FFMPEG_THREADS", or_value=0),
        max_concurrent_extractions=env_int(
            "STILLFRAME_MAX_CONCURRENT_EXTRACTIONS", or_value=DEFAULT_MAX_CONCURRENT_EXTRACTIONS
        ),
        poll_interval_seconds=env_seconds("STILLFRAME_POLL_INTERVAL_SECONDS", or_value=DEFAULT_POLL_INTERVAL_SECONDS),
        termination_grace_seconds=env_seconds(
            "STILLFRAME_TERMINATION_GRACE_SECONDS", or_value=DEFAULT_TERMINATION_GRACE_SECONDS
        ),
        output_extension=env_str("STILLFRAME_OUTPUT_EXTENSION", or_value=DEFAULT_OUTPUT_EXTENSION),
    )


@lru_cache(maxsize=1)
def get_extraction_settings() -> ExtractionSettings:
    return load_extraction_settings()
