"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from stillframe.exceptions import (
    ApplicationError,
    ExternalToolError,
    ExtractionCancelledError,
    FfmpegError,
    ProcessLaunchError,
)


@pytest.mark.parametrize(
    ("error_cls", "default_message"),
    [
        (ProcessLaunchError, "External process could not be spawned"),
        (ExternalToolError, "External tool failed to complete"),
        (FfmpegError, "ffmpeg failed to complete"),
        (ExtractionCancelledError, "Extraction was cancelled by the caller"),
    ],
)
def test_default_messages(error_cls, default_message):
    error = error_cls()

    assert isinstance(error, ApplicationError)
    assert str(error) == default_message


def test_keyword_context_is_stored():
    error = FfmpegError("ffmpeg image extraction failed for file:/a.mkv", input_target="file:/a.mkv", exit_code=-1)

    assert isinstance(error, ExternalToolError)
    assert error.input_target == "file:/a.mkv"
    assert error.exit_code == -1


def test_base_error_uses_docstring_when_empty():
    assert str(ApplicationError()) == "Base exception for all stillframe errors."
