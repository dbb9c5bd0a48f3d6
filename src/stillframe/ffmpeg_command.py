"""Build ffmpeg argument vectors for periodic still-frame extraction."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Union

FILENAME_SEQUENCE_PATTERN = "%08d"

_CONTAINER_PATTERN = re.compile(r"^[a-zA-Z0-9\-\._,|]{0,40}$")

# Containers whose ffmpeg demuxer name differs from the extension and is not
# known; ffmpeg probes these itself.
_PROBE_ONLY_CONTAINERS = frozenset(
    {
        "m2ts",
        "wmv",
        "mts",
        "vob",
        "mpg",
        "mpeg",
        "rec",
        "dvr-ms",
        "ogm",
        "divx",
        "tp",
        "rmvb",
        "rtp",
        "m4v",
        "strm",
        "iso",
    }
)


def get_input_format(container: Optional[str]) -> Optional[str]:
    """Map a container name to an ffmpeg ``-f`` input format, or None to let ffmpeg probe."""
    if not container or not _CONTAINER_PATTERN.match(container):
        return None

    normalized = container.lower()
    if normalized == "ts":
        return "mpegts"
    if normalized in _PROBE_ONLY_CONTAINERS:
        return None
    return normalized.replace("mkv", "matroska")


def get_input_argument(source: Union[str, Path], *, is_remote: bool = False) -> str:
    """Local paths get the ``file:`` protocol prefix; URLs pass through."""
    source = str(source)
    if is_remote or "://" in source:
        return source
    return f"file:{source}"


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def build_fps_filter(interval_seconds: float, max_width: Optional[int] = None) -> str:
    """Video filter that keeps one frame per ``interval_seconds``, optionally downscaled."""
    if interval_seconds <= 0:
        raise ValueError(f"interval_seconds must be positive (got {interval_seconds})")

    video_filter = f"fps=1/{_format_number(interval_seconds)}"
    if max_width is not None:
        if max_width <= 0:
            raise ValueError(f"max_width must be positive (got {max_width})")
        video_filter += f",scale=min(iw\\,{max_width}):trunc(ow/dar/2)*2"
    return video_filter


def build_interval_extraction_command(
    ffmpeg_path: str,
    input_argument: str,
    *,
    target_directory: Union[str, Path],
    filename_prefix: str,
    interval_seconds: float,
    thread_count: int = 0,
    max_width: Optional[int] = None,
    container: Optional[str] = None,
    output_extension: str = ".jpg",
) -> List[str]:
    """
    Assemble the full argv for extracting one image every ``interval_seconds``.

    Output files are named ``<prefix>00000001<ext>`` and so on inside
    ``target_directory``.
    """
    output_pattern = Path(target_directory) / f"{filename_prefix}{FILENAME_SEQUENCE_PATTERN}{output_extension}"

    command = [ffmpeg_path]
    input_format = get_input_format(container)
    if input_format:
        command += ["-f", input_format]
    command += [
        "-i",
        input_argument,
        "-threads",
        str(thread_count),
        "-v",
        "quiet",
        "-filter:v",
        build_fps_filter(interval_seconds, max_width),
        "-f",
        "image2",
        str(output_pattern),
    ]
    return command


__all__ = [
    "FILENAME_SEQUENCE_PATTERN",
    "build_fps_filter",
    "build_interval_extraction_command",
    "get_input_argument",
    "get_input_format",
]
