"""Helpers backing :class:`stillframe.frame_extractor.FrameExtractor`."""

from .progress_probe import count_matching_files
from .stall_detector import StallDetector

__all__ = ["StallDetector", "count_matching_files"]
