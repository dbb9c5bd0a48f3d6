"""
Registry of external processes that are currently alive.

The registry is bookkeeping only: admission into the concurrency cap is
handled by :class:`stillframe.admission_gate.AdmissionGate`. Handles add
themselves when they start and remove themselves during teardown, possibly
from different threads, so every mutation and every read happens under a
single lock that is never held across a blocking call.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

import psutil

if TYPE_CHECKING:
    from .process_handle import ProcessHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunningProcessSnapshot:
    """Point-in-time view of one registered process."""

    pid: Optional[int]
    command: Tuple[str, ...]
    started_at: Optional[float]
    rss_bytes: Optional[int] = None
    cpu_seconds: Optional[float] = None


class ProcessRegistry:
    """Lock-guarded set of live process handles."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handles: set["ProcessHandle"] = set()

    def add(self, handle: "ProcessHandle") -> None:
        with self._lock:
            self._handles.add(handle)

    def remove(self, handle: "ProcessHandle") -> bool:
        """Drop ``handle``; returns False when it was not registered."""
        with self._lock:
            if handle not in self._handles:
                return False
            self._handles.discard(handle)
            return True

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def snapshot(self) -> List[RunningProcessSnapshot]:
        """
        Describe every registered process.

        Handles are copied under the lock; resource usage is sampled with
        psutil afterwards so the lock is never held during system calls.
        """
        with self._lock:
            handles = list(self._handles)

        snapshots = []
        for handle in handles:
            rss_bytes, cpu_seconds = _sample_usage(handle.pid)
            snapshots.append(
                RunningProcessSnapshot(
                    pid=handle.pid,
                    command=tuple(handle.command),
                    started_at=handle.started_at,
                    rss_bytes=rss_bytes,
                    cpu_seconds=cpu_seconds,
                )
            )
        return snapshots


def _sample_usage(pid: Optional[int]) -> Tuple[Optional[int], Optional[float]]:
    """Return (rss bytes, user+system CPU seconds) or Nones if unavailable."""
    if pid is None:
        return None, None
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            memory = proc.memory_info()
            cpu = proc.cpu_times()
    except (psutil.NoSuchProcess, psutil.ZombieProcess):  # Expected race with process exit  # policy_guard: allow-silent-handler
        return None, None
    except psutil.AccessDenied:  # policy_guard: allow-silent-handler
        logger.debug("Access denied while sampling process %s", pid)
        return None, None
    return memory.rss, cpu.user + cpu.system


__all__ = ["ProcessRegistry", "RunningProcessSnapshot"]
