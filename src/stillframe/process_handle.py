"""
Ownership wrapper around one external process.

A handle is torn down by whichever happens first: the event loop's exit
notification or an explicit ``dispose()``. Both paths funnel into
``destroy()``, which flips a flag under a lock before doing any work, so the
registry entry is removed and the transport released exactly once even when
the two paths race from different threads.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

from .exceptions import ProcessLaunchError
from .process_handle_helpers import ExitNotifyingProtocol, deliver_signal, release_transport
from .process_registry import ProcessRegistry

logger = logging.getLogger(__name__)


class TerminationOutcome(Enum):
    """How a call to :meth:`ProcessHandle.terminate` ended."""

    NOT_STARTED = "not_started"
    EXITED = "exited"
    ALREADY_EXITED = "already_exited"
    KILLED = "killed"
    KILL_FAILED = "kill_failed"


class ProcessHandle:
    """Owns one child process from spawn to release."""

    def __init__(
        self,
        command: Sequence[str],
        registry: ProcessRegistry,
        *,
        cwd: Optional[Union[str, Path]] = None,
    ):
        if not command:
            raise ValueError("command must contain at least the executable")
        self.command = tuple(str(part) for part in command)
        self._registry = registry
        self._cwd = cwd
        self._teardown_lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._transport: Optional[asyncio.SubprocessTransport] = None
        self._protocol: Optional[ExitNotifyingProtocol] = None
        self._exited: Optional[asyncio.Future] = None
        self.started = False
        self.started_at: Optional[float] = None
        self.pid: Optional[int] = None
        self.has_exited = False
        self.exit_code: Optional[int] = None
        self.destroyed = False
        self.disposed = False

    @property
    def executable(self) -> str:
        return self.command[0]

    async def start(self) -> None:
        """
        Spawn the process and register the handle.

        The handle is registered before spawning so an exit notification that
        arrives immediately still finds the entry it has to remove.

        Raises:
            ProcessLaunchError: If the executable cannot be spawned or the
                argv is rejected
            RuntimeError: If the handle was already started
        """
        if self.started:
            raise RuntimeError(f"Process handle for {self.executable} was already started")
        self.started = True

        loop = asyncio.get_running_loop()
        self._loop = loop
        self._exited = loop.create_future()
        self._registry.add(self)

        try:
            _, protocol = await loop.subprocess_exec(
                lambda: ExitNotifyingProtocol(self._bind_transport, self._on_process_exited),
                *self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=self._cwd,
            )
        except (OSError, ValueError) as exc:
            self._registry.remove(self)
            raise ProcessLaunchError(
                f"Failed to start {self.executable}: {exc}",
                executable=self.executable,
            ) from exc
        except asyncio.CancelledError:
            self._registry.remove(self)
            raise

        self._protocol = protocol
        self.started_at = time.monotonic()
        logger.info("Started %s (pid %s)", self.executable, self.pid)

    def _bind_transport(self, transport: asyncio.SubprocessTransport) -> None:
        self._transport = transport
        self.pid = transport.get_pid()

    def _on_process_exited(self) -> None:
        self.has_exited = True
        self.exit_code = self._capture_exit_code()
        if self._exited is not None and not self._exited.done():
            self._exited.set_result(self.exit_code)
        self.destroy()

    def _capture_exit_code(self) -> Optional[int]:
        """Exit code, or None once the transport is gone."""
        transport = self._transport
        if transport is None:
            return None
        return transport.get_returncode()

    async def wait_for_exit(
        self,
        timeout: Optional[float],
        *,
        interrupt: Optional[asyncio.Event] = None,
    ) -> bool:
        """
        Wait up to ``timeout`` seconds for the exit notification.

        Returns early when ``interrupt`` is set. The result tells whether the
        process has exited; the exit future itself is never cancelled.
        """
        if self.has_exited:
            return True
        if self._exited is None or self.disposed:
            return False

        waiters = {self._exited}
        interrupt_task = None
        if interrupt is not None:
            interrupt_task = asyncio.ensure_future(interrupt.wait())
            waiters.add(interrupt_task)
        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if interrupt_task is not None:
                interrupt_task.cancel()
        return self._exited.done()

    async def terminate(self, grace_seconds: float) -> TerminationOutcome:
        """
        Ask the process to stop, then kill it if it outlives ``grace_seconds``.

        Never raises for a process that is already gone or cannot be killed;
        the outcome says what happened.
        """
        if not self.started:
            return TerminationOutcome.NOT_STARTED
        transport = self._transport
        if self.has_exited or transport is None:
            return TerminationOutcome.ALREADY_EXITED

        polite = deliver_signal(transport.terminate)
        if polite.process_gone:
            return TerminationOutcome.ALREADY_EXITED
        if polite.error is not None:
            logger.warning("Failed to send SIGTERM to %s (pid %s): %s", self.executable, self.pid, polite.error)

        if await self.wait_for_exit(grace_seconds):
            return TerminationOutcome.EXITED

        transport = self._transport
        if transport is None:
            return TerminationOutcome.ALREADY_EXITED

        logger.info("Killing %s process (pid %s)", self.executable, self.pid)
        forced = deliver_signal(transport.kill)
        if forced.process_gone:
            return TerminationOutcome.ALREADY_EXITED
        if forced.error is not None:
            logger.error("Error killing %s process (pid %s)", self.executable, self.pid, exc_info=forced.error)
            return TerminationOutcome.KILL_FAILED
        return TerminationOutcome.KILLED

    def destroy(self) -> bool:
        """
        Unregister the handle and release the transport.

        Only the first call does any work and returns True. Release failures
        are logged and discarded.
        """
        with self._teardown_lock:
            if self.destroyed:
                return False
            self.destroyed = True

        self._registry.remove(self)

        transport, self._transport = self._transport, None
        if transport is not None:
            error = release_transport(transport, self._loop)
            if error is not None:
                logger.debug("Ignoring error while releasing %s (pid %s): %s", self.executable, self.pid, error)
        return True

    def dispose(self) -> None:
        """Detach the exit callback and tear the handle down."""
        with self._teardown_lock:
            if self.disposed:
                return
            self.disposed = True

        protocol = self._protocol
        if protocol is not None:
            protocol.detach()
        self.destroy()

    def __enter__(self) -> "ProcessHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"ProcessHandle(executable={self.executable!r}, pid={self.pid}, has_exited={self.has_exited})"


__all__ = ["ProcessHandle", "TerminationOutcome"]
