"""Subprocess protocol that forwards the exit notification to its owner."""

import asyncio
from typing import Callable, Optional


class ExitNotifyingProtocol(asyncio.SubprocessProtocol):
    """
    Reports the transport and the process exit to callbacks.

    The event loop calls ``process_exited`` once the child has been reaped.
    ``detach`` drops the exit callback so a handle being torn down does not
    receive a notification for an object it is already releasing.
    """

    def __init__(
        self,
        on_connected: Callable[[asyncio.SubprocessTransport], None],
        on_exited: Callable[[], None],
    ):
        self._on_connected = on_connected
        self._on_exited: Optional[Callable[[], None]] = on_exited

    def connection_made(self, transport) -> None:
        self._on_connected(transport)

    def process_exited(self) -> None:
        callback = self._on_exited
        self._on_exited = None
        if callback is not None:
            callback()

    def detach(self) -> None:
        self._on_exited = None

    @property
    def attached(self) -> bool:
        return self._on_exited is not None
