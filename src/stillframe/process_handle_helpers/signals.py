"""Signal delivery and transport release that report failures as values."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class SignalDelivery:
    """Result of sending a signal to a child process."""

    delivered: bool
    process_gone: bool = False
    error: Optional[BaseException] = None


def deliver_signal(send: Callable[[], None]) -> SignalDelivery:
    """
    Call a transport's ``terminate`` or ``kill``.

    ``ProcessLookupError`` means the child already exited or the transport has
    been closed; that is reported as ``process_gone`` rather than an error.
    """
    try:
        send()
    except ProcessLookupError:  # Expected race with process exit  # policy_guard: allow-silent-handler
        return SignalDelivery(delivered=False, process_gone=True)
    except (OSError, RuntimeError) as exc:  # Reported to caller  # policy_guard: allow-silent-handler
        return SignalDelivery(delivered=False, error=exc)
    return SignalDelivery(delivered=True)


def release_transport(
    transport: asyncio.BaseTransport,
    loop: Optional[asyncio.AbstractEventLoop],
) -> Optional[BaseException]:
    """
    Close ``transport`` on its event loop and return any failure.

    Called from the loop thread the transport is closed directly; from any
    other thread the close is scheduled with ``call_soon_threadsafe``.
    """
    try:
        if loop is None or _running_loop() is loop:
            transport.close()
        else:
            loop.call_soon_threadsafe(transport.close)
    except (OSError, RuntimeError) as exc:  # Reported to caller  # policy_guard: allow-silent-handler
        return exc
    return None


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:  # No loop in this thread  # policy_guard: allow-silent-handler
        return None
