"""Helpers backing :class:`stillframe.process_handle.ProcessHandle`."""

from .exit_protocol import ExitNotifyingProtocol
from .signals import SignalDelivery, deliver_signal, release_transport

__all__ = [
    "ExitNotifyingProtocol",
    "SignalDelivery",
    "deliver_signal",
    "release_transport",
]
