"""Exception hierarchy for the serial link and handshake layers."""

from __future__ import annotations


class LinkError(Exception):
    """Base exception for ecuwake."""


class LinkIOError(LinkError, OSError):
    """Open, write, close or buffer failure on the serial port."""


class LinkTimeoutError(LinkIOError):
    """The configured read/write timeout elapsed."""


class InvalidStateError(LinkError):
    """Operation is not valid in the current link or sequencer state."""


class LinkDisposedError(InvalidStateError):
    """The link handle was disposed and can no longer be used."""


class OperationCancelled(LinkError):
    """A cancel token fired while an operation was waiting."""
