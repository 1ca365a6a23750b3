"""Caller-facing session: one link, one sequencer, one current cancel token."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Optional

from .cancellation import CancelToken
from .config import PortConfiguration
from .errors import InvalidStateError
from .handshake import ConnectionSequencer, HandshakeTimings, Outcome
from .transport import LinkHandle

_LOGGER = logging.getLogger(__name__)

Operation = Callable[[LinkHandle, CancelToken], Awaitable[Outcome]]

DEFAULT_GRACE_PERIOD = 0.5


class LinkSession:
    """Serialize connect/disconnect requests against a single link handle."""

    def __init__(
        self,
        link: LinkHandle,
        *,
        sequencer: Optional[ConnectionSequencer] = None,
    ) -> None:
        self.link = link
        self.sequencer = sequencer or ConnectionSequencer()
        self._token_lock = threading.Lock()
        self._token = CancelToken()
        self._current: Optional[asyncio.Future] = None
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: PortConfiguration,
        *,
        timings: Optional[HandshakeTimings] = None,
    ) -> "LinkSession":
        sequencer = ConnectionSequencer(timings=timings) if timings else None
        return cls(LinkHandle(config), sequencer=sequencer)

    @property
    def token(self) -> CancelToken:
        with self._token_lock:
            return self._token

    @property
    def is_connected(self) -> bool:
        return self.link.is_open

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> bool:
        current = self._current
        return current is not None and not current.done()

    def connect(self) -> Awaitable[Outcome]:
        """Start the handshake bound to the token that is current right now."""
        return self._run("connect", self.sequencer.connect, self.token)

    def disconnect(self) -> Awaitable[Outcome]:
        return self._run("disconnect", self.sequencer.disconnect, self.token)

    def disconnect_blocking(self) -> bool:
        """Close the port before the caller proceeds, e.g. before another process claims it."""
        if self._closed:
            return False
        return self.sequencer.disconnect_blocking(self.link).ok

    def cancel_current_operation(self) -> None:
        """Fire the current token and arm a fresh one for later operations."""
        with self._token_lock:
            fired = self._token
            self._token = CancelToken()
        if fired.cancel():
            _LOGGER.info("Cancellation requested for %s", self.link.port)
        fired.dispose()

    async def _run(self, name: str, operation: Operation, token: CancelToken) -> Outcome:
        if self._closed:
            error = InvalidStateError("session is closed")
            return Outcome.failed(str(error), error)
        if self.in_flight:
            error = InvalidStateError(f"cannot {name}: another operation is in flight")
            return Outcome.failed(str(error), error)
        if token.is_cancelled:
            _LOGGER.info("%s on %s cancelled before it started", name, self.link.port)
            return Outcome.cancelled()
        task = asyncio.ensure_future(operation(self.link, token))
        self._current = task
        try:
            outcome = await task
        finally:
            if self._current is task:
                self._current = None
        _LOGGER.debug("%s on %s -> %s", name, self.link.port, outcome)
        return outcome

    async def close(self, grace: float = DEFAULT_GRACE_PERIOD) -> None:
        """Tear the session down.

        Fires the current token, gives an in-flight operation up to *grace*
        seconds to leave its delay, disconnects if the port is still open and
        then disposes the link and the token regardless of what happened.
        """
        if self._closed:
            return
        self._closed = True
        with self._token_lock:
            token = self._token
        token.cancel()
        try:
            current = self._current
            if current is not None and not current.done():
                _, pending = await asyncio.wait({current}, timeout=max(0.0, grace))
                if pending:
                    _LOGGER.warning(
                        "Operation on %s did not stop within %.2fs; forcing close",
                        self.link.port,
                        grace,
                    )
            if self.link.is_open and not self.sequencer.busy:
                final = CancelToken()
                try:
                    await self.sequencer.disconnect(self.link, final)
                finally:
                    final.dispose()
        finally:
            self.link.dispose()
            token.dispose()
            _LOGGER.info("Session for %s closed", self.link.port)
