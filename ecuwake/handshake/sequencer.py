"""Timed connect/disconnect sequences for the K-line slow-init handshake."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable, Optional

from ..cancellation import CancelToken
from ..errors import InvalidStateError, LinkError, OperationCancelled
from ..transport import LinkHandle
from .constants import DEFAULT_TIMINGS, INIT_SEQUENCE, WAKEUP_SEQUENCE, HandshakeTimings
from .outcome import Outcome

_LOGGER = logging.getLogger(__name__)

NOTHING_TO_DISCONNECT = "nothing to disconnect"


class SequencerState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class ConnectionSequencer:
    """Drive the wake-up handshake and disconnect procedures on a link.

    Only one operation may be in flight at a time. Every delay is a
    cancellation point; serial calls themselves are not interruptible.
    Operations never raise: failures and cancellations are returned as an
    :class:`Outcome`. The only exception is ``asyncio.CancelledError`` from
    the hosting task, which is propagated after cleanup.
    """

    def __init__(
        self,
        *,
        timings: HandshakeTimings = DEFAULT_TIMINGS,
        blocking_sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timings = timings
        self._blocking_sleep = blocking_sleep
        self._state = SequencerState.IDLE
        self._busy = False

    @property
    def state(self) -> SequencerState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    # -- connect -----------------------------------------------------------------
    async def connect(self, link: LinkHandle, token: CancelToken) -> Outcome:
        refused = self._refuse(token)
        if refused is not None:
            return refused
        self._busy = True
        self._state = SequencerState.CONNECTING
        try:
            await self._run_handshake(link, token)
        except OperationCancelled:
            _LOGGER.info("Connect on %s cancelled", link.port)
            self._close_quietly(link)
            return self._finish(Outcome.cancelled(), SequencerState.IDLE)
        except LinkError as exc:
            _LOGGER.warning("Connect on %s failed: %s", link.port, exc)
            self._close_quietly(link)
            return self._finish(Outcome.failed(str(exc), exc), SequencerState.IDLE)
        except asyncio.CancelledError:
            self._close_quietly(link)
            self._finish(Outcome.cancelled(), SequencerState.IDLE)
            raise
        finally:
            self._busy = False
        _LOGGER.info("Connected to control unit on %s", link.port)
        return self._finish(Outcome.succeeded(), SequencerState.CONNECTED)

    async def _run_handshake(self, link: LinkHandle, token: CancelToken) -> None:
        t = self.timings
        if link.is_open:
            _LOGGER.debug("Port %s already open; closing before handshake", link.port)
            link.close()
            await token.sleep(t.reopen_settle)

        link.open()

        _LOGGER.debug("Sending break pulse on %s", link.port)
        link.set_break(False)
        await token.sleep(t.break_idle)
        link.set_break(True)
        await token.sleep(t.break_assert)
        link.set_break(False)
        await token.sleep(t.break_release)

        _LOGGER.debug("Sending wake-up sequence %s", WAKEUP_SEQUENCE.hex(" "))
        link.write(WAKEUP_SEQUENCE)
        await token.sleep(t.after_wakeup)

        _LOGGER.debug("Sending init sequence %s", INIT_SEQUENCE.hex(" "))
        link.write(INIT_SEQUENCE)
        await token.sleep(t.after_init)

        link.discard_output()
        link.discard_input()

    # -- disconnect --------------------------------------------------------------
    async def disconnect(self, link: LinkHandle, token: CancelToken) -> Outcome:
        refused = self._refuse(token)
        if refused is not None:
            return refused
        if not link.is_open:
            return self._nothing_to_disconnect(link)
        self._busy = True
        self._state = SequencerState.DISCONNECTING
        try:
            self._release(link)
            await token.sleep(self.timings.disconnect_settle)
        except OperationCancelled:
            _LOGGER.info("Disconnect settle on %s cancelled; port is closed", link.port)
            return self._finish(Outcome.cancelled(), SequencerState.IDLE)
        except LinkError as exc:
            _LOGGER.warning("Disconnect on %s failed: %s", link.port, exc)
            self._close_quietly(link)
            return self._finish(Outcome.failed(str(exc), exc), SequencerState.IDLE)
        except asyncio.CancelledError:
            self._close_quietly(link)
            self._finish(Outcome.cancelled(), SequencerState.IDLE)
            raise
        finally:
            self._busy = False
        _LOGGER.info("Disconnected from %s", link.port)
        return self._finish(Outcome.succeeded(), SequencerState.IDLE)

    def disconnect_blocking(self, link: LinkHandle) -> Outcome:
        """Disconnect without yielding; the settle delay blocks and ignores cancellation."""
        if self._busy:
            return self._in_flight()
        if not link.is_open:
            return self._nothing_to_disconnect(link)
        self._busy = True
        self._state = SequencerState.DISCONNECTING
        try:
            self._release(link)
            self._blocking_sleep(self.timings.disconnect_settle)
        except LinkError as exc:
            _LOGGER.warning("Blocking disconnect on %s failed: %s", link.port, exc)
            self._close_quietly(link)
            return self._finish(Outcome.failed(str(exc), exc), SequencerState.IDLE)
        finally:
            self._busy = False
        _LOGGER.info("Disconnected from %s (blocking)", link.port)
        return self._finish(Outcome.succeeded(), SequencerState.IDLE)

    def _release(self, link: LinkHandle) -> None:
        link.discard_input()
        link.discard_output()
        link.close()

    # -- helpers -----------------------------------------------------------------
    def _refuse(self, token: CancelToken) -> Optional[Outcome]:
        if self._busy:
            return self._in_flight()
        if not token.usable:
            error = InvalidStateError(
                "cancel token already fired or disposed; issue a fresh token"
            )
            _LOGGER.warning("%s", error)
            return Outcome.failed(str(error), error)
        return None

    def _in_flight(self) -> Outcome:
        error = InvalidStateError(f"another operation is in flight ({self._state.value})")
        _LOGGER.warning("%s", error)
        return Outcome.failed(str(error), error)

    def _nothing_to_disconnect(self, link: LinkHandle) -> Outcome:
        _LOGGER.info("Port %s is not open; %s", link.port, NOTHING_TO_DISCONNECT)
        self._state = SequencerState.IDLE
        return Outcome.failed(NOTHING_TO_DISCONNECT, InvalidStateError(NOTHING_TO_DISCONNECT))

    def _finish(self, outcome: Outcome, state: SequencerState) -> Outcome:
        self._state = state
        return outcome

    @staticmethod
    def _close_quietly(link: LinkHandle) -> None:
        try:
            link.close()
        except LinkError:
            _LOGGER.debug("Failed to close %s during cleanup", link.port, exc_info=True)
