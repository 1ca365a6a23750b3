"""One-shot cancel tokens shared between the UI thread and the asyncio loop."""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from typing import Callable, List

from .errors import InvalidStateError, OperationCancelled

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[], None]


class TokenState(enum.Enum):
    ARMED = "armed"
    FIRED = "fired"


class CancelToken:
    """Explicit Armed/Fired cancellation value passed into each operation.

    Firing is one-shot: once fired a token stays fired, and the owner must
    allocate a new token before starting another cancellable operation.
    ``cancel`` may be called from any thread; waiters parked in :meth:`sleep`
    on an event loop are woken through ``call_soon_threadsafe``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fired = threading.Event()
        self._listeners: List[Listener] = []
        self._disposed = False

    @property
    def state(self) -> TokenState:
        return TokenState.FIRED if self._fired.is_set() else TokenState.ARMED

    @property
    def is_cancelled(self) -> bool:
        return self._fired.is_set()

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def usable(self) -> bool:
        """True when the token may start a new operation."""
        return not self._disposed and not self._fired.is_set()

    def cancel(self) -> bool:
        """Fire the token. Returns False when it had already fired."""
        with self._lock:
            if self._fired.is_set():
                return False
            self._fired.set()
            listeners = list(self._listeners)
            self._listeners.clear()
        for listener in listeners:
            try:
                listener()
            except RuntimeError:
                # Loop already closed; nobody is left waiting on it.
                _LOGGER.debug("Cancel listener could not be delivered", exc_info=True)
        return True

    def dispose(self) -> None:
        """Retire the token. Waiters already woken still observe the firing."""
        with self._lock:
            self._disposed = True
            self._listeners.clear()

    def raise_if_cancelled(self) -> None:
        if self._fired.is_set():
            raise OperationCancelled("operation cancelled")

    def _add_listener(self, listener: Listener) -> bool:
        with self._lock:
            if self._fired.is_set():
                return False
            if self._disposed:
                raise InvalidStateError("cancel token has been disposed")
            self._listeners.append(listener)
            return True

    def _remove_listener(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    async def sleep(self, seconds: float) -> None:
        """Wait *seconds* or until the token fires, whichever comes first.

        Raises :class:`OperationCancelled` if the token fired before or
        during the wait.
        """
        self.raise_if_cancelled()
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()

        def wake() -> None:
            if not waiter.done():
                waiter.set_result(None)

        def listener() -> None:
            loop.call_soon_threadsafe(wake)

        if not self._add_listener(listener):
            raise OperationCancelled("operation cancelled")
        try:
            await asyncio.wait({waiter}, timeout=max(0.0, seconds))
        finally:
            self._remove_listener(listener)
            if not waiter.done():
                waiter.cancel()
        self.raise_if_cancelled()
