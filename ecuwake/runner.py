"""Background asyncio loop for running session coroutines off the Tk thread."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Callable, Coroutine, Optional

_LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[concurrent.futures.Future], None]


class LoopRunner:
    """Owns an event loop running forever on a daemon thread."""

    def __init__(self, name: str = "ecuwake-loop") -> None:
        self.name = name
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready = threading.Event()

    @property
    def is_running(self) -> bool:
        loop = self._loop
        return bool(loop and loop.is_running())

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        self._ready.wait(timeout=2.0)

    def submit(
        self,
        coro: Coroutine[Any, Any, Any],
        on_done: Optional[ResultCallback] = None,
    ) -> concurrent.futures.Future:
        """Schedule *coro* on the loop; *on_done* runs on the loop thread."""
        loop = self._loop
        if loop is None or not loop.is_running():
            coro.close()
            raise RuntimeError("Event loop is not running")
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        if on_done is not None:
            future.add_done_callback(on_done)
        return future

    def stop(self, timeout: float = 2.0) -> None:
        loop = self._loop
        if loop and loop.is_running():
            try:
                loop.call_soon_threadsafe(loop.stop)
            except RuntimeError:
                _LOGGER.debug("Event loop already closed", exc_info=True)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            try:
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()
                if pending:
                    loop.run_until_complete(
                        asyncio.gather(*pending, return_exceptions=True)
                    )
                loop.run_until_complete(loop.shutdown_asyncgens())
            except Exception:
                _LOGGER.debug("Error while draining event loop", exc_info=True)
            loop.close()
            self._loop = None
