"""A private asyncio loop running in a daemon thread.

The orchestrator's state belongs to this loop. Synchronous hosts (Dash
callbacks run in the web server's worker threads) marshal every call onto
it instead of touching the state directly.
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Callable, Coroutine, Optional, TypeVar

T = TypeVar("T")


class EventLoopThread:
    def __init__(self, name: str = "pocket-polyglot-loop"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = None) -> T:
        """Runs a coroutine on the loop and blocks until it finishes."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, fn: Callable[..., T], *args: Any, timeout: Optional[float] = None) -> T:
        """Runs a plain callable on the loop thread and returns its result."""
        future: "concurrent.futures.Future[T]" = concurrent.futures.Future()

        def _invoke() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn(*args))
            except BaseException as e:
                future.set_exception(e)

        self.loop.call_soon_threadsafe(_invoke)
        return future.result(timeout)

    def stop(self) -> None:
        if not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        if not self.loop.is_running():
            self.loop.close()
