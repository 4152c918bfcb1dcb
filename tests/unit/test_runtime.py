"""Tests for the event loop thread used by the Dash callbacks."""

import asyncio
import threading

import pytest
from pocket_polyglot.runtime import EventLoopThread


@pytest.fixture
def runtime():
    loop_thread = EventLoopThread(name="test-loop")
    yield loop_thread
    loop_thread.stop()


class TestEventLoopThread:
    def test_run_coroutine(self, runtime):
        async def answer():
            await asyncio.sleep(0)
            return threading.current_thread().name

        assert runtime.run(answer(), timeout=5) == "test-loop"

    def test_call_runs_on_loop_thread(self, runtime):
        def where():
            asyncio.get_running_loop()
            return threading.current_thread().name

        assert runtime.call(where, timeout=5) == "test-loop"

    def test_call_passes_arguments(self, runtime):
        assert runtime.call(max, 3, 9, timeout=5) == 9

    def test_call_propagates_exceptions(self, runtime):
        def boom():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            runtime.call(boom, timeout=5)

    def test_run_propagates_exceptions(self, runtime):
        async def boom():
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            runtime.run(boom(), timeout=5)

    def test_stop(self):
        loop_thread = EventLoopThread()
        loop_thread.stop()
        assert loop_thread.loop.is_closed()
