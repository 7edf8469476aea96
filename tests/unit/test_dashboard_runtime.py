"""Tests for the dashboard runtime (queue, worker and refresh timer)."""

from __future__ import annotations

import logging
import time

import pytest

from gigclaw.dashboard.engine import KeyPressed, RefreshTick, Resized, Tab, Viewport
from gigclaw.dashboard.runtime import DashboardRuntime
from gigclaw.errors import APIError, ErrorKind
from tests.helpers import FIXED_NOW, make_task
from tests.mocks import DeferredExecutor, FakeTimerFactory, StubTaskSource


class RuntimeHarness:
    """Bundles a runtime with its deterministic collaborators."""

    def __init__(self, results, refresh_interval: float = 30.0) -> None:
        self.source = StubTaskSource(results)
        self.executor = DeferredExecutor()
        self.timers = FakeTimerFactory()
        self.frames: list[str] = []
        self.runtime = DashboardRuntime(
            self.source,
            refresh_interval=refresh_interval,
            viewport=Viewport(100, 30),
            on_frame=self.frames.append,
            executor=self.executor,
            timer_factory=self.timers,
            clock=lambda: FIXED_NOW,
        )

    def complete_fetches(self) -> int:
        """Let the worker run, then apply its results."""
        self.executor.run_all()
        return self.runtime.process_pending()

    def press(self, key: str) -> int:
        self.runtime.dispatch(KeyPressed(key))
        return self.runtime.process_pending()


class TestDashboardRuntimeStart:
    def test_start_issues_initial_fetch_and_frame(self) -> None:
        harness = RuntimeHarness([[make_task("a")]])

        harness.runtime.start()

        assert harness.runtime.running
        assert harness.runtime.fetches_started == 1
        assert len(harness.executor.pending) == 1
        assert len(harness.frames) == 1
        assert "Loading tasks..." in harness.frames[0]

    def test_start_twice_is_ignored(self) -> None:
        harness = RuntimeHarness([])

        harness.runtime.start()
        harness.runtime.start()

        assert harness.runtime.fetches_started == 1


class TestDashboardRuntimeFetching:
    """Tests for fetch scheduling and results."""

    def test_success_updates_state_and_arms_timer(self) -> None:
        harness = RuntimeHarness([[make_task("a"), make_task("b")]], refresh_interval=12.0)
        harness.runtime.start()

        assert harness.complete_fetches() == 1

        state = harness.runtime.state
        assert [t.id for t in state.tasks] == ["a", "b"]
        assert not state.loading
        assert state.last_update == FIXED_NOW
        timer = harness.timers.last
        assert timer.interval == 12.0
        assert timer.started
        assert timer.daemon
        assert "2 tasks" in harness.frames[-1]

    def test_manual_refresh_while_loading_does_not_fetch_again(self) -> None:
        harness = RuntimeHarness([[make_task("a")]])
        harness.runtime.start()

        harness.press("r")
        harness.press("f5")

        assert harness.runtime.fetches_started == 1
        assert len(harness.executor.pending) == 1

    def test_timer_tick_triggers_next_fetch(self) -> None:
        harness = RuntimeHarness([[make_task("a")], [make_task("b")]])
        harness.runtime.start()
        harness.complete_fetches()

        harness.timers.last.fire()
        harness.runtime.process_pending()

        assert harness.runtime.fetches_started == 2
        assert harness.runtime.state.loading

        harness.complete_fetches()
        assert [t.id for t in harness.runtime.state.tasks] == ["b"]

    def test_failure_keeps_snapshot_then_success_replaces_it(self) -> None:
        error = APIError(ErrorKind.SERVER_ERROR, "max retries exceeded: 503", status_code=503)
        harness = RuntimeHarness(
            [[make_task("a")], error, [make_task("b"), make_task("c")]]
        )
        harness.runtime.start()
        harness.complete_fetches()

        harness.press("r")
        harness.complete_fetches()

        state = harness.runtime.state
        assert state.error is error
        assert [t.id for t in state.tasks] == ["a"]
        assert not state.loading
        assert len(harness.timers.timers) == 1
        assert "Press 'r' to retry" in harness.frames[-1]

        harness.press("r")
        harness.complete_fetches()

        state = harness.runtime.state
        assert state.error is None
        assert [t.id for t in state.tasks] == ["b", "c"]
        assert harness.runtime.fetches_started == 3

    def test_unexpected_exception_becomes_unknown_error(self) -> None:
        harness = RuntimeHarness([RuntimeError("decoder exploded")])
        harness.runtime.start()

        harness.complete_fetches()

        error = harness.runtime.state.error
        assert error is not None
        assert error.kind == ErrorKind.UNKNOWN
        assert "decoder exploded" in error.message
        assert harness.runtime.running

    def test_manual_refresh_cancels_pending_timer(self) -> None:
        error = APIError(ErrorKind.SERVER_ERROR, "max retries exceeded: 503", status_code=503)
        harness = RuntimeHarness([[make_task("a")], error, [make_task("b")]])
        harness.runtime.start()
        harness.complete_fetches()
        periodic = harness.timers.last

        harness.press("r")

        assert periodic.cancelled

        # A tick queued just before the cancel lands while the fetch is loading
        harness.runtime.dispatch(RefreshTick())
        harness.complete_fetches()
        assert harness.runtime.state.error is error

        periodic.fire()
        harness.runtime.process_pending()

        assert harness.runtime.fetches_started == 2
        assert harness.executor.pending == []
        assert harness.runtime.state.error is error
        assert harness.source.calls == 2

    def test_fetch_in_flight_tracks_worker(self) -> None:
        harness = RuntimeHarness([[make_task("a")]])
        harness.runtime.start()

        assert harness.runtime.fetch_in_flight

        harness.complete_fetches()

        assert not harness.runtime.fetch_in_flight

    def test_rearming_cancels_previous_timer(self) -> None:
        harness = RuntimeHarness([[make_task("a")], [make_task("b")]])
        harness.runtime.start()
        harness.complete_fetches()
        first = harness.timers.last

        harness.runtime.dispatch(RefreshTick())
        harness.complete_fetches()

        assert first.cancelled
        assert harness.timers.last is not first


class TestDashboardRuntimeInput:
    """Tests for key and resize handling."""

    def test_keys_update_tab_and_render(self) -> None:
        harness = RuntimeHarness([])
        harness.runtime.start()

        harness.press("tab")

        assert harness.runtime.state.active_tab == Tab.STATS
        assert "[ Stats ]" in harness.frames[-1]

    def test_messages_applied_in_arrival_order(self) -> None:
        harness = RuntimeHarness([])
        harness.runtime.start()

        harness.runtime.dispatch(KeyPressed("tab"))
        harness.runtime.dispatch(KeyPressed("tab"))
        harness.runtime.dispatch(KeyPressed("shift+tab"))

        assert harness.runtime.process_pending() == 3
        assert harness.runtime.state.active_tab == Tab.STATS

    def test_resize(self) -> None:
        harness = RuntimeHarness([])
        harness.runtime.start()

        harness.runtime.dispatch(Resized(width=150, height=60))
        harness.runtime.process_pending()

        assert harness.runtime.state.viewport == Viewport(150, 60)

    def test_no_frame_when_queue_empty(self) -> None:
        harness = RuntimeHarness([])
        harness.runtime.start()

        assert harness.runtime.process_pending() == 0
        assert len(harness.frames) == 1


class TestDashboardRuntimeStop:
    """Tests for quitting and shutdown."""

    @pytest.mark.parametrize("key", ["q", "escape", "ctrl+c"])
    def test_quit_stops_runtime(self, key: str) -> None:
        harness = RuntimeHarness([[make_task("a")]])
        harness.runtime.start()
        harness.complete_fetches()
        timer = harness.timers.last

        harness.press(key)

        assert not harness.runtime.running
        assert harness.executor.shutdown_called
        assert timer.cancelled

    def test_messages_after_quit_are_ignored(self) -> None:
        harness = RuntimeHarness([])
        harness.runtime.start()
        harness.press("q")
        frames_before = len(harness.frames)

        harness.runtime.dispatch(KeyPressed("tab"))

        assert harness.runtime.process_pending() == 0
        assert len(harness.frames) == frames_before

    def test_in_flight_fetch_discarded_on_quit(self) -> None:
        harness = RuntimeHarness([[make_task("a")]])
        harness.runtime.start()

        harness.press("q")

        assert harness.executor.pending == []
        assert harness.runtime.state.tasks == ()

    def test_quit_with_fetch_in_flight_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        harness = RuntimeHarness([[make_task("a")]])
        harness.runtime.start()

        with caplog.at_level(logging.INFO, logger="gigclaw"):
            harness.press("q")

        assert "Abandoning in-flight fetch" in caplog.text

    def test_context_manager(self) -> None:
        harness = RuntimeHarness([])

        with harness.runtime as runtime:
            assert runtime.running

        assert not harness.runtime.running
        assert harness.executor.shutdown_called


class TestDashboardRuntimeThreads:
    """Runs the fetch on a real worker thread."""

    def test_background_fetch_delivers_result(self) -> None:
        source = StubTaskSource([[make_task("a")]])
        timers = FakeTimerFactory()
        runtime = DashboardRuntime(source, timer_factory=timers)
        runtime.start()
        try:
            deadline = time.monotonic() + 5.0
            while runtime.state.loading and time.monotonic() < deadline:
                runtime.process_pending()
                time.sleep(0.01)
        finally:
            runtime.stop()

        assert [t.id for t in runtime.state.tasks] == ["a"]
        assert source.calls == 1
