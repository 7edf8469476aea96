"""Tests for the Textual dashboard host."""

from __future__ import annotations

import pytest

from gigclaw.dashboard.app import GigclawDashboardApp
from gigclaw.dashboard.engine import Tab
from tests.helpers import make_task
from tests.mocks import DeferredExecutor, FakeTimerFactory, StubTaskSource


def make_app(results=()) -> tuple[GigclawDashboardApp, DeferredExecutor]:
    executor = DeferredExecutor()
    app = GigclawDashboardApp(
        StubTaskSource(results),
        refresh_interval=30.0,
        runtime_options={"executor": executor, "timer_factory": FakeTimerFactory()},
    )
    return app, executor


class TestGigclawDashboardApp:
    """Drives the app with Textual's pilot."""

    @pytest.mark.asyncio
    async def test_mount_starts_runtime(self) -> None:
        app, executor = make_app([[make_task("a")]])

        async with app.run_test() as pilot:
            await pilot.pause()
            assert app.runtime is not None
            assert app.runtime.running
            assert app.runtime.fetches_started == 1

            executor.run_all()
            app.runtime.process_pending()
            assert [t.id for t in app.runtime.state.tasks] == ["a"]

    @pytest.mark.asyncio
    async def test_tab_keys_switch_tabs(self) -> None:
        app, _ = make_app()

        async with app.run_test() as pilot:
            await pilot.press("tab")
            assert app.runtime.state.active_tab == Tab.STATS

            await pilot.press("shift+tab")
            assert app.runtime.state.active_tab == Tab.TASKS

            await pilot.press("question_mark")
            assert app.runtime.state.active_tab == Tab.HELP

    @pytest.mark.asyncio
    async def test_quit_key_exits(self) -> None:
        app, executor = make_app()

        async with app.run_test() as pilot:
            await pilot.press("q")
            await pilot.pause()

        assert app.runtime is not None
        assert not app.runtime.running
        assert executor.shutdown_called

    @pytest.mark.asyncio
    async def test_arrow_and_vim_keys_move_cursor(self) -> None:
        app, executor = make_app([[make_task("a"), make_task("b"), make_task("c")]])

        async with app.run_test() as pilot:
            await pilot.pause()
            executor.run_all()
            app.runtime.process_pending()

            await pilot.press("down")
            await pilot.press("j")
            assert app.runtime.state.cursor == 2

            await pilot.press("k")
            assert app.runtime.state.cursor == 1

            await pilot.press("home")
            assert app.runtime.state.cursor == 0
