"""Textual host for the GigClaw dashboard.

The app is the terminal I/O layer only: it forwards key and resize events to
the :class:`~gigclaw.dashboard.runtime.DashboardRuntime` as messages, pumps the
runtime's queue on a short interval, and shows each rendered frame in a
single ``Static`` widget.
"""

from __future__ import annotations

from typing import Any

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Static

from gigclaw.dashboard.engine import DEFAULT_REFRESH_INTERVAL, KeyPressed, Resized, Viewport
from gigclaw.dashboard.runtime import DashboardRuntime, TaskSource

# How often queued messages (fetch results, timer ticks) are applied, in seconds
PUMP_INTERVAL = 0.05


class FrameView(Static):
    """Displays the current dashboard frame as plain text."""

    DEFAULT_CSS = """
    FrameView {
        height: 1fr;
        padding: 0 1;
    }
    """


class GigclawDashboardApp(App):
    """Interactive terminal dashboard for the marketplace."""

    TITLE = "GigClaw"
    SUB_TITLE = "Marketplace Dashboard"

    CSS = """
    Screen {
        background: $surface;
    }
    """

    # Priority bindings so Textual's own focus/quit bindings never swallow them
    BINDINGS = [
        Binding("q", "press('q')", "Quit", show=False, priority=True),
        Binding("escape", "press('escape')", "Quit", show=False, priority=True),
        Binding("ctrl+c", "press('ctrl+c')", "Quit", show=False, priority=True),
        Binding("tab", "press('tab')", "Next tab", show=False, priority=True),
        Binding("right", "press('right')", "Next tab", show=False, priority=True),
        Binding("shift+tab", "press('shift+tab')", "Previous tab", show=False, priority=True),
        Binding("left", "press('left')", "Previous tab", show=False, priority=True),
        Binding("up", "press('up')", "Up", show=False, priority=True),
        Binding("k", "press('k')", "Up", show=False, priority=True),
        Binding("down", "press('down')", "Down", show=False, priority=True),
        Binding("j", "press('j')", "Down", show=False, priority=True),
        Binding("pageup", "press('pageup')", "Page up", show=False, priority=True),
        Binding("pagedown", "press('pagedown')", "Page down", show=False, priority=True),
        Binding("home", "press('home')", "First task", show=False, priority=True),
        Binding("end", "press('end')", "Last task", show=False, priority=True),
        Binding("r", "press('r')", "Refresh", show=False, priority=True),
        Binding("f5", "press('f5')", "Refresh", show=False, priority=True),
        Binding("question_mark", "press('?')", "Help", show=False, priority=True),
    ]

    def __init__(
        self,
        source: TaskSource,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        runtime_options: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the app.

        Args:
            source: Task source for background fetches.
            refresh_interval: Seconds between periodic refreshes.
            runtime_options: Extra keyword arguments for DashboardRuntime
                (executor, timer_factory, clock).
        """
        super().__init__(**kwargs)
        self._source = source
        self._refresh_interval = refresh_interval
        self._runtime_options = runtime_options or {}
        self._runtime: DashboardRuntime | None = None

    @property
    def runtime(self) -> DashboardRuntime | None:
        return self._runtime

    def compose(self) -> ComposeResult:
        yield FrameView(id="frame", markup=False)

    def on_mount(self) -> None:
        """Start the runtime and the queue pump."""
        self._runtime = DashboardRuntime(
            self._source,
            refresh_interval=self._refresh_interval,
            viewport=Viewport(width=self.size.width, height=self.size.height),
            on_frame=self._show_frame,
            **self._runtime_options,
        )
        self._runtime.start()
        self.set_interval(PUMP_INTERVAL, self._pump)

    def on_unmount(self) -> None:
        if self._runtime is not None:
            self._runtime.stop()

    def on_resize(self, event: events.Resize) -> None:
        if self._runtime is not None:
            self._runtime.dispatch(Resized(width=event.size.width, height=event.size.height))

    def action_press(self, key: str) -> None:
        """Forward a bound key to the state machine and apply it right away."""
        if self._runtime is None:
            return
        self._runtime.dispatch(KeyPressed(key))
        self._pump()

    def _pump(self) -> None:
        if self._runtime is None:
            return
        self._runtime.process_pending()
        if not self._runtime.running:
            self.exit()

    def _show_frame(self, frame: str) -> None:
        self.query_one("#frame", FrameView).update(frame)


def run_dashboard(source: TaskSource, refresh_interval: float = DEFAULT_REFRESH_INTERVAL) -> None:
    """Run the dashboard until the user quits."""
    app = GigclawDashboardApp(source, refresh_interval=refresh_interval)
    app.run()
