"""Terminal dashboard: state machine, renderer, runtime and Textual host."""

from gigclaw.dashboard.engine import DashboardState, Tab, Viewport, initial_state, update
from gigclaw.dashboard.render import render
from gigclaw.dashboard.runtime import DashboardRuntime

__all__ = [
    "DashboardRuntime",
    "DashboardState",
    "Tab",
    "Viewport",
    "initial_state",
    "render",
    "update",
]
