"""Dashboard state machine.

The dashboard is modeled as ``(state, message) -> (state, commands)``. The
transition function :func:`update` is pure: it never performs I/O and never
mutates its input. Side effects (fetching tasks, arming the refresh timer,
quitting) are returned as command values and executed by
:class:`gigclaw.dashboard.runtime.DashboardRuntime`.

At most one fetch is in flight at any time. A fetch is only issued by a
transition out of ``loading=False``, so a manual refresh while loading is a
no-op, and the periodic refresh timer is re-armed only after a fetch
succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import IntEnum

from gigclaw.errors import APIError
from gigclaw.models import Task

DEFAULT_REFRESH_INTERVAL = 30.0

# Minimum table width and the rows reserved for header, status line, tabs and legend
MIN_TABLE_WIDTH = 60
TABLE_HORIZONTAL_MARGIN = 10
TABLE_VERTICAL_MARGIN = 12


class Tab(IntEnum):
    """Dashboard tabs, in display order."""

    TASKS = 0
    STATS = 1
    HELP = 2

    @property
    def title(self) -> str:
        return self.name.capitalize()


TAB_COUNT = len(Tab)

QUIT_KEYS = frozenset({"q", "ctrl+c", "escape"})
NEXT_TAB_KEYS = frozenset({"tab", "right"})
PREV_TAB_KEYS = frozenset({"shift+tab", "left"})
REFRESH_KEYS = frozenset({"r", "f5"})
HELP_KEYS = frozenset({"?"})
UP_KEYS = frozenset({"up", "k"})
DOWN_KEYS = frozenset({"down", "j"})
PAGE_UP_KEYS = frozenset({"pageup"})
PAGE_DOWN_KEYS = frozenset({"pagedown"})
FIRST_ROW_KEYS = frozenset({"home"})
LAST_ROW_KEYS = frozenset({"end"})


@dataclass(frozen=True)
class Viewport:
    """Terminal dimensions in cells."""

    width: int = 80
    height: int = 24


@dataclass(frozen=True)
class TableLayout:
    """Task table geometry derived from the viewport."""

    table_width: int
    title_width: int
    height: int

    @classmethod
    def for_viewport(cls, viewport: Viewport) -> TableLayout:
        table_width = max(viewport.width - TABLE_HORIZONTAL_MARGIN, MIN_TABLE_WIDTH)
        return cls(
            table_width=table_width,
            title_width=table_width // 3,
            height=max(viewport.height - TABLE_VERTICAL_MARGIN, 1),
        )


@dataclass(frozen=True)
class DashboardState:
    """Everything the dashboard shows.

    ``tasks`` is replaced wholesale on each successful fetch and left untouched
    on failure, so it is always the last known-good snapshot.

    ``cursor`` is the index of the selected task and ``offset`` the index of the
    first visible table row. Both stay within the current snapshot, and the
    cursor row is always inside the visible window.
    """

    active_tab: Tab = Tab.TASKS
    tasks: tuple[Task, ...] = ()
    loading: bool = False
    error: APIError | None = None
    last_update: datetime | None = None
    viewport: Viewport = field(default_factory=Viewport)
    layout: TableLayout = field(default_factory=lambda: TableLayout.for_viewport(Viewport()))
    cursor: int = 0
    offset: int = 0


# Messages


@dataclass(frozen=True)
class KeyPressed:
    """A key event, using Textual key names ("q", "tab", "shift+tab", "f5", ...)."""

    key: str


@dataclass(frozen=True)
class RefreshTick:
    """The periodic refresh timer fired."""


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True)
class FetchSucceeded:
    tasks: tuple[Task, ...]
    fetched_at: datetime


@dataclass(frozen=True)
class FetchFailed:
    error: APIError


Message = KeyPressed | RefreshTick | Resized | FetchSucceeded | FetchFailed


# Commands


@dataclass(frozen=True)
class FetchTasks:
    """Fetch the task list in the background."""


@dataclass(frozen=True)
class ScheduleRefresh:
    """Deliver one :class:`RefreshTick` after ``delay`` seconds."""

    delay: float


@dataclass(frozen=True)
class Quit:
    """Stop the dashboard loop."""


Command = FetchTasks | ScheduleRefresh | Quit

Transition = tuple[DashboardState, list[Command]]


def initial_state(viewport: Viewport | None = None) -> DashboardState:
    """State at startup: loading, since the first fetch is issued right away."""
    viewport = viewport or Viewport()
    return DashboardState(
        loading=True,
        viewport=viewport,
        layout=TableLayout.for_viewport(viewport),
    )


def init_commands() -> list[Command]:
    """Commands to run once when the dashboard starts."""
    return [FetchTasks()]


def _begin_refresh(state: DashboardState) -> Transition:
    if state.loading:
        return state, []
    return replace(state, loading=True), [FetchTasks()]


def move_cursor(state: DashboardState, cursor: int) -> DashboardState:
    """Select row ``cursor``, clamped to the snapshot, scrolling it into view."""
    count = len(state.tasks)
    if count == 0:
        return replace(state, cursor=0, offset=0)

    height = state.layout.height
    cursor = min(max(cursor, 0), count - 1)
    offset = min(state.offset, cursor)
    offset = max(offset, cursor - height + 1)
    offset = min(offset, max(count - height, 0))
    return replace(state, cursor=cursor, offset=offset)


def _navigate(state: DashboardState, key: str) -> DashboardState | None:
    page = state.layout.height
    if key in UP_KEYS:
        return move_cursor(state, state.cursor - 1)
    if key in DOWN_KEYS:
        return move_cursor(state, state.cursor + 1)
    if key in PAGE_UP_KEYS:
        return move_cursor(state, state.cursor - page)
    if key in PAGE_DOWN_KEYS:
        return move_cursor(state, state.cursor + page)
    if key in FIRST_ROW_KEYS:
        return move_cursor(state, 0)
    if key in LAST_ROW_KEYS:
        return move_cursor(state, len(state.tasks) - 1)
    return None


def _handle_key(state: DashboardState, key: str) -> Transition:
    moved = _navigate(state, key)
    if moved is not None:
        return moved, []
    if key in QUIT_KEYS:
        return state, [Quit()]
    if key in NEXT_TAB_KEYS:
        return replace(state, active_tab=Tab((state.active_tab + 1) % TAB_COUNT)), []
    if key in PREV_TAB_KEYS:
        return replace(state, active_tab=Tab((state.active_tab - 1) % TAB_COUNT)), []
    if key in HELP_KEYS:
        return replace(state, active_tab=Tab.HELP), []
    if key in REFRESH_KEYS:
        return _begin_refresh(state)
    return state, []


def update(
    state: DashboardState,
    message: Message,
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
) -> Transition:
    """Apply one message to the dashboard state.

    Args:
        state: Current state.
        message: The message to apply.
        refresh_interval: Delay before the next periodic refresh, armed after
            each successful fetch.

    Returns:
        The new state and the commands to execute.
    """
    match message:
        case KeyPressed(key=key):
            return _handle_key(state, key)
        case RefreshTick():
            return _begin_refresh(state)
        case Resized(width=width, height=height):
            viewport = Viewport(width=width, height=height)
            resized = replace(state, viewport=viewport, layout=TableLayout.for_viewport(viewport))
            return move_cursor(resized, resized.cursor), []
        case FetchSucceeded(tasks=tasks, fetched_at=fetched_at):
            new_state = replace(
                state,
                tasks=tuple(tasks),
                loading=False,
                error=None,
                last_update=fetched_at,
            )
            # The new snapshot may be shorter than the old one
            return move_cursor(new_state, new_state.cursor), [ScheduleRefresh(refresh_interval)]
        case FetchFailed(error=error):
            # No retry here: the client already retried before giving up
            return replace(state, error=error, loading=False), []
        case _:
            return state, []
