"""Pure text rendering of the dashboard state.

:func:`render` is a function of :class:`~gigclaw.dashboard.engine.DashboardState`
only. It performs no I/O and never mutates the state.
"""

from __future__ import annotations

from collections import Counter

from gigclaw.dashboard.engine import DashboardState, Tab, TableLayout
from gigclaw.errors import APIError
from gigclaw.formatting import format_budget, format_status, truncate
from gigclaw.models import Task

TITLE = "GigClaw Dashboard"
ONLINE_INDICATOR = "●"
LOADING_INDICATOR = "◌"
NO_TIMESTAMP = "--:--:--"

ID_WIDTH = 10
BUDGET_WIDTH = 14
STATUS_WIDTH = 14

LEGEND = "  tab/←→: Switch tabs  |  ↑/↓: Navigate  |  r: Refresh  |  q: Quit  |  ?: Help"

CURSOR_MARKER = "›"

# (label, glyph, statuses counted under it)
STATS_ROWS = (
    ("Posted", "●", ("posted",)),
    ("In Progress", "◐", ("in_progress", "inprogress")),
    ("Completed", "◉", ("completed",)),
    ("Verified", "✓", ("verified",)),
    ("Cancelled", "✗", ("cancelled",)),
)

HELP_TEXT = """\
  Keyboard Shortcuts

  Tab / →          Next tab
  Shift+Tab / ←    Previous tab
  ↑ / ↓ or k / j   Navigate list
  PgUp / PgDn      Scroll a page
  Home / End       First or last task
  r / F5           Refresh data
  ?                Show this help
  q / Esc          Quit dashboard

  CLI Commands

  gigclaw task list       View all tasks
  gigclaw task post       Create a new task
  gigclaw task bid        Bid on a task
  gigclaw task accept     Accept a bid
  gigclaw health          Check API health
  gigclaw doctor          Run diagnostics"""


def _render_title() -> str:
    bar = "─" * (len(TITLE) + 4)
    return f"╭{bar}╮\n│  {TITLE}  │\n╰{bar}╯"


def _render_status_line(state: DashboardState) -> str:
    indicator = LOADING_INDICATOR if state.loading else ONLINE_INDICATOR
    connection = "Refreshing" if state.loading else "Connected"
    last = state.last_update.strftime("%H:%M:%S") if state.last_update else NO_TIMESTAMP
    return f"  {indicator} API: {connection}  |  Last update: {last}  |  {len(state.tasks)} tasks"


def _render_tabs(state: DashboardState) -> str:
    labels = []
    for tab in Tab:
        if tab == state.active_tab:
            labels.append(f"[ {tab.title} ]")
        else:
            labels.append(f"  {tab.title}  ")
    return "  " + " ".join(labels).rstrip()


def _render_rule(state: DashboardState) -> str:
    return "─" * max(state.viewport.width - 4, 0)


def _table_row(cells: list[str], widths: list[int], marker: str = " ") -> str:
    return f"{marker} " + "  ".join(cell.ljust(w) for cell, w in zip(cells, widths)).rstrip()


def render_task_table(
    tasks: tuple[Task, ...],
    layout: TableLayout,
    cursor: int | None = None,
    offset: int = 0,
) -> str:
    """Render the window of ``layout.height`` rows starting at ``offset``.

    The row at index ``cursor`` is marked as selected. When the snapshot does
    not fit, a footer shows which rows are on screen.
    """
    widths = [ID_WIDTH, layout.title_width, BUDGET_WIDTH, STATUS_WIDTH]
    lines = [_table_row(["ID", "Title", "Budget", "Status"], widths)]
    lines.append(_table_row(["─" * w for w in widths], widths))

    visible = tasks[offset : offset + layout.height]
    for index, task in enumerate(visible, start=offset):
        cells = [
            truncate(task.id, ID_WIDTH),
            truncate(task.title, layout.title_width),
            truncate(format_budget(task), BUDGET_WIDTH),
            truncate(format_status(task.status), STATUS_WIDTH),
        ]
        marker = CURSOR_MARKER if index == cursor else " "
        lines.append(_table_row(cells, widths, marker))

    if len(visible) < len(tasks):
        lines.append(f"  rows {offset + 1}-{offset + len(visible)} of {len(tasks)}")
    return "\n".join(lines)


def render_empty_state() -> str:
    return (
        "  No tasks found.\n"
        "\n"
        "  Create your first task:\n"
        "  gigclaw task post --title 'My Task' --budget 50"
    )


def _render_tasks_tab(state: DashboardState) -> str:
    if not state.tasks:
        if state.loading:
            return "  Loading tasks..."
        return render_empty_state()
    return render_task_table(state.tasks, state.layout, state.cursor, state.offset)


def render_stats(tasks: tuple[Task, ...]) -> str:
    """Render task counts grouped by lifecycle status."""
    counts = Counter(task.status.lower() for task in tasks)
    lines = ["  Task Statistics", ""]
    for label, glyph, statuses in STATS_ROWS:
        count = sum(counts[status] for status in statuses)
        lines.append(f"  {glyph} {(label + ':').ljust(13)}{count}")
    lines.append("")
    lines.append(f"  Total: {len(tasks)} tasks")
    return "\n".join(lines)


def _render_error(state: DashboardState, error: APIError) -> str:
    lines = [f"  ✗ Error: {error}", ""]
    lines.extend(f"    • {hint}" for hint in error.suggestions)
    lines.extend(["", "  Press 'r' to retry or 'q' to quit.", ""])

    if state.tasks:
        last = state.last_update.strftime("%H:%M:%S") if state.last_update else NO_TIMESTAMP
        lines.append(f"  Last known tasks (as of {last}):")
        lines.append("")
        lines.append(render_task_table(state.tasks, state.layout, state.cursor, state.offset))
    else:
        lines.append(render_empty_state())
    return "\n".join(lines)


def render(state: DashboardState) -> str:
    """Render one frame for the current state.

    When an error is set the normal frame (status line and tabs) is
    suppressed; the error, its suggestions and the last known snapshot are
    shown instead.
    """
    if state.error is not None:
        return "\n".join([_render_title(), "", _render_error(state, state.error), "", LEGEND])

    if state.active_tab == Tab.TASKS:
        body = _render_tasks_tab(state)
    elif state.active_tab == Tab.STATS:
        body = render_stats(state.tasks)
    else:
        body = HELP_TEXT

    return "\n".join(
        [
            _render_title(),
            "",
            _render_status_line(state),
            "",
            _render_tabs(state),
            _render_rule(state),
            "",
            body,
            "",
            LEGEND,
        ]
    )
