"""Plain-text formatting helpers shared by CLI output and the dashboard."""

from __future__ import annotations

from gigclaw.models import Task

STATUS_SYMBOLS = {
    "posted": "●",
    "in_progress": "◐",
    "inprogress": "◐",
    "completed": "◉",
    "verified": "✓",
    "cancelled": "✗",
}


def truncate(text: str, max_len: int) -> str:
    """Truncate ``text`` to ``max_len`` characters, ending with "..." when cut."""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def format_status(status: str) -> str:
    """Prefix a task status with its glyph; unknown statuses pass through."""
    symbol = STATUS_SYMBOLS.get(status.lower())
    if symbol is None:
        return status
    return f"{symbol} {status}"


def format_budget(task: Task) -> str:
    return f"{task.budget:.2f} {task.currency}".rstrip()


def format_tags(tags: tuple[str, ...] | list[str]) -> str:
    return ", ".join(tags) if tags else "-"


def format_table(headers: list[str], rows: list[list[str]], gap: int = 2) -> list[str]:
    """Lay out rows in left-aligned columns sized to their widest cell.

    Returns:
        Lines for the header, a dashed underline and each row.
    """
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    spacer = " " * gap

    def line(cells: list[str]) -> str:
        return spacer.join(cell.ljust(widths[i]) for i, cell in enumerate(cells)).rstrip()

    lines = [line(headers), line(["-" * len(h) for h in headers])]
    lines.extend(line(row) for row in rows)
    return lines
