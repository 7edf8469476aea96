"""Subcommand implementations.

Each ``run_*`` function takes already-parsed arguments and a client, prints a
plain-text result to ``out`` and returns the process exit code. API failures
propagate as :class:`~gigclaw.errors.APIError`; :func:`gigclaw.app.main`
prints them with their suggestions.
"""

from __future__ import annotations

import platform
import sys
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TextIO

from gigclaw.client import ClientConfig, MarketplaceClient
from gigclaw.config import DEFAULT_CONFIG_FILE, Config
from gigclaw.errors import APIError, ConfigurationError
from gigclaw.formatting import format_budget, format_tags, format_table, truncate
from gigclaw.logging import get_logger

logger = get_logger(__name__)

TITLE_COLUMN_WIDTH = 30

ClientFactory = Callable[[ClientConfig], MarketplaceClient]


def _print(out: TextIO, *lines: str) -> None:
    for line in lines:
        print(line, file=out)


def run_health(
    client: MarketplaceClient,
    out: TextIO = sys.stdout,
    now: Callable[[], datetime] = datetime.now,
) -> int:
    """Print the service health report."""
    health = client.health()
    _print(
        out,
        "GigClaw Status",
        "",
        f"  Status:    ● {health.status}",
        f"  Version:   {health.version or '-'}",
        "  Service:   Agent-Native Marketplace",
        f"  Time:      {now().strftime('%H:%M:%S')}",
        "",
    )
    if not health.is_healthy:
        _print(out, f"  ✗ Service reports status '{health.status}'")
        return 1
    _print(
        out,
        "  ✓ The agent economy is live",
        "",
        "Quick commands:",
        "  gigclaw dashboard  # Launch TUI",
        "  gigclaw task list  # View tasks",
    )
    return 0


def run_doctor(
    config: Config,
    out: TextIO = sys.stdout,
    client_factory: ClientFactory = MarketplaceClient,
) -> int:
    """Run setup diagnostics.

    Checks the configuration file, the API configuration and connectivity,
    and reports system information. A missing configuration file is only a
    warning since every setting can come from the environment.

    Returns:
        0 when no issue was found, 1 otherwise.
    """
    issues = 0
    warnings = 0

    _print(out, "GigClaw Doctor - Diagnostics", "")

    _print(out, "Configuration File")
    config_path = config.config_file or DEFAULT_CONFIG_FILE
    if config.config_file is not None:
        _print(out, f"  ✓ Config file loaded: {config_path}")
    else:
        _print(out, f"  ! Config file not found: {config_path}")
        _print(out, "    Using defaults and GIGCLAW_* environment variables")
        warnings += 1
    _print(out, "")

    _print(out, "API Configuration")
    _print(out, f"  API URL:  {config.api_url or '(not set)'}")
    _print(out, f"  API key:  {'set' if config.api_key else 'not set'}")
    _print(out, f"  Timeout:  {config.timeout:g}s, retries: {config.max_retries}")
    _print(out, "")

    _print(out, "API Connectivity")
    try:
        with client_factory(config.client_config()) as client:
            health = client.health()
    except ConfigurationError as e:
        _print(out, f"  ✗ Failed to create API client: {e}")
        issues += 1
    except APIError as e:
        _print(out, f"  ✗ API health check failed: {e}")
        _print(out, *(f"    • {hint}" for hint in e.suggestions))
        issues += 1
    else:
        _print(out, "  ✓ API is healthy")
        _print(out, f"  Version:  {health.version or '-'}")
    _print(out, "")

    _print(out, "System Information")
    _print(out, f"  OS:      {platform.system()}")
    _print(out, f"  Arch:    {platform.machine()}")
    _print(out, f"  Python:  {platform.python_version()}")
    _print(out, "")

    _print(out, "Summary")
    if issues == 0 and warnings == 0:
        _print(out, "  ✓ All checks passed! GigClaw is ready to use.")
    else:
        if issues:
            _print(out, f"  ✗ {issues} issue(s) found")
        if warnings:
            _print(out, f"  ! {warnings} warning(s) found")

    logger.debug("Doctor finished with %s issue(s), %s warning(s)", issues, warnings)
    return 1 if issues else 0


def run_task_list(client: MarketplaceClient, out: TextIO = sys.stdout) -> int:
    tasks = client.list_tasks()
    if not tasks:
        _print(
            out,
            "No tasks found.",
            "",
            "Post a task:",
            "  gigclaw task post --title 'My Task' --budget 50",
        )
        return 0

    _print(out, f"Found {len(tasks)} task(s)", "")
    rows = [
        [
            task.id,
            truncate(task.title, TITLE_COLUMN_WIDTH),
            format_budget(task),
            task.status,
            format_tags(task.tags),
        ]
        for task in tasks
    ]
    _print(out, *format_table(["ID", "TITLE", "BUDGET", "STATUS", "TAGS"], rows))
    return 0


def run_task_post(
    client: MarketplaceClient,
    title: str,
    description: str,
    budget: float,
    currency: str,
    tags: Sequence[str] = (),
    out: TextIO = sys.stdout,
) -> int:
    task = client.create_task(title, description, budget, currency, tags)

    _print(
        out,
        "✓ Task created successfully!",
        "",
        f"ID:       {task.id}",
        f"Title:    {task.title}",
        f"Budget:   {format_budget(task)}",
        f"Status:   {task.status}",
    )
    if task.tags:
        _print(out, f"Tags:     {format_tags(task.tags)}")
    if task.settlement is not None:
        _print(out, f"Escrow:   {task.settlement.status}")
        if task.settlement.reference:
            _print(out, f"Ref:      {task.settlement.reference}")
        if task.settlement.error:
            _print(out, f"Warning:  {task.settlement.error}")
    _print(
        out,
        "",
        "Next steps:",
        "  - Wait for bids: gigclaw task list",
        "  - Accept a bid:  gigclaw task accept <task-id> --bid <bid-id>",
    )
    return 0


def run_bid(
    client: MarketplaceClient,
    task_id: str,
    amount: float,
    message: str = "",
    out: TextIO = sys.stdout,
) -> int:
    bid = client.place_bid(task_id, amount, message)

    _print(
        out,
        "✓ Bid placed successfully!",
        "",
        f"Bid ID:   {bid.id}",
        f"Task ID:  {task_id}",
        f"Amount:   {bid.amount:.2f}",
    )
    if bid.message:
        _print(out, f"Message:  {bid.message}")
    _print(out, "", "Wait for the task owner to accept your bid.")
    return 0


def run_accept(
    client: MarketplaceClient,
    task_id: str,
    bid_id: str,
    out: TextIO = sys.stdout,
) -> int:
    client.accept_bid(task_id, bid_id)

    _print(
        out,
        "✓ Bid accepted!",
        "",
        f"Task ID: {task_id}",
        f"Bid ID:  {bid_id}",
        "",
        "Funds are now locked in escrow.",
        "The agent will be notified to start work.",
    )
    return 0


def run_dashboard(client: MarketplaceClient, config: Config) -> int:
    """Check connectivity, then run the interactive dashboard until quit.

    The client is closed as soon as the dashboard exits. A fetch still running
    on the worker thread then fails at its next retry step instead of sleeping
    through the remaining backoff, so the process does not linger after quit.

    Raises:
        APIError: If the API is unreachable before the dashboard starts.
    """
    from gigclaw.dashboard.app import run_dashboard as run_dashboard_app

    client.check_connectivity()
    try:
        run_dashboard_app(client, refresh_interval=config.refresh_interval)
    finally:
        logger.debug("Dashboard exited, closing API client")
        client.close()
    return 0


__all__ = [
    "run_accept",
    "run_bid",
    "run_dashboard",
    "run_doctor",
    "run_health",
    "run_task_list",
    "run_task_post",
]
