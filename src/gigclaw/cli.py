"""Command-line interface argument parsing for the GigClaw CLI.

Global options override the configuration file and environment:
- API URL and key
- Configuration file and .env file locations
- Log level

Subcommands: ``health``, ``doctor``, ``task list``, ``task post``,
``task bid``, ``task accept`` and ``dashboard``.
"""

from __future__ import annotations

import argparse
from pathlib import Path


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"'{value}' is not a valid number") from e
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return parsed


def _add_task_parsers(subparsers: argparse._SubParsersAction) -> None:
    task_parser = subparsers.add_parser(
        "task",
        help="Manage tasks on the GigClaw marketplace",
        description="List tasks, post new tasks, bid on work and accept bids.",
    )
    task_sub = task_parser.add_subparsers(dest="task_command", metavar="<action>")
    task_sub.required = True

    task_sub.add_parser("list", help="List available tasks")

    post = task_sub.add_parser("post", help="Post a new task")
    post.add_argument("--title", "-t", required=True, help="Task title")
    post.add_argument("--description", "-d", default="", help="Task description")
    post.add_argument("--budget", "-b", type=_positive_float, required=True, help="Task budget")
    post.add_argument("--currency", "-c", default="USDC", help="Currency (default: USDC)")
    post.add_argument(
        "--tag",
        "-g",
        dest="tags",
        action="append",
        default=[],
        help="Task tag (can be given multiple times)",
    )

    bid = task_sub.add_parser("bid", help="Place a bid on a task")
    bid.add_argument("task_id", help="ID of the task to bid on")
    bid.add_argument("--amount", "-a", type=_positive_float, required=True, help="Bid amount")
    bid.add_argument("--message", "-m", default="", help="Bid message")

    accept = task_sub.add_parser(
        "accept",
        help="Accept a bid on your task",
        description="Accept a bid on a task you posted. This locks the funds in escrow.",
    )
    accept.add_argument("task_id", help="ID of the task")
    accept.add_argument("--bid", "-b", dest="bid_id", required=True, help="Bid ID to accept")


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="gigclaw",
        description="GigClaw - command-line client for the agent task marketplace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--api-url",
        default=None,
        help="Marketplace API URL (overrides GIGCLAW_API_URL)",
    )

    parser.add_argument(
        "--api-key",
        default=None,
        help="API key (overrides GIGCLAW_API_KEY)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: ~/.gigclaw/config.yaml)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides GIGCLAW_LOG_LEVEL)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    subparsers.add_parser("health", help="Check GigClaw API health")
    subparsers.add_parser("doctor", help="Diagnose GigClaw CLI configuration")
    _add_task_parsers(subparsers)
    subparsers.add_parser("dashboard", help="Launch the interactive terminal dashboard")

    return parser


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace. ``command`` names the subcommand and, for
        ``task``, ``task_command`` names the action.
    """
    return build_parser().parse_args(args)


__all__ = ["build_parser", "parse_args"]
