"""Application entry point for the GigClaw CLI.

This module coordinates:
- Argument parsing and configuration loading
- Applying command-line overrides on top of the loaded configuration
- Logging setup (stderr for commands, file-only for the dashboard)
- Dispatching to the subcommand and turning failures into exit codes
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace

from gigclaw import commands
from gigclaw.cli import parse_args
from gigclaw.client import MarketplaceClient
from gigclaw.config import Config, load_config
from gigclaw.errors import APIError, ConfigurationError
from gigclaw.logging import get_logger, setup_logging

logger = get_logger(__name__)

EXIT_INTERRUPTED = 130


def apply_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply command-line flags on top of the loaded configuration."""
    overrides: dict[str, object] = {}
    if parsed.api_url is not None:
        overrides["api_url"] = parsed.api_url.strip()
    if parsed.api_key is not None:
        overrides["api_key"] = parsed.api_key.strip()
    if parsed.log_level is not None:
        overrides["log_level"] = parsed.log_level
    if not overrides:
        return config
    return replace(config, **overrides)


def run_command(parsed: argparse.Namespace, config: Config) -> int:
    """Dispatch to the selected subcommand.

    Raises:
        APIError: If a marketplace request fails.
        ConfigurationError: If the client configuration is invalid.
    """
    if parsed.command == "doctor":
        return commands.run_doctor(config)

    with MarketplaceClient(config.client_config()) as client:
        if parsed.command == "health":
            return commands.run_health(client)
        if parsed.command == "dashboard":
            return commands.run_dashboard(client, config)

        match parsed.task_command:
            case "list":
                return commands.run_task_list(client)
            case "post":
                return commands.run_task_post(
                    client,
                    title=parsed.title,
                    description=parsed.description,
                    budget=parsed.budget,
                    currency=parsed.currency,
                    tags=parsed.tags,
                )
            case "bid":
                return commands.run_bid(
                    client, parsed.task_id, amount=parsed.amount, message=parsed.message
                )
            case "accept":
                return commands.run_accept(client, parsed.task_id, parsed.bid_id)
            case _:
                raise ConfigurationError(f"Unknown task action: {parsed.task_command}")


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code: 0 for success, 1 for any error.
    """
    parsed = parse_args(args)

    try:
        config = load_config(env_file=parsed.env_file, config_file=parsed.config)
    except ConfigurationError as e:
        print(f"✗ Configuration error: {e}", file=sys.stderr)
        return 1
    config = apply_overrides(config, parsed)

    # The dashboard owns the terminal, so its logs only go to the log file
    setup_logging(
        config.log_level,
        json_format=config.log_json,
        log_file=config.log_file,
        console=parsed.command != "dashboard",
    )
    logger.debug("Running command %s against %s", parsed.command, config.api_url)

    try:
        return run_command(parsed, config)
    except APIError as e:
        logger.debug("Command failed: %r", e)
        print(e.format_for_display(), file=sys.stderr)
        return 1
    except ConfigurationError as e:
        print(f"✗ Configuration error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


__all__ = ["apply_overrides", "main", "run_command"]
