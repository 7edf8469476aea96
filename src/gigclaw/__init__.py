"""GigClaw - command-line client for the agent task marketplace."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gigclaw-cli")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

from gigclaw.client import ClientConfig, MarketplaceClient
from gigclaw.errors import APIError, ConfigurationError, ErrorKind

__all__ = [
    "__version__",
    "APIError",
    "ClientConfig",
    "ConfigurationError",
    "ErrorKind",
    "MarketplaceClient",
]
