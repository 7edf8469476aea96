"""Shared pytest fixtures for GigClaw tests.

Test doubles live in :mod:`tests.mocks` and data builders in
:mod:`tests.helpers`; this module only wires them into fixtures.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Iterator
from typing import Any

import pytest

from gigclaw.client import ClientConfig, MarketplaceClient
from gigclaw.logging import JSONFormatter, StructuredFormatter
from tests.helpers import TEST_BASE_URL
from tests.mocks import RecordingSleep, RecordingTransport, ResponseSpec

ClientFactoryFixture = Callable[..., tuple[MarketplaceClient, RecordingTransport]]


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client(recording_sleep: RecordingSleep) -> Iterator[ClientFactoryFixture]:
    """Factory fixture building a client wired to a RecordingTransport.

    Usage::

        def test_example(make_client):
            client, transport = make_client([503, (200, {"tasks": []})])
    """
    created: list[MarketplaceClient] = []

    def factory(
        responses: Iterable[ResponseSpec], **config_overrides: Any
    ) -> tuple[MarketplaceClient, RecordingTransport]:
        options: dict[str, Any] = {"base_url": TEST_BASE_URL, "max_retries": 3}
        options.update(config_overrides)
        transport = RecordingTransport(responses)
        client = MarketplaceClient(
            ClientConfig(**options), transport=transport, sleep=recording_sleep
        )
        created.append(client)
        return client, transport

    yield factory

    for client in created:
        client.close()


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Remove handlers installed by setup_logging and restore logger levels."""
    root = logging.getLogger()
    saved_level = root.level
    watched = [logging.getLogger(name) for name in ("gigclaw", "httpx")]
    saved_levels = [logger.level for logger in watched]

    yield

    for handler in root.handlers[:]:
        if isinstance(handler, logging.NullHandler) or isinstance(
            handler.formatter, (StructuredFormatter, JSONFormatter)
        ):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved_level)
    for logger, level in zip(watched, saved_levels):
        logger.setLevel(level)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every GIGCLAW_* variable so tests only see what they set."""
    for name in list(os.environ):
        if name.startswith("GIGCLAW_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
