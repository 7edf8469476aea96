"""Resilient HTTP client for the GigClaw marketplace API.

Every marketplace operation goes through a single request path that applies a
uniform retry policy and classifies failures into :mod:`gigclaw.errors`.

Retry policy:
- ``max_retries + 1`` attempts in total (the original attempt plus N retries).
- Before retry ``n`` the client sleeps ``n**2 * backoff_unit`` seconds
  (quadratic: 1, 4, 9, ... units).
- Only transport failures (``httpx.TransportError``, which covers timeouts and
  refused connections) and 5xx responses are retried. Any other response is
  returned on the spot; 4xx responses are caller-side problems that will not
  heal on their own.
- When the attempts run out the last observed error is raised as
  "max retries exceeded".
- Each attempt carries its own timeout; there is no deadline across retries.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Self

import httpx

from gigclaw.errors import APIError, ConfigurationError, ErrorKind, classify_exception
from gigclaw.logging import get_logger
from gigclaw.models import Bid, HealthStatus, Settlement, Task

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_UNIT = 1.0

MISSING_URL_MESSAGE = (
    "API URL is required. Set GIGCLAW_API_URL, add 'api-url' to "
    "~/.gigclaw/config.yaml or pass --api-url"
)


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for :class:`MarketplaceClient`.

    Immutable after construction. Validation runs in ``__post_init__`` so an
    unusable configuration fails before any request is attempted.

    Attributes:
        base_url: Marketplace root URL (trailing slash is stripped).
        api_key: Optional bearer credential.
        timeout: Per-attempt timeout in seconds.
        max_retries: Retries after the first attempt.
        backoff_unit: Seconds in one backoff unit.
    """

    base_url: str
    api_key: str = ""
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_unit: float = DEFAULT_BACKOFF_UNIT

    def __post_init__(self) -> None:
        base_url = (self.base_url or "").strip()
        if not base_url:
            raise ConfigurationError(MISSING_URL_MESSAGE)
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative, got {self.max_retries}")
        if self.backoff_unit < 0:
            raise ConfigurationError(
                f"backoff_unit must not be negative, got {self.backoff_unit}"
            )
        object.__setattr__(self, "base_url", base_url.rstrip("/"))


def calculate_backoff_delay(attempt: int, backoff_unit: float = DEFAULT_BACKOFF_UNIT) -> float:
    """Calculate the delay before retry ``attempt``.

    Args:
        attempt: Retry number, 1 for the first retry.
        backoff_unit: Seconds in one backoff unit.

    Returns:
        ``attempt**2 * backoff_unit`` seconds.
    """
    return float(attempt * attempt) * backoff_unit


def _is_retryable_status(status_code: int) -> bool:
    return 500 <= status_code < 600


def execute_with_retry(
    send: Callable[[], httpx.Response],
    max_retries: int = DEFAULT_MAX_RETRIES,
    backoff_unit: float = DEFAULT_BACKOFF_UNIT,
    sleep: Callable[[float], object] = time.sleep,
) -> httpx.Response:
    """Send a request, retrying transport failures and 5xx responses.

    Args:
        send: Callable performing one attempt and returning the response.
        max_retries: Retries after the first attempt.
        backoff_unit: Seconds in one backoff unit.
        sleep: Function used to wait between attempts.

    Returns:
        The first response that is not a 5xx.

    Raises:
        APIError: With ``retries_exhausted=True`` when every attempt failed.
    """
    last_error: APIError | None = None
    last_exception: Exception | None = None
    total_attempts = max_retries + 1

    for attempt in range(total_attempts):
        if attempt > 0:
            delay = calculate_backoff_delay(attempt, backoff_unit)
            logger.debug(
                "Retry attempt %s/%s after %.2fs",
                attempt,
                max_retries,
                delay,
                extra={"attempt": attempt},
            )
            sleep(delay)

        try:
            response = send()
        except httpx.TransportError as e:
            last_error = classify_exception(e)
            last_exception = e
            logger.debug(
                "Request failed (attempt %s/%s): %s",
                attempt + 1,
                total_attempts,
                e,
                extra={"attempt": attempt},
            )
            continue

        if not _is_retryable_status(response.status_code):
            return response

        last_error = APIError(
            ErrorKind.SERVER_ERROR,
            f"server returned {response.status_code} {response.reason_phrase}".rstrip(),
            status_code=response.status_code,
        )
        last_exception = None
        logger.warning(
            "Server error %s (attempt %s/%s)",
            response.status_code,
            attempt + 1,
            total_attempts,
            extra={"attempt": attempt, "status_code": response.status_code},
        )

    if last_error is None:
        # Only reachable with a negative retry budget
        raise APIError(ErrorKind.UNKNOWN, "no request attempts were made")
    raise last_error.as_retries_exhausted() from last_exception


class MarketplaceClient:
    """Client for the GigClaw marketplace REST API.

    Uses connection pooling via a lazily created ``httpx.Client``. Stateless
    between calls apart from its immutable :class:`ClientConfig`.

    Once closed the client stays closed: a request issued afterwards, including
    the next attempt of a retry loop running on another thread, raises
    :class:`APIError` instead of opening a new connection pool. With the default
    ``sleep`` a backoff wait also ends as soon as the client is closed.

    Example::

        config = ClientConfig(base_url="https://gigclaw.example.com", api_key="k")
        with MarketplaceClient(config) as client:
            for task in client.list_tasks():
                print(task.id, task.title)
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], object] | None = None,
    ) -> None:
        """Initialize the marketplace client.

        Args:
            config: Connection settings.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
                in tests.
            sleep: Function used to wait between retry attempts. Defaults to
                a wait that is cut short by :meth:`close`.
        """
        self.config = config
        self._transport = transport
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._sleep = sleep if sleep is not None else self._closed.wait
        self._client: httpx.Client | None = None

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def _default_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _get_client(self) -> httpx.Client:
        """Get or create the reusable HTTP client.

        Raises:
            APIError: If the client has been closed.
        """
        with self._lock:
            if self._closed.is_set():
                raise APIError(ErrorKind.UNKNOWN, "client is closed")
            if self._client is None:
                self._client = httpx.Client(
                    base_url=self.config.base_url,
                    headers=self._default_headers(),
                    timeout=httpx.Timeout(self.config.timeout),
                    transport=self._transport,
                )
            return self._client

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Close the HTTP client and release pooled connections."""
        with self._lock:
            self._closed.set()
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Issue a request through the retry policy.

        Raises:
            APIError: If every attempt failed at the transport level or with 5xx.
        """
        req_logger = logger.with_context(method=method, path=path)
        req_logger.debug("Making request to %s%s", self.config.base_url, path)

        def send() -> httpx.Response:
            client = self._get_client()
            if payload is None:
                return client.request(method, path)
            return client.request(method, path, json=payload)

        response = execute_with_retry(
            send,
            max_retries=self.config.max_retries,
            backoff_unit=self.config.backoff_unit,
            sleep=self._sleep,
        )
        req_logger.debug("Received %s", response.status_code)
        return response

    @staticmethod
    def _expect_status(response: httpx.Response, expected: int, action: str) -> None:
        if response.status_code != expected:
            raise APIError.from_response(response, action)

    @staticmethod
    def _decode_object(response: httpx.Response, what: str) -> dict[str, Any]:
        """Decode a JSON object body.

        Raises:
            APIError: If the body is not a JSON object.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise APIError(ErrorKind.UNKNOWN, f"failed to decode {what}: {e}") from e
        if not isinstance(data, dict):
            raise APIError(
                ErrorKind.UNKNOWN,
                f"failed to decode {what}: expected a JSON object, got {type(data).__name__}",
            )
        return data

    def health(self) -> HealthStatus:
        """Check the API health.

        Returns:
            The service health report.

        Raises:
            APIError: If the service is unreachable or unhealthy.
        """
        response = self._request("GET", "/health")
        self._expect_status(response, 200, "health check failed")
        data = self._decode_object(response, "health response")
        return HealthStatus.from_dict(data)

    def check_connectivity(self) -> None:
        """Verify that the API is reachable.

        Raises:
            APIError: If the health endpoint does not answer with 200.
        """
        logger.debug("Checking API connectivity...")
        response = self._request("GET", "/health")
        self._expect_status(response, 200, "API returned an unexpected status")

    def list_tasks(self) -> list[Task]:
        """Retrieve all tasks.

        Returns:
            Tasks in the order the API returned them.

        Raises:
            APIError: If the request fails or the body cannot be decoded.
        """
        response = self._request("GET", "/api/tasks")
        self._expect_status(response, 200, "failed to list tasks")
        data = self._decode_object(response, "tasks")
        raw_tasks = data.get("tasks") or []
        try:
            tasks = [Task.from_dict(item) for item in raw_tasks]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise APIError(ErrorKind.UNKNOWN, f"failed to decode tasks: {e!r}") from e
        logger.info("Listed %s tasks", len(tasks))
        return tasks

    def create_task(
        self,
        title: str,
        description: str,
        budget: float,
        currency: str,
        tags: Sequence[str] = (),
    ) -> Task:
        """Post a new task.

        The API answers either with the task itself or with an envelope
        ``{"task": {...}, "blockchain": {...}}``; both are accepted and the
        settlement status, when present, is attached to the returned task.

        Raises:
            APIError: If the request fails or the body cannot be decoded.
        """
        payload = {
            "title": title,
            "description": description,
            "budget": budget,
            "currency": currency,
            "tags": list(tags),
        }
        response = self._request("POST", "/api/tasks", payload)
        self._expect_status(response, 201, "failed to create task")
        data = self._decode_object(response, "task")

        try:
            settlement = None
            if isinstance(data.get("task"), dict):
                envelope_settlement = data.get("blockchain")
                if isinstance(envelope_settlement, dict):
                    settlement = Settlement.from_dict(envelope_settlement)
                data = data["task"]
            task = Task.from_dict(data, settlement=settlement)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise APIError(ErrorKind.UNKNOWN, f"failed to decode task: {e!r}") from e

        logger.info("Created task %s", task.id, extra={"task_id": task.id})
        return task

    def place_bid(self, task_id: str, amount: float, message: str = "") -> Bid:
        """Place a bid on a task.

        Raises:
            APIError: If the request fails or the body cannot be decoded.
        """
        payload = {"amount": amount, "message": message}
        response = self._request("POST", f"/api/tasks/{task_id}/bid", payload)
        self._expect_status(response, 201, "failed to place bid")
        data = self._decode_object(response, "bid")

        try:
            if isinstance(data.get("bid"), dict):
                data = data["bid"]
            bid = Bid.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise APIError(ErrorKind.UNKNOWN, f"failed to decode bid: {e!r}") from e

        logger.info("Placed bid %s on task %s", bid.id, task_id, extra={"task_id": task_id})
        return bid

    def accept_bid(self, task_id: str, bid_id: str) -> None:
        """Accept a bid on a task.

        Raises:
            APIError: If the request fails.
        """
        response = self._request("POST", f"/api/tasks/{task_id}/accept", {"bidId": bid_id})
        self._expect_status(response, 200, "failed to accept bid")
        logger.info("Accepted bid %s on task %s", bid_id, task_id, extra={"task_id": task_id})
