"""Error taxonomy for marketplace API failures.

Every failure the client observes, whether the transport broke or the service
answered with an error status, is mapped onto one :class:`ErrorKind`. Each kind
carries a short headline and a list of suggestions that the CLI prints and the
dashboard shows next to the last known task snapshot.

Classification rules:
- ``httpx.TimeoutException`` (connect, read, write or pool) -> TIMEOUT
- ``httpx.ConnectError`` (refused, unreachable, DNS) -> CONNECTION_REFUSED
- 404 -> NOT_FOUND
- 401 / 403 -> UNAUTHORIZED
- 400 -> BAD_REQUEST
- 5xx -> SERVER_ERROR
- anything else -> UNKNOWN
"""

from __future__ import annotations

from enum import Enum

import httpx

STATUS_PAGE_URL = "https://gigclaw-production.up.railway.app/health"


class ErrorKind(Enum):
    """Classified failure categories."""

    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


HEADLINES: dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "API request timed out",
    ErrorKind.CONNECTION_REFUSED: "Cannot connect to GigClaw API",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.UNAUTHORIZED: "Authentication failed",
    ErrorKind.BAD_REQUEST: "Invalid request",
    ErrorKind.SERVER_ERROR: "API server error",
    ErrorKind.UNKNOWN: "Request failed",
}

SUGGESTIONS: dict[ErrorKind, tuple[str, ...]] = {
    ErrorKind.TIMEOUT: (
        "Check your internet connection",
        "The API might be temporarily unavailable",
        "Try again in a few moments",
    ),
    ErrorKind.CONNECTION_REFUSED: (
        "Check that the API URL is correct (GIGCLAW_API_URL or --api-url)",
        "The service might be down",
        "Try: gigclaw health",
        f"Status page: {STATUS_PAGE_URL}",
    ),
    ErrorKind.NOT_FOUND: (
        "The task or bid ID might be incorrect",
        "Check available tasks: gigclaw task list",
        "The resource may have been deleted",
    ),
    ErrorKind.UNAUTHORIZED: (
        "Check your API key (GIGCLAW_API_KEY or --api-key)",
        "Update 'api-key' in ~/.gigclaw/config.yaml",
        "Contact support if the issue persists",
    ),
    ErrorKind.BAD_REQUEST: (
        "Check your command arguments",
        "Verify required flags are provided",
        "Run with --help for usage info",
    ),
    ErrorKind.SERVER_ERROR: (
        "The server encountered an error",
        "This is usually temporary - please try again",
        f"Check status: {STATUS_PAGE_URL}",
    ),
    ErrorKind.UNKNOWN: (
        "Run with GIGCLAW_DEBUG=true for details",
        "Check your configuration (API URL and key)",
        "Try: gigclaw health",
    ),
}

MAX_RETRIES_PREFIX = "max retries exceeded"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid.

    This is a construction-time failure: it is raised before any request is
    attempted.
    """

    pass


class APIError(Exception):
    """A classified marketplace API failure.

    Attributes:
        kind: The taxonomy member this failure belongs to.
        message: Human-readable description of what failed.
        status_code: HTTP status code, or None for transport-level failures.
        retries_exhausted: True when the error surfaced after the retry budget
            ran out.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
        retries_exhausted: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.retries_exhausted = retries_exhausted

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"API error {self.status_code}: {self.message}"
        return self.message

    def __repr__(self) -> str:
        return (
            f"APIError(kind={self.kind.value!r}, message={self.message!r}, "
            f"status_code={self.status_code!r})"
        )

    @property
    def headline(self) -> str:
        """Short title for the error kind."""
        return HEADLINES[self.kind]

    @property
    def suggestions(self) -> tuple[str, ...]:
        """Actionable hints for resolving the error."""
        return SUGGESTIONS[self.kind]

    @property
    def suggestion(self) -> str:
        """Suggestions joined into a single line."""
        return "; ".join(self.suggestions)

    def as_retries_exhausted(self) -> APIError:
        """Return a copy of this error wrapped as "max retries exceeded"."""
        return APIError(
            self.kind,
            f"{MAX_RETRIES_PREFIX}: {self.message}",
            status_code=self.status_code,
            retries_exhausted=True,
        )

    def format_for_display(self) -> str:
        """Render the error with its headline and suggestions for terminal output."""
        lines = [f"✗ {self.headline}: {self}", "", "Suggestions:"]
        lines.extend(f"  • {hint}" for hint in self.suggestions)
        return "\n".join(lines)

    @classmethod
    def from_response(cls, response: httpx.Response, action: str) -> APIError:
        """Build an error from an unexpected HTTP response.

        Args:
            response: The response whose status code was not the expected one.
            action: What the client was doing (e.g. "failed to list tasks").

        Returns:
            APIError classified by the response status code.
        """
        message = f"{action}: {response.status_code} {response.reason_phrase}".rstrip()
        detail = _response_detail(response)
        if detail:
            message += f" - {detail}"
        return cls(classify_status(response.status_code), message, status_code=response.status_code)


def classify_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code onto the error taxonomy."""
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status_code == 400:
        return ErrorKind.BAD_REQUEST
    if 500 <= status_code < 600:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


def classify_exception(exc: Exception) -> APIError:
    """Wrap a transport-level exception into the error taxonomy.

    Args:
        exc: Exception raised while sending the request.

    Returns:
        APIError with no status code.
    """
    if isinstance(exc, httpx.TimeoutException):
        return APIError(ErrorKind.TIMEOUT, f"request timed out: {exc}")
    if isinstance(exc, httpx.ConnectError):
        return APIError(ErrorKind.CONNECTION_REFUSED, f"connection failed: {exc}")
    return APIError(ErrorKind.UNKNOWN, f"request failed: {exc}")


def _response_detail(response: httpx.Response, limit: int = 200) -> str:
    """Extract a short error detail from a response body.

    Prefers the ``error`` or ``message`` field of a JSON body and falls back
    to the raw text, truncated to ``limit`` characters.
    """
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value[:limit]
    text = response.text.strip()
    return text[:limit]
