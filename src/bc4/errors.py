"""Typed errors raised by the Basecamp API-access core.

Every error carries enough context (status, path, body snippet) for the
presentation layer to decide whether to retry, re-authenticate, or report.
Endpoint functions wrap errors with a description of the attempted operation
through :func:`operation`, which keeps the original exception type.
"""

from contextlib import contextmanager
from typing import Iterator

__all__ = [
    "APIError",
    "AuthenticationError",
    "BasecampError",
    "CancellationError",
    "DecodeError",
    "NotFoundError",
    "RateLimitedError",
    "RequestError",
    "ValidationError",
    "operation",
]

# Body text kept on errors; Basecamp error pages can be large HTML documents
BODY_SNIPPET_LIMIT = 500


class BasecampError(Exception):
    """Base class for all core errors.

    Attributes:
        message: Description of the underlying failure
        status_code: HTTP status when the error came from a response
        path: Request path relative to the account root
        body: Response body snippet (truncated)
        context: Operation descriptions, outermost first
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        path: str | None = None,
        body: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.path = path
        self.body = body[:BODY_SNIPPET_LIMIT] if body else body
        self.context: list[str] = []
        super().__init__(message)

    def add_context(self, description: str) -> "BasecampError":
        """Prefix the error with the operation that was being attempted."""
        self.context.insert(0, description)
        return self

    def __str__(self) -> str:
        return ": ".join([*self.context, self.message])


class AuthenticationError(BasecampError):
    """Basecamp rejected the access token (HTTP 401). Re-authenticate, don't retry."""


class NotFoundError(BasecampError):
    """Requested resource does not exist (HTTP 404).

    Attributes:
        resource: Best-effort guess of the resource kind ("project", "todo", ...)
    """

    def __init__(self, resource: str, message: str | None = None, **kwargs) -> None:
        self.resource = resource
        super().__init__(message or f"{resource} not found", **kwargs)


class RateLimitedError(BasecampError):
    """Basecamp's own quota was exceeded (HTTP 429).

    Distinct from local throttling: the local token bucket delays requests,
    it never raises.

    Attributes:
        retry_after: Seconds to wait from the Retry-After header, if present
    """

    def __init__(self, retry_after: float | None = None, message: str | None = None, **kwargs) -> None:
        self.retry_after = retry_after
        if message is None:
            message = "rate limit exceeded"
            if retry_after is not None:
                message += f", retry after {retry_after:g}s"
        super().__init__(message, **kwargs)


class APIError(BasecampError):
    """Any other HTTP status >= 400. Carries status code and raw body."""

    def __init__(self, status_code: int, body: str = "", **kwargs) -> None:
        message = f"API error {status_code}"
        if body:
            message += f": {body[:BODY_SNIPPET_LIMIT]}"
        super().__init__(
            message,
            status_code=status_code,
            body=body,
            **kwargs,
        )


class DecodeError(BasecampError):
    """Response body was not the JSON shape expected. Never retried."""


class CancellationError(BasecampError):
    """A cancel token or deadline ended an in-flight operation."""


class ValidationError(BasecampError):
    """Generated rich text contains a tag or attribute Basecamp does not accept.

    Indicates a converter bug rather than a user error.
    """


class RequestError(BasecampError):
    """Transport-level failure (connection refused, timeout, protocol error)."""


@contextmanager
def operation(description: str) -> Iterator[None]:
    """Attach ``description`` to any BasecampError raised inside the block.

    Example:
        >>> with operation("failed to fetch card table"):
        ...     await client.get_json(path, CardTable)
        # NotFoundError: failed to fetch card table: card_table not found
    """
    try:
        yield
    except BasecampError as e:
        e.add_context(description)
        raise
