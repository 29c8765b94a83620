"""Basecamp 3/4 REST API client.

Provides an async httpx-based client with OAuth bearer auth. Every request
passes through the shared token-bucket limiter and, when given one, a
:class:`~bc4.api.cancel.CancelToken` that can interrupt it mid-flight.
Non-2xx responses are classified into the typed errors of :mod:`bc4.errors`.

Remote failures are not retried; they surface to the caller with status,
path and Retry-After attached.

Reference: https://github.com/basecamp/bc3-api
"""

import email.utils
import logging
import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Awaitable, TypeVar

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_json

from .. import metrics
from ..__version__ import USER_AGENT
from ..config import DEFAULT_BASE_URL
from ..errors import (
    APIError,
    AuthenticationError,
    CancellationError,
    DecodeError,
    NotFoundError,
    RateLimitedError,
    RequestError,
)
from .ratelimit import RateLimiter

if TYPE_CHECKING:
    from ..config import Bc4Config
    from .cancel import CancelToken

logger = logging.getLogger("bc4.api.client")

__all__ = [
    "BasecampClient",
    "decode_json",
    "raise_for_status",
    "resource_from_path",
]

T = TypeVar("T")

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


@lru_cache(maxsize=128)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def decode_json(content: bytes, tp: Any, path: str | None = None) -> Any:
    """Validate a JSON body against a pydantic model (or any type TypeAdapter accepts).

    Raises:
        DecodeError: If the body is not valid JSON of the expected shape
    """
    try:
        return _adapter(tp).validate_json(content)
    except PydanticValidationError as e:
        raise DecodeError(
            f"failed to decode response: {e.error_count()} validation error(s), first: "
            f"{e.errors()[0]['msg']}",
            path=path,
            body=content.decode("utf-8", errors="replace"),
        ) from e


def resource_from_path(path: str) -> str:
    """Guess the resource kind from a request path for not-found messages.

    ``/buckets/1/todos/2.json`` -> ``todo``; paths too short to tell ->
    ``resource``.
    """
    parts = path.split("?", 1)[0].split("/")
    if len(parts) > 2:
        return parts[-2].removesuffix("s")
    return "resource"


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After is either delta-seconds or an HTTP-date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("retry_after_unparsable", extra={"retry_after": value})
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def raise_for_status(response: httpx.Response, path: str) -> None:
    """Raise the typed error for a non-2xx/3xx response.

    Args:
        response: Fully-read response
        path: Request path, kept on the error for diagnostics

    Raises:
        AuthenticationError: 401
        NotFoundError: 404
        RateLimitedError: 429 (with retry_after when the header is present)
        APIError: Any other status >= 400
    """
    status = response.status_code
    if status < 400:
        return

    body = response.text
    if status == 401:
        raise AuthenticationError(
            "unauthorized: access token rejected",
            status_code=status,
            path=path,
            body=body,
        )
    if status == 404:
        raise NotFoundError(
            resource_from_path(path),
            status_code=status,
            path=path,
            body=body,
        )
    if status == 429:
        metrics.remote_rate_limited_total.inc()
        raise RateLimitedError(
            _parse_retry_after(response.headers.get("Retry-After")),
            status_code=status,
            path=path,
            body=body,
        )
    raise APIError(status, body, path=path)


class BasecampClient:
    """Basecamp API client using httpx with bearer token auth.

    Uses one long-lived httpx.AsyncClient with connection pooling, rooted at
    ``{base_url}/{account_id}`` so callers pass account-relative paths.

    Attributes:
        account_id: Basecamp account ID
        rate_limiter: Shared token bucket acquired before every request
        api_domain: Host suffix whose Link URLs are converted to relative paths
        page_delay: Courtesy delay between page fetches (seconds)

    Example:
        >>> limiter = RateLimiter()
        >>> async with BasecampClient("5624304", token, limiter) as client:
        ...     project = await client.get_json("/projects/1.json", Project)
    """

    # Timeout configuration
    CONNECT_TIMEOUT = 5.0  # seconds
    READ_TIMEOUT = 30.0  # seconds
    WRITE_TIMEOUT = 10.0  # seconds
    POOL_TIMEOUT = 5.0  # seconds

    # Courtesy delay between paginated requests (ms)
    PAGE_DELAY_MS = 100

    def __init__(
        self,
        account_id: str,
        access_token: str,
        rate_limiter: RateLimiter,
        *,
        base_url: str | None = None,
        api_domain: str = "basecampapi.com",
        user_agent: str = USER_AGENT,
        page_delay_ms: int = PAGE_DELAY_MS,
        timeout: httpx.Timeout | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            account_id: Basecamp account ID (numeric)
            access_token: OAuth access token (resolved by the caller)
            rate_limiter: Process-wide limiter shared with other clients
            base_url: API root (default: https://3.basecampapi.com)
            api_domain: Host suffix of the API for Link URL conversion
            user_agent: Fixed User-Agent header value
            page_delay_ms: Delay between paginated requests in milliseconds
            timeout: httpx timeout override
            transport: httpx transport override (tests use httpx.MockTransport)
        """
        if not account_id:
            raise ValueError("account_id is required")
        if not access_token:
            raise ValueError("access_token is required")

        self.account_id = account_id
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.api_domain = api_domain
        self.rate_limiter = rate_limiter
        self.page_delay = page_delay_ms / 1000.0

        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/{account_id}",
            headers={
                "Authorization": f"Bearer {access_token}",
                "User-Agent": user_agent,
                "Accept": "application/json",
            },
            timeout=timeout
            or httpx.Timeout(
                connect=self.CONNECT_TIMEOUT,
                read=self.READ_TIMEOUT,
                write=self.WRITE_TIMEOUT,
                pool=self.POOL_TIMEOUT,
            ),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: "Bc4Config",
        rate_limiter: RateLimiter | None = None,
        **kwargs: Any,
    ) -> "BasecampClient":
        """Build a client from settings.

        Raises:
            AuthenticationError: If the token or account ID is not configured
        """
        token = config.access_token.get_secret_value()
        if not token or not config.account_id:
            raise AuthenticationError("missing access token or account ID; log in first")

        return cls(
            config.account_id,
            token,
            rate_limiter or RateLimiter.from_config(config),
            base_url=config.base_url,
            api_domain=config.api_domain,
            page_delay_ms=config.page_delay_ms,
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
            **kwargs,
        )

    async def __aenter__(self) -> "BasecampClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit -- close httpx client."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    # --- Core HTTP Methods ---

    async def _guarded(self, call: Awaitable[T], token: "CancelToken | None") -> T:
        if token is None:
            return await call
        return await token.run(call)

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: dict[str, str] | None = None,
        token: "CancelToken | None" = None,
    ) -> httpx.Response:
        """Perform one rate-limited request and return the fully-read response.

        Args:
            method: HTTP method
            path: Account-relative path (may carry a query string) or absolute URL
            json: Payload serialized as a UTF-8 JSON body
            headers: Extra headers merged over the defaults
            token: Cancellation scope for the rate-limit wait and the call

        Returns:
            httpx.Response with status < 400 and body already read

        Raises:
            CancellationError: If ``token`` is cancelled before the call completes
            RequestError: On transport failures
            BasecampError: Typed error for status >= 400 (see raise_for_status)
        """
        await self.rate_limiter.acquire_async(token)

        request_headers: dict[str, str] = {}
        content: bytes | None = None
        if json is not None:
            content = to_json(json)
            request_headers["Content-Type"] = JSON_CONTENT_TYPE
        if headers:
            request_headers.update(headers)

        start = time.monotonic()
        try:
            response = await self._guarded(
                self._client.request(method, path, content=content, headers=request_headers),
                token,
            )
        except CancellationError:
            metrics.http_requests_total.labels(method=method, status_class="cancelled").inc()
            logger.debug("api_request_cancelled", extra={"method": method, "path": path})
            raise
        except httpx.HTTPError as e:
            metrics.http_requests_total.labels(method=method, status_class="error").inc()
            logger.warning(
                "api_request_failed",
                extra={"method": method, "path": path, "error": str(e)},
            )
            raise RequestError(f"{method} {path} failed: {e}", path=path) from e

        duration = time.monotonic() - start
        metrics.http_request_duration_seconds.labels(method=method).observe(duration)
        metrics.http_requests_total.labels(
            method=method, status_class=f"{response.status_code // 100}xx"
        ).inc()
        logger.debug(
            "api_request",
            extra={
                "method": method,
                "path": path,
                "status": response.status_code,
                "duration_ms": round(duration * 1000, 1),
            },
        )

        raise_for_status(response, path)
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: dict[str, str] | None = None,
        token: "CancelToken | None" = None,
    ) -> bytes:
        """Like :meth:`send` but returns only the body bytes."""
        response = await self.send(method, path, json=json, headers=headers, token=token)
        return response.content

    async def get_json(self, path: str, model: Any, *, token: "CancelToken | None" = None) -> Any:
        """GET ``path`` and decode the body into ``model``.

        Raises:
            DecodeError: If the body does not match ``model``
        """
        content = await self.request("GET", path, token=token)
        return decode_json(content, model, path)

    async def post_json(
        self,
        path: str,
        payload: Any,
        model: Any = None,
        *,
        token: "CancelToken | None" = None,
    ) -> Any:
        """POST a JSON payload; decode the response into ``model`` when given."""
        content = await self.request("POST", path, json=payload, token=token)
        if model is None:
            return None
        return decode_json(content, model, path)

    async def put_json(
        self,
        path: str,
        payload: Any,
        model: Any = None,
        *,
        token: "CancelToken | None" = None,
    ) -> Any:
        """PUT a JSON payload; decode the response into ``model`` when given."""
        content = await self.request("PUT", path, json=payload, token=token)
        if model is None:
            return None
        return decode_json(content, model, path)

    async def delete(self, path: str, *, token: "CancelToken | None" = None) -> None:
        await self.request("DELETE", path, token=token)
