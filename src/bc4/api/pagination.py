"""Link-header pagination over Basecamp list endpoints.

Basecamp list endpoints return a JSON array per page and advertise the next
page through ``Link: <...>; rel="next"``. :class:`Paginator` follows those
links, accumulating every page into one list in server order.

Each page costs one rate-limiter token (taken inside the client) and, between
pages, a short courtesy delay. A failure on any page aborts the whole fetch;
partially accumulated items are never returned.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, Sequence, TypeVar

from .. import metrics
from .client import decode_json
from .link_header import extract_path_from_url, parse_next_link

if TYPE_CHECKING:
    from .cancel import CancelToken
    from .client import BasecampClient

logger = logging.getLogger("bc4.api.pagination")

__all__ = ["PageCursor", "Paginator", "page_decoder", "with_page"]

T = TypeVar("T")

Decoder = Callable[[bytes], list[T]]
PageCheck = Callable[[Sequence[Any]], bool]


def page_decoder(model: type[T]) -> Decoder[T]:
    """Build a page decoder that validates a JSON array of ``model``.

    Raises (when called):
        DecodeError: If the page is not a JSON array of ``model``
    """

    def decode(content: bytes) -> list[T]:
        return decode_json(content, list[model])

    return decode


def with_page(path: str, page: int) -> str:
    """Append an explicit ``page=N`` query parameter."""
    separator = "&" if "?" in path else "?"
    return f"{path}{separator}page={page}"


@dataclass
class PageCursor:
    """Progress of one paginated fetch.

    Attributes:
        current_path: Path of the next page to fetch ("" when finished)
        pages_fetched: Pages fetched so far
        total_items_fetched: Items accumulated so far
    """

    current_path: str
    pages_fetched: int = 0
    total_items_fetched: int = 0


class Paginator(Generic[T]):
    """Fetch every page of a list endpoint.

    Example:
        >>> paginator = Paginator(client, max_pages=5)
        >>> projects = await paginator.fetch_all("/projects.json", page_decoder(Project))
    """

    def __init__(
        self,
        client: "BasecampClient",
        max_pages: int = 0,
        page_check: PageCheck | None = None,
        token: "CancelToken | None" = None,
        page_delay: float | None = None,
    ) -> None:
        """Initialize paginator.

        Args:
            client: API client (owns the rate limiter and base URL)
            max_pages: Stop after this many pages (0 = unlimited)
            page_check: Called with each decoded page after it is appended;
                returning False stops after that page
            token: Cancellation scope for every request and delay
            page_delay: Seconds between pages (default: the client's)
        """
        if max_pages < 0:
            raise ValueError(f"max_pages must be >= 0, got {max_pages}")
        self.client = client
        self.max_pages = max_pages
        self.page_check = page_check
        self.token = token
        self.page_delay = client.page_delay if page_delay is None else page_delay

    async def fetch_all(self, path: str, decode: Decoder[T]) -> list[T]:
        """Fetch pages starting at ``path`` until there is no next link.

        Stops early on an empty page, when ``max_pages`` is reached, or when
        ``page_check`` returns False. The stopping page's items are kept.

        Raises:
            CancellationError: If the token is cancelled between or during pages
            DecodeError: If a page body does not decode
            BasecampError: Typed HTTP error from the failing page
        """
        items: list[T] = []
        cursor = PageCursor(current_path=path)

        while cursor.current_path:
            if self.token is not None:
                self.token.raise_if_cancelled()

            response = await self.client.send("GET", cursor.current_path, token=self.token)
            page = decode(response.content)

            items.extend(page)
            cursor.pages_fetched += 1
            cursor.total_items_fetched += len(page)

            stop_reason = self._stop_reason(page, cursor)
            next_path = ""
            if stop_reason is None:
                next_url = parse_next_link(response.headers.get("Link", ""))
                if next_url:
                    next_path = extract_path_from_url(next_url, self.client.api_domain)
                if not next_path:
                    stop_reason = "last_page"

            metrics.pages_fetched_total.labels(stop_reason=stop_reason or "continue").inc()
            logger.debug(
                "page_fetched",
                extra={
                    "path": cursor.current_path,
                    "page": cursor.pages_fetched,
                    "page_items": len(page),
                    "total_items": cursor.total_items_fetched,
                    "stop_reason": stop_reason,
                },
            )

            cursor.current_path = next_path
            if cursor.current_path and self.page_delay > 0:
                if self.token is not None:
                    await self.token.sleep(self.page_delay)
                else:
                    await asyncio.sleep(self.page_delay)

        logger.debug(
            "pagination_complete",
            extra={
                "path": path,
                "pages": cursor.pages_fetched,
                "total_items": cursor.total_items_fetched,
            },
        )
        return items

    def _stop_reason(self, page: Sequence[Any], cursor: PageCursor) -> str | None:
        if not page:
            return "empty_page"
        if self.max_pages > 0 and cursor.pages_fetched >= self.max_pages:
            return "max_pages"
        if self.page_check is not None and not self.page_check(page):
            return "page_check"
        return None

    async def fetch_page(self, path: str, page: int, decode: Decoder[T]) -> list[T]:
        """Fetch a single page by number (``?page=N``), ignoring Link headers."""
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if self.token is not None:
            self.token.raise_if_cancelled()
        response = await self.client.send("GET", with_page(path, page), token=self.token)
        return decode(response.content)
