"""RFC 5988 Link header parsing for Basecamp pagination.

Basecamp paginates list endpoints with a Link header:

    Link: <https://3.basecampapi.com/999999999/buckets/2085958496/messages.json?page=4>; rel="next"

The parser is a character-scanning state machine instead of a split on commas
because quoted parameter values may contain commas and semicolons.

Reference: https://datatracker.ietf.org/doc/html/rfc5988#section-5
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import urlsplit

logger = logging.getLogger("bc4.api.link_header")

__all__ = [
    "LinkEntry",
    "extract_path_from_url",
    "parse_link_header",
    "parse_next_link",
]

_WHITESPACE = " \t"


@dataclass
class LinkEntry:
    """One ``<url>; name=value; ...`` entry of a Link header.

    Attributes:
        url: Target URL exactly as it appeared between the angle brackets
        params: Parameters keyed by lowercased name; values keep their case
    """

    url: str
    params: dict[str, str] = field(default_factory=dict)

    def has_relation(self, rel: str) -> bool:
        """True if ``rel`` is one of the space-separated relation types."""
        value = self.params.get("rel")
        if value is None:
            return False
        wanted = rel.lower()
        return any(r.lower() == wanted for r in value.strip('"').split())


class _Scanner:
    """Cursor over a header value."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    @property
    def done(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos]

    def skip(self, chars: str) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in chars:
            self.pos += 1

    def read_until(self, stops: str) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in stops:
            self.pos += 1
        return self.text[start : self.pos]

    def skip_to_next_entry(self) -> None:
        """Resynchronise on the next ``<`` after a malformed entry."""
        next_start = self.text.find("<", self.pos)
        self.pos = len(self.text) if next_start == -1 else next_start


def _read_quoted(scanner: _Scanner) -> str | None:
    """Read a quoted-string; the opening quote is under the cursor.

    Returns:
        Unescaped value, or None if the closing quote is missing
    """
    scanner.pos += 1
    chars: list[str] = []
    while not scanner.done:
        ch = scanner.peek()
        if ch == "\\" and scanner.pos + 1 < len(scanner.text):
            chars.append(scanner.text[scanner.pos + 1])
            scanner.pos += 2
            continue
        if ch == '"':
            scanner.pos += 1
            return "".join(chars)
        chars.append(ch)
        scanner.pos += 1
    return None


def _parse_params(scanner: _Scanner) -> dict[str, str] | None:
    """Parse ``; name=value`` pairs up to the next unquoted comma or the end.

    Returns:
        The parameters, or None if the entry is malformed
    """
    params: dict[str, str] = {}
    while True:
        scanner.skip(_WHITESPACE + ";")
        if scanner.done:
            return params
        if scanner.peek() == ",":
            scanner.pos += 1
            return params

        name = scanner.read_until("=,;" + _WHITESPACE)
        if not name:
            # Stray character where a parameter name should start
            scanner.pos += 1
            continue

        value = ""
        scanner.skip(_WHITESPACE)
        if not scanner.done and scanner.peek() == "=":
            scanner.pos += 1
            scanner.skip(_WHITESPACE)
            if not scanner.done:
                if scanner.peek() == '"':
                    quoted = _read_quoted(scanner)
                    if quoted is None:
                        return None
                    value = quoted
                else:
                    value = scanner.read_until(_WHITESPACE + ";,")

        params[name.lower()] = value


def parse_link_header(value: str) -> list[LinkEntry]:
    """Parse every entry of a Link header value.

    Malformed entries (no closing ``>``, unterminated quoted value) are
    dropped and parsing resumes at the next ``<``.

    Args:
        value: Raw header value (may be empty)

    Returns:
        Entries in header order
    """
    entries: list[LinkEntry] = []
    scanner = _Scanner(value or "")

    while True:
        scanner.skip(_WHITESPACE + ",")
        if scanner.done:
            break
        if scanner.peek() != "<":
            scanner.pos += 1
            continue

        scanner.pos += 1
        url = scanner.read_until(">")
        if scanner.done:
            logger.debug("link_header_unterminated_url", extra={"header": value})
            break
        scanner.pos += 1

        params = _parse_params(scanner)
        if params is None:
            logger.debug("link_header_unterminated_quote", extra={"header": value})
            scanner.skip_to_next_entry()
            continue

        if url:
            entries.append(LinkEntry(url=url, params=params))

    return entries


def parse_next_link(value: str) -> str:
    """Return the URL of the first ``rel="next"`` entry, or "" if there is none."""
    if not value:
        return ""
    for entry in parse_link_header(value):
        if entry.has_relation("next"):
            return entry.url
    return ""


def extract_path_from_url(url: str, api_domain: str = "basecampapi.com") -> str:
    """Convert an absolute Basecamp API URL into a path relative to the account.

    Example:
        >>> extract_path_from_url(
        ...     "https://3.basecampapi.com/999999999/buckets/123/todos.json?page=2"
        ... )
        '/buckets/123/todos.json?page=2'

    Args:
        url: Absolute URL from a Link header, or an already-relative path
        api_domain: Host (or parent domain) whose first numeric path segment
            is the account ID

    Returns:
        Relative path with query string, or "" for input that cannot be used
        (scheme-less or unparsable), which stops pagination
    """
    if url.startswith("/"):
        return url

    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
    except ValueError:
        logger.debug("link_url_unparsable", extra={"url": url})
        return ""

    if not parts.scheme:
        return ""

    path = parts.path
    domain = api_domain.lower()
    if host and (host == domain or host.endswith("." + domain)):
        segments = path.lstrip("/").split("/")
        if len(segments) >= 2 and segments[0].isdigit() and segments[0].isascii():
            path = "/" + "/".join(segments[1:])

    if parts.query:
        path += "?" + parts.query
    return path
