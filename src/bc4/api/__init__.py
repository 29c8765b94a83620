"""Basecamp API access: HTTP core, rate limiting, pagination and endpoints.

Provides the async httpx-based client with a shared token-bucket limiter,
Link-header pagination with early termination, cancellation scopes, and the
parallel multi-type activity aggregator.
"""

from .activity import (
    DEFAULT_RECORDING_TYPES,
    ActivityListOptions,
    filter_recordings,
    get_recording,
    list_events,
    list_recordings,
    sort_recordings,
)
from .cancel import CancelToken
from .client import BasecampClient, raise_for_status
from .link_header import LinkEntry, extract_path_from_url, parse_link_header, parse_next_link
from .models import Bucket, Campfire, CampfireLine, Comment, Event, Parent, Person, Project, Recording
from .pagination import PageCursor, Paginator, page_decoder
from .ratelimit import RateLimiter

__all__ = [
    "DEFAULT_RECORDING_TYPES",
    "ActivityListOptions",
    "BasecampClient",
    "Bucket",
    "Campfire",
    "CampfireLine",
    "CancelToken",
    "Comment",
    "Event",
    "LinkEntry",
    "PageCursor",
    "Paginator",
    "Parent",
    "Person",
    "Project",
    "RateLimiter",
    "Recording",
    "extract_path_from_url",
    "filter_recordings",
    "get_recording",
    "list_events",
    "list_recordings",
    "page_decoder",
    "parse_link_header",
    "parse_next_link",
    "raise_for_status",
    "sort_recordings",
]
