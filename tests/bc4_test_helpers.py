"""Shared helpers for bc4-core tests.

Builds BasecampClient instances on top of httpx.MockTransport so tests talk
to an in-process fake Basecamp instead of the network.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from bc4.api.client import BasecampClient
from bc4.api.ratelimit import RateLimiter

ACCOUNT_ID = "999999999"
BASE_URL = "https://3.basecampapi.com"
ACCESS_TOKEN = "test-access-token"

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_client(
    handler: Callable[[httpx.Request], Any],
    limiter: RateLimiter | None = None,
    page_delay_ms: int = 0,
    **kwargs: Any,
) -> BasecampClient:
    """Client wired to a MockTransport handler (sync or async), zero page delay."""
    return BasecampClient(
        ACCOUNT_ID,
        ACCESS_TOKEN,
        limiter or RateLimiter(max_tokens=1000, window_seconds=1.0),
        page_delay_ms=page_delay_ms,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def json_response(data: Any, status_code: int = 200, headers: dict | None = None) -> httpx.Response:
    return httpx.Response(status_code, json=data, headers=headers)


def next_link(path: str) -> dict[str, str]:
    """Link header pointing at ``path`` the way Basecamp formats it."""
    return {"Link": f'<{BASE_URL}/{ACCOUNT_ID}{path}>; rel="next"'}


def relative_path(request: httpx.Request) -> str:
    """Request path with the account prefix removed, plus query string."""
    path = request.url.path.removeprefix(f"/{ACCOUNT_ID}")
    query = request.url.query.decode()
    return f"{path}?{query}" if query else path


def recording_json(
    id: int,
    minutes_ago: int = 0,
    type: str = "Todo",
    creator_id: int = 1,
) -> dict[str, Any]:
    """Recording payload updated ``minutes_ago`` before T0."""
    updated = T0 - timedelta(minutes=minutes_ago)
    return {
        "id": id,
        "title": f"{type} {id}",
        "status": "active",
        "type": type,
        "created_at": updated.isoformat(),
        "updated_at": updated.isoformat(),
        "creator": {"id": creator_id, "name": f"Person {creator_id}"},
        "bucket": {"id": 42, "name": "Launch", "type": "Project"},
    }


def person_json(id: int, name: str, email: str, sgid: str = "") -> dict[str, Any]:
    return {
        "id": id,
        "name": name,
        "email_address": email,
        "attachable_sgid": sgid or f"sgid-{id}",
    }
