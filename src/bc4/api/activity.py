"""Project activity: recordings of several types fetched in parallel.

Basecamp has no single "activity feed" endpoint, so the feed is assembled
from ``/projects/recordings.json``, one paginated fetch per recording type.
The fetches run concurrently under one cancellation scope: the first failure
cancels the siblings (including requests already in flight) and no partial
results are returned.

With a ``since`` cutoff each fetch stops paginating as soon as a page ends at
or before the cutoff, because Basecamp returns each type sorted by
``updated_at`` descending.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence
from urllib.parse import urlencode

from .. import metrics
from ..errors import BasecampError, operation
from .cancel import CancelToken
from .client import BasecampClient
from .models import Event, Recording
from .pagination import PageCheck, Paginator, page_decoder

logger = logging.getLogger("bc4.api.activity")

__all__ = [
    "DEFAULT_RECORDING_TYPES",
    "ActivityListOptions",
    "filter_recordings",
    "get_recording",
    "list_events",
    "list_recordings",
    "since_page_check",
    "sort_recordings",
]

DEFAULT_RECORDING_TYPES = ("Todo", "Message", "Document", "Comment")


@dataclass(frozen=True)
class ActivityListOptions:
    """Filters for :func:`list_recordings`.

    Attributes:
        since: Drop recordings updated before this time (None = no cutoff)
        recording_types: Types to fetch (empty = DEFAULT_RECORDING_TYPES)
        person_id: Keep only recordings created by this person (0 = anyone)
        limit: Maximum recordings returned (0 = unlimited)
    """

    since: datetime | None = None
    recording_types: Sequence[str] = ()
    person_id: int = 0
    limit: int = 0


def _aware(dt: datetime) -> datetime:
    # Basecamp timestamps carry an offset; treat naive cutoffs as UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def since_page_check(since: datetime) -> PageCheck:
    """Continue paginating only while a page's last item is newer than ``since``."""
    cutoff = _aware(since)

    def check(page: Sequence[Recording]) -> bool:
        if not page:
            return False
        return page[-1].updated_at > cutoff

    return check


def sort_recordings(recordings: list[Recording]) -> list[Recording]:
    """Sort by ``updated_at`` descending; equal timestamps keep their input order."""
    return sorted(recordings, key=lambda r: r.updated_at, reverse=True)


def filter_recordings(recordings: list[Recording], options: ActivityListOptions) -> list[Recording]:
    """Apply since, person and limit filters, in that order."""
    cutoff = _aware(options.since) if options.since is not None else None
    filtered: list[Recording] = []
    for recording in recordings:
        if cutoff is not None and recording.updated_at < cutoff:
            continue
        if options.person_id and recording.creator_id != options.person_id:
            continue
        filtered.append(recording)
        if options.limit > 0 and len(filtered) >= options.limit:
            break
    return filtered


async def _list_recordings_by_type(
    client: BasecampClient,
    project_id: str,
    recording_type: str,
    since: datetime | None,
    token: CancelToken,
) -> list[Recording]:
    query = urlencode(
        {
            "bucket": project_id,
            "type": recording_type,
            "sort": "updated_at",
            "direction": "desc",
        }
    )
    paginator = Paginator(
        client,
        page_check=since_page_check(since) if since is not None else None,
        token=token,
    )
    return await paginator.fetch_all(f"/projects/recordings.json?{query}", page_decoder(Recording))


async def list_recordings(
    client: BasecampClient,
    project_id: str,
    options: ActivityListOptions | None = None,
    token: CancelToken | None = None,
) -> list[Recording]:
    """List a project's recordings across types, newest first.

    Args:
        client: API client
        project_id: Project (bucket) ID
        options: Type set and filters (default: all default types, no filters)
        token: Parent cancellation scope

    Returns:
        Merged, sorted and filtered recordings

    Raises:
        BasecampError: The first per-type failure, prefixed with
            "failed to list <Type> recordings"
    """
    options = options or ActivityListOptions()
    types = list(options.recording_types) or list(DEFAULT_RECORDING_TYPES)

    scope = CancelToken(token)
    tasks = {
        asyncio.create_task(
            _list_recordings_by_type(client, project_id, recording_type, options.since, scope),
            name=f"recordings-{recording_type}",
        ): index
        for index, recording_type in enumerate(types)
    }
    results: list[list[Recording]] = [[] for _ in types]
    first_error: BaseException | None = None
    first_error_type = ""

    try:
        pending = set(tasks)
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            for task in sorted(done, key=tasks.__getitem__):
                recording_type = types[tasks[task]]
                exc = task.exception()
                if exc is None:
                    results[tasks[task]] = task.result()
                    metrics.recordings_fetch_total.labels(
                        recording_type=recording_type, status="success"
                    ).inc()
                    continue

                if scope.cancelled and first_error is not None:
                    # Sibling unwinding after the scope was cancelled
                    metrics.recordings_fetch_total.labels(
                        recording_type=recording_type, status="cancelled"
                    ).inc()
                    continue

                metrics.recordings_fetch_total.labels(
                    recording_type=recording_type, status="failed"
                ).inc()
                logger.warning(
                    "recordings_fetch_failed",
                    extra={
                        "project_id": project_id,
                        "recording_type": recording_type,
                        "error": str(exc),
                    },
                )
                first_error = exc
                first_error_type = recording_type
                scope.cancel(f"{recording_type} recordings fetch failed")
    except asyncio.CancelledError:
        scope.cancel("activity listing cancelled")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    finally:
        scope.close()

    if first_error is not None:
        if isinstance(first_error, BasecampError):
            first_error.add_context(f"failed to list {first_error_type} recordings")
        raise first_error

    merged = [recording for per_type in results for recording in per_type]
    recordings = filter_recordings(sort_recordings(merged), options)

    logger.debug(
        "recordings_listed",
        extra={
            "project_id": project_id,
            "types": types,
            "fetched": len(merged),
            "returned": len(recordings),
        },
    )
    return recordings


async def list_events(
    client: BasecampClient,
    project_id: str,
    recording_id: int,
    token: CancelToken | None = None,
) -> list[Event]:
    """List the activity events of one recording."""
    with operation("failed to list events"):
        return await Paginator(client, token=token).fetch_all(
            f"/buckets/{project_id}/recordings/{recording_id}/events.json",
            page_decoder(Event),
        )


async def get_recording(
    client: BasecampClient,
    project_id: str,
    recording_id: int,
    token: CancelToken | None = None,
) -> Recording:
    with operation("failed to get recording"):
        return await client.get_json(
            f"/buckets/{project_id}/recordings/{recording_id}.json",
            Recording,
            token=token,
        )
