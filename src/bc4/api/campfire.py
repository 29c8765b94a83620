"""Campfire (project chat) endpoints."""

import logging

from ..errors import NotFoundError, operation
from ..markdown import markdown_to_rich_text
from .cancel import CancelToken
from .client import BasecampClient
from .models import Campfire, CampfireLine
from .pagination import Paginator, page_decoder

logger = logging.getLogger("bc4.api.campfire")

__all__ = [
    "delete_campfire_line",
    "get_campfire",
    "get_campfire_by_name",
    "get_campfire_lines",
    "list_campfires",
    "post_campfire_line",
]

RICH_TEXT_CONTENT_TYPE = "text/html"


async def list_campfires(
    client: BasecampClient,
    project_id: str,
    token: CancelToken | None = None,
) -> list[Campfire]:
    with operation("failed to list campfires"):
        return await Paginator(client, token=token).fetch_all(
            f"/buckets/{project_id}/chats.json",
            page_decoder(Campfire),
        )


async def get_campfire(
    client: BasecampClient,
    project_id: str,
    campfire_id: int,
    token: CancelToken | None = None,
) -> Campfire:
    with operation("failed to get campfire"):
        return await client.get_json(
            f"/buckets/{project_id}/chats/{campfire_id}.json",
            Campfire,
            token=token,
        )


async def get_campfire_by_name(
    client: BasecampClient,
    project_id: str,
    name: str,
    token: CancelToken | None = None,
) -> Campfire:
    """Find a campfire by exact name, falling back to a case-insensitive partial match.

    Raises:
        NotFoundError: If no campfire matches
    """
    campfires = await list_campfires(client, project_id, token=token)

    for campfire in campfires:
        if campfire.name == name:
            return campfire

    wanted = name.lower()
    for campfire in campfires:
        if wanted in campfire.name.lower():
            return campfire

    raise NotFoundError("campfire", f"campfire not found: {name}")


async def get_campfire_lines(
    client: BasecampClient,
    project_id: str,
    campfire_id: int,
    limit: int = 0,
    token: CancelToken | None = None,
) -> list[CampfireLine]:
    """Fetch chat lines.

    Args:
        limit: When positive, fetch a single page with ``?limit=N`` instead of
            every page
    """
    path = f"/buckets/{project_id}/chats/{campfire_id}/lines.json"
    with operation("failed to get campfire lines"):
        if limit > 0:
            return await client.get_json(f"{path}?limit={limit}", list[CampfireLine], token=token)
        return await Paginator(client, token=token).fetch_all(path, page_decoder(CampfireLine))


async def post_campfire_line(
    client: BasecampClient,
    project_id: str,
    campfire_id: int,
    content: str,
    token: CancelToken | None = None,
) -> CampfireLine:
    """Post a Markdown message as rich text.

    Raises:
        ValidationError: If the converted content fails the rich-text allow-list
    """
    rich_text = markdown_to_rich_text(content)
    with operation("failed to post campfire line"):
        line = await client.post_json(
            f"/buckets/{project_id}/chats/{campfire_id}/lines.json",
            {"content": rich_text, "content_type": RICH_TEXT_CONTENT_TYPE},
            CampfireLine,
            token=token,
        )
    logger.info(
        "campfire_line_posted",
        extra={"project_id": project_id, "campfire_id": campfire_id, "line_id": line.id},
    )
    return line


async def delete_campfire_line(
    client: BasecampClient,
    project_id: str,
    campfire_id: int,
    line_id: int,
    token: CancelToken | None = None,
) -> None:
    with operation("failed to delete campfire line"):
        await client.delete(
            f"/buckets/{project_id}/chats/{campfire_id}/lines/{line_id}.json",
            token=token,
        )
