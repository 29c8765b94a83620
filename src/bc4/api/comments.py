"""Comments on recordings, with inline @mention support."""

import logging
import re

from ..errors import operation
from ..markdown import markdown_to_rich_text
from .cancel import CancelToken
from .client import BasecampClient
from .models import Comment
from .pagination import Paginator, page_decoder
from .people import PeopleResolver, build_mention_tag

logger = logging.getLogger("bc4.api.comments")

__all__ = ["MENTION_PATTERN", "create_comment", "get_comment", "list_comments", "replace_mentions"]

# @First or @First.Last; not preceded by a word character, so emails don't match
MENTION_PATTERN = re.compile(r"(?<![\w.])@\w+(?:\.\w+)*")


async def list_comments(
    client: BasecampClient,
    project_id: str,
    recording_id: int,
    token: CancelToken | None = None,
) -> list[Comment]:
    with operation("failed to list comments"):
        return await Paginator(client, token=token).fetch_all(
            f"/buckets/{project_id}/recordings/{recording_id}/comments.json",
            page_decoder(Comment),
        )


async def get_comment(
    client: BasecampClient,
    project_id: str,
    comment_id: int,
    token: CancelToken | None = None,
) -> Comment:
    with operation("failed to get comment"):
        return await client.get_json(
            f"/buckets/{project_id}/comments/{comment_id}.json",
            Comment,
            token=token,
        )


async def replace_mentions(
    rich_text: str,
    resolver: PeopleResolver,
    token: CancelToken | None = None,
) -> str:
    """Replace inline ``@Name`` / ``@First.Last`` mentions with attachment tags.

    Raises:
        NotFoundError: If any mention does not resolve to a project member
    """
    matches = MENTION_PATTERN.findall(rich_text)
    if not matches:
        return rich_text

    identifiers = [match[1:].replace(".", " ") for match in matches]
    with operation("failed to resolve mentions"):
        people = await resolver.resolve_people(identifiers, token)

    for match, person in zip(matches, people):
        rich_text = rich_text.replace(match, build_mention_tag(person.attachable_sgid), 1)
    return rich_text


async def create_comment(
    client: BasecampClient,
    project_id: str,
    recording_id: int,
    content: str,
    token: CancelToken | None = None,
    resolver: PeopleResolver | None = None,
) -> Comment:
    """Post a Markdown comment on a recording.

    Args:
        content: Markdown text; ``@Name`` mentions become attachment tags
        resolver: People resolver to reuse (one is created on demand)
    """
    rich_text = markdown_to_rich_text(content) if content.strip() else ""
    if MENTION_PATTERN.search(rich_text):
        rich_text = await replace_mentions(
            rich_text,
            resolver or PeopleResolver(client, project_id),
            token,
        )

    with operation("failed to create comment"):
        comment = await client.post_json(
            f"/buckets/{project_id}/recordings/{recording_id}/comments.json",
            {"content": rich_text},
            Comment,
            token=token,
        )
    logger.info(
        "comment_created",
        extra={"project_id": project_id, "recording_id": recording_id, "comment_id": comment.id},
    )
    return comment
