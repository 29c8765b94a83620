"""Project lookups."""

from ..errors import operation
from .cancel import CancelToken
from .client import BasecampClient
from .models import Project
from .pagination import Paginator, page_decoder

__all__ = ["get_project", "get_projects"]


async def get_projects(client: BasecampClient, token: CancelToken | None = None) -> list[Project]:
    """Fetch every active project in the account (all pages)."""
    with operation("failed to fetch projects"):
        return await Paginator(client, token=token).fetch_all("/projects.json", page_decoder(Project))


async def get_project(
    client: BasecampClient,
    project_id: str,
    token: CancelToken | None = None,
) -> Project:
    with operation("failed to fetch project"):
        return await client.get_json(f"/projects/{project_id}.json", Project, token=token)
