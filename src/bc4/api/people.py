"""Project people and identifier resolution for assignments and @mentions."""

import logging
from typing import Iterable

from ..errors import NotFoundError, operation
from .cancel import CancelToken
from .client import BasecampClient
from .models import Person
from .pagination import Paginator, page_decoder

logger = logging.getLogger("bc4.api.people")

__all__ = ["PeopleResolver", "build_mention_tag", "get_project_people"]


async def get_project_people(
    client: BasecampClient,
    project_id: str,
    token: CancelToken | None = None,
) -> list[Person]:
    """Fetch everyone with access to a project (all pages)."""
    with operation("failed to fetch project people"):
        return await Paginator(client, token=token).fetch_all(
            f"/projects/{project_id}/people.json",
            page_decoder(Person),
        )


def build_mention_tag(sgid: str) -> str:
    """Rich-text attachment tag that renders as an @mention of the person."""
    return f'<bc-attachment sgid="{sgid}"></bc-attachment>'


class PeopleResolver:
    """Resolve emails, names and @mentions to project members.

    The people list is fetched once per resolver and cached.

    Identifiers:
        - ``@john`` / ``@John Smith``: name match
        - ``jane@example.com``: email match (case-insensitive)
        - anything else: name first, then email

    Name matching tries, in order: exact (case-insensitive), any whole word of
    the name, then substring.
    """

    def __init__(self, client: BasecampClient, project_id: str) -> None:
        self.client = client
        self.project_id = project_id
        self._people: list[Person] | None = None

    async def get_people(self, token: CancelToken | None = None) -> list[Person]:
        if self._people is None:
            self._people = await get_project_people(self.client, self.project_id, token=token)
            logger.debug(
                "project_people_cached",
                extra={"project_id": self.project_id, "count": len(self._people)},
            )
        return self._people

    async def resolve_people(
        self,
        identifiers: Iterable[str],
        token: CancelToken | None = None,
    ) -> list[Person]:
        """Resolve each identifier, keeping order and duplicates (one result per input).

        Raises:
            NotFoundError: Listing every identifier that matched nobody
        """
        people = await self.get_people(token)
        resolved: list[Person] = []
        not_found: list[str] = []

        for identifier in identifiers:
            identifier = identifier.strip()
            if not identifier:
                continue
            person = self._resolve(people, identifier)
            if person is None:
                not_found.append(identifier)
            else:
                resolved.append(person)

        if not_found:
            raise NotFoundError("person", f"could not find users: {', '.join(not_found)}")
        return resolved

    async def resolve_ids(
        self,
        identifiers: Iterable[str],
        token: CancelToken | None = None,
    ) -> list[int]:
        """Resolve identifiers to unique person IDs, in first-seen order."""
        ids: list[int] = []
        for person in await self.resolve_people(identifiers, token):
            if person.id not in ids:
                ids.append(person.id)
        return ids

    @classmethod
    def _resolve(cls, people: list[Person], identifier: str) -> Person | None:
        if identifier.startswith("@"):
            return cls._find_by_name(people, identifier[1:])
        if "@" in identifier:
            return cls._find_by_email(people, identifier)
        return cls._find_by_name(people, identifier) or cls._find_by_email(people, identifier)

    @staticmethod
    def _find_by_email(people: list[Person], email: str) -> Person | None:
        email = email.strip().lower()
        for person in people:
            if person.email_address.lower() == email:
                return person
        return None

    @staticmethod
    def _find_by_name(people: list[Person], name: str) -> Person | None:
        name = name.strip().lower()
        if not name:
            return None

        for person in people:
            if person.name.lower() == name:
                return person
        for person in people:
            if name in person.name.lower().split():
                return person
        for person in people:
            if name in person.name.lower():
                return person
        return None
