"""Pydantic models for Basecamp API payloads.

Only the fields the core reads are declared; unknown fields are ignored so
new Basecamp attributes never break decoding. Timestamps are parsed into
timezone-aware datetimes; recording and event times are normalised to UTC
(an offset-less value is taken as UTC).

Reference: https://github.com/basecamp/bc3-api/tree/master/sections
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "Bucket",
    "Campfire",
    "CampfireLine",
    "Comment",
    "Event",
    "Parent",
    "Person",
    "Project",
    "Recording",
]


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Person(_ApiModel):
    """A Basecamp user as embedded in recordings and people lists.

    Attributes:
        attachable_sgid: Signed global ID used to @mention the person in rich text
    """

    id: int
    name: str = ""
    email_address: str = ""
    title: str | None = None
    avatar_url: str = ""
    attachable_sgid: str = ""
    admin: bool = False
    owner: bool = False


class Bucket(_ApiModel):
    """Container of a recording (usually a project)."""

    id: int
    name: str = ""
    type: str = ""


class Parent(_ApiModel):
    id: int
    title: str = ""
    type: str = ""
    url: str = ""
    app_url: str = ""


class Recording(_ApiModel):
    """Generic content item (todo, message, document, comment, ...).

    Attributes:
        updated_at: Last change; the activity feed sorts and filters on this
        creator: Author; ``person_id`` filtering compares against its id
    """

    id: int
    title: str = ""
    status: str = ""
    type: str = ""
    created_at: datetime | None = None
    updated_at: datetime
    url: str = ""
    app_url: str = ""
    creator: Person | None = None
    bucket: Bucket | None = None
    parent: Parent | None = None

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def normalize_to_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @property
    def creator_id(self) -> int:
        return self.creator.id if self.creator is not None else 0


class Event(_ApiModel):
    """Activity event on a recording (created, completed, ...)."""

    id: int
    action: str = ""
    created_at: datetime
    recording_type: str = ""
    recording: Recording | None = None
    creator: Person | None = None
    bucket: Bucket | None = None

    @field_validator("created_at", mode="after")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    _normalize_times = field_validator("created_at", mode="after")(_as_utc)


class Project(_ApiModel):
    id: int
    name: str = ""
    description: str | None = None
    purpose: str = ""
    status: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    url: str = ""
    app_url: str = ""


class Campfire(_ApiModel):
    """Project chat room. Basecamp calls the name ``title``."""

    id: int
    name: str = Field(default="", alias="title")
    status: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    lines_url: str = ""
    url: str = ""
    bucket: Bucket | None = None
    creator: Person | None = None


class CampfireLine(_ApiModel):
    id: int
    status: str = ""
    content: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    url: str = ""
    creator: Person | None = None
    parent: Parent | None = None


class Comment(_ApiModel):
    id: int
    status: str = ""
    content: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    url: str = ""
    app_url: str = ""
    creator: Person | None = None
    parent: Parent | None = None
    bucket: Bucket | None = None
