"""Request payloads for the Clubhouse v3 REST API.

Only the fields the migration writes are modelled. Payloads are serialized
with :func:`to_payload`, which drops unset fields so that Clubhouse applies
its own defaults.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

type StoryType = Literal["bug", "feature", "chore"]


class ClubhouseParams(BaseModel):
    """Base class for request bodies."""

    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dictionary without the unset fields."""
        return self.model_dump(mode="json", exclude_none=True)


class CreateLabelParams(ClubhouseParams):
    name: str
    color: str | None = None


class CreateCommentParams(ClubhouseParams):
    text: str
    author_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateTaskParams(ClubhouseParams):
    description: str
    complete: bool = False


class CreateExternalTicketParams(ClubhouseParams):
    external_id: str
    external_url: str


class CreateLinkedFileParams(ClubhouseParams):
    name: str
    url: str
    type: str = "url"
    size: int | None = None
    description: str | None = None
    uploader_id: str | None = None


class CreateStoryParams(ClubhouseParams):
    """Story to create, built from one source record."""

    name: str
    project_id: int
    description: str = ""
    story_type: StoryType = "feature"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at_override: datetime | None = None
    workflow_state_id: int | None = None
    labels: list[CreateLabelParams] = Field(default_factory=list)
    requested_by_id: str | None = None
    owner_ids: list[str] = Field(default_factory=list)
    epic_id: int | None = None
    external_id: str | None = None
    external_tickets: list[CreateExternalTicketParams] = Field(default_factory=list)
    comments: list[CreateCommentParams] = Field(default_factory=list)
    tasks: list[CreateTaskParams] = Field(default_factory=list)
    linked_file_ids: list[int] = Field(default_factory=list)


class UpdateStoryParams(ClubhouseParams):
    archived: bool | None = None
    workflow_state_id: int | None = None
    epic_id: int | None = None


class UpdateStoriesParams(ClubhouseParams):
    """Bulk update body (``PUT /stories/bulk``)."""

    story_ids: list[int]
    archived: bool | None = None


class SearchStoriesParams(ClubhouseParams):
    """Story search body (``POST /stories/search``)."""

    archived: bool | None = None
    external_id: str | None = None
    project_id: int | None = None
    completed_at_end: datetime | None = None


class CreateEpicParams(ClubhouseParams):
    name: str
    milestone_id: int | None = None


class UpdateEpicParams(ClubhouseParams):
    archived: bool | None = None
    epic_state_id: int | None = None
    milestone_id: int | None = None


class CreateMilestoneParams(ClubhouseParams):
    name: str
    state: str | None = None
    completed_at_override: datetime | None = None


class UpdateMilestoneParams(ClubhouseParams):
    """Milestone move: exactly one of ``before_id`` or ``after_id`` is set."""

    before_id: int | None = None
    after_id: int | None = None

    @model_validator(mode="after")
    def _single_anchor(self) -> "UpdateMilestoneParams":
        if (self.before_id is None) == (self.after_id is None):
            msg = "exactly one of before_id or after_id must be set"
            raise ValueError(msg)
        return self
