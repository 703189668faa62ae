"""Source-side records shared by the GitHub and Trello pipelines.

Records are immutable once fetched; everything a pipeline needs later
(comments, checklists, attachments) is fetched inside the per-record task.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class SourceUser:
    """A user as the source system reports it.

    ``login`` is the GitHub login or the Trello username, ``id`` the opaque
    account id. At least one of them is always set.
    """

    login: str | None = None
    name: str | None = None
    email: str | None = None
    id: str | None = None

    @property
    def key(self) -> str:
        """Cache key of this user: the login when known, otherwise the id."""
        return self.login or self.id or ""

    @property
    def label(self) -> str:
        """Best human readable name."""
        return self.name or self.login or self.id or "unknown"


@dataclass(frozen=True, slots=True)
class SourceLabel:
    """A label with its source colour (hex for GitHub, colour name for Trello)."""

    name: str
    color: str | None = None


@dataclass(frozen=True, slots=True)
class SourceRecord:
    """One issue or card to migrate."""

    source: str
    id: str
    title: str
    body: str = ""
    url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    closed: bool = False
    labels: tuple[SourceLabel, ...] = ()
    author: SourceUser | None = None
    assignees: tuple[SourceUser, ...] = ()
    group: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def external_id(self) -> str:
        """Idempotence marker stored on the created story."""
        return f"{self.source}-{self.id}"


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse the ISO-8601 timestamps both source APIs return (``...Z`` included)."""
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass(frozen=True, slots=True)
class SourceComment:
    """A comment on a source record."""

    text: str
    author: SourceUser | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
