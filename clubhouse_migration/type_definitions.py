"""Type definitions for the Clubhouse migration.

Configuration sections are plain dictionaries loaded from YAML; these
TypedDicts describe the keys the code reads.
"""

from typing import Any, Literal, NotRequired, TypedDict

type ConfigValue = str | int | bool | dict[str, Any] | list[Any]

type ApiPayload = dict[str, Any]

type SectionName = Literal["clubhouse", "github", "trello", "migration"]

type DirType = Literal["root", "logs", "results"]

type ComponentName = Literal["trello", "github", "housekeeping"]

type LogLevel = Literal[
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
    "SUCCESS",
]


class ClubhouseConfig(TypedDict, total=False):
    """Configuration for the Clubhouse connection."""

    url: str
    api_token: str
    project: str


class GithubConfig(TypedDict, total=False):
    """Configuration for the GitHub source."""

    url: str
    api_token: str
    repository: str
    issue_state: Literal["open", "closed", "all"]
    labels: NotRequired[list[str]]
    users_mapping: NotRequired[dict[str, str]]


class TrelloConfig(TypedDict, total=False):
    """Configuration for the Trello source."""

    url: str
    api_key: str
    token: str
    organization: str
    boards: list[dict[str, Any]]
    ignored_lists: list[str]
    labels_mapping: dict[str, str]
    users_mapping: dict[str, str]


class HousekeepingConfig(TypedDict, total=False):
    """Options for the housekeeping pipeline."""

    archive_after_days: int
    close_done_epics: bool
    milestones: bool
    milestone_epic_pattern: str
    milestone_name_format: str
    archive_prefixes: list[str]


class MigrationConfig(TypedDict, total=False):
    """Configuration for the migration run."""

    log_level: LogLevel
    dry_run: bool
    components: list[ComponentName]
    workers: dict[str, int]
    wait_timeout_hours: float
    rate_limit_min_delay: float
    rate_limit_max_delay: float
    rate_limit_max_attempts: int | None
    show_progress: bool
    housekeeping: HousekeepingConfig


class Config(TypedDict):
    """Complete configuration file."""

    clubhouse: ClubhouseConfig
    github: GithubConfig
    trello: TrelloConfig
    migration: MigrationConfig
