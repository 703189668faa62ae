"""GitHub issues -> Clubhouse stories."""

from collections.abc import Iterator
from typing import Any

from clubhouse_migration.clients.clubhouse_client import ClubhouseClient
from clubhouse_migration.clients.exceptions import ResourceNotFoundError
from clubhouse_migration.clients.github_client import GithubClient
from clubhouse_migration.mappings.user_mapping import GithubUserMapping, UserMapping, github_user
from clubhouse_migration.migrations.base_migration import RecordMigration
from clubhouse_migration.models import ComponentResult, MigrationSetupError
from clubhouse_migration.models.clubhouse import StoryType
from clubhouse_migration.models.records import (
    SourceComment,
    SourceLabel,
    SourceRecord,
    parse_timestamp,
)
from clubhouse_migration.type_definitions import ApiPayload
from clubhouse_migration.utils.content import milestone_epic_name, post_process_images

ISSUE_STATES = ("open", "closed", "all")


def is_pull_request(issue: ApiPayload) -> bool:
    pull_request = issue.get("pull_request")
    return bool(pull_request and pull_request.get("html_url"))


def issue_to_record(issue: ApiPayload) -> SourceRecord:
    """Immutable view of an issue as returned by the issues API."""
    milestone = issue.get("milestone") or {}
    assignees = issue.get("assignees") or ([issue["assignee"]] if issue.get("assignee") else [])
    return SourceRecord(
        source="github",
        id=str(issue["number"]),
        title=issue.get("title") or "",
        body=issue.get("body") or "",
        url=issue.get("html_url") or "",
        created_at=parse_timestamp(issue.get("created_at")),
        updated_at=parse_timestamp(issue.get("updated_at")),
        closed_at=parse_timestamp(issue.get("closed_at")),
        closed=issue.get("state") == "closed",
        labels=tuple(
            SourceLabel(name=label["name"], color=label.get("color")) for label in issue.get("labels") or []
        ),
        author=github_user(issue.get("user")),
        assignees=tuple(user for user in map(github_user, assignees) if user is not None),
        group=milestone.get("title"),
    )


class GithubMigration(RecordMigration):
    """Migrate the issues of one repository.

    Pull requests are listed by the issues API too; they are dropped.
    Every issue becomes a bug story; closed issues land in the Completed state.
    """

    component_name = "github"
    source_name = "github"
    source_label = "Github"
    record_kind = "issue"

    def __init__(
        self,
        clubhouse: ClubhouseClient,
        project_name: str,
        github: GithubClient,
        repository: str,
        *,
        issue_state: str = "open",
        labels: list[str] | None = None,
        users_mapping: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(clubhouse, project_name, **kwargs)
        if issue_state not in ISSUE_STATES:
            msg = f"Invalid issue state {issue_state!r}, expected one of {', '.join(ISSUE_STATES)}"
            raise ValueError(msg)
        self.github = github
        self.repository = repository
        self.issue_state = issue_state
        self.issue_labels = labels or []
        self.users_mapping = users_mapping or {}

    def setup(self) -> None:
        if self._ready:
            return
        try:
            self.github.get_repository(self.repository)
        except ResourceNotFoundError as e:
            msg = f"Unknown GitHub repository: {self.repository}"
            raise MigrationSetupError(msg) from e
        super().setup()

    def create_user_mapping(self, members: list[ApiPayload]) -> UserMapping:
        return GithubUserMapping(members, self.github, self.users_mapping)

    def list_record_pages(self) -> Iterator[list[SourceRecord]]:
        for page in self.github.iter_issue_pages(self.repository, self.issue_state, self.issue_labels):
            yield [issue_to_record(issue) for issue in page if not is_pull_request(issue)]

    def migrate_issue(self, number: int) -> ComponentResult:
        """Migrate a single issue.

        Raises:
            ValueError: If the number belongs to a pull request

        """
        issue = self.github.get_issue(self.repository, number)
        if is_pull_request(issue):
            msg = f"Cannot migrate pull requests into Clubhouse but Issue #{number} is a PR."
            raise ValueError(msg)
        return self.migrate_single(issue_to_record(issue))

    # Transform hooks

    def render_text(self, text: str | None) -> str:
        return post_process_images(text)

    def story_type(self, record: SourceRecord) -> StoryType:
        return "bug"

    def epic_name(self, record: SourceRecord) -> str | None:
        return milestone_epic_name(record.group) if record.group else None

    def fetch_comments(self, record: SourceRecord) -> list[SourceComment]:
        return [
            SourceComment(
                text=comment.get("body") or "",
                author=github_user(comment.get("user")),
                created_at=parse_timestamp(comment.get("created_at")),
                updated_at=parse_timestamp(comment.get("updated_at")),
            )
            for comment in self.github.get_issue_comments(self.repository, int(record.id))
        ]
