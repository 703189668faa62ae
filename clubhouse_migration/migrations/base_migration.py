"""Base migration classes.

:class:`BaseMigration` owns the Clubhouse client and the bounded worker pool
every pipeline drains its work through. :class:`RecordMigration` adds the
idempotent list -> transform -> create flow shared by the source pipelines.
"""

import time
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import StrEnum
from functools import partial
from typing import Any

from clubhouse_migration.clients.clubhouse_client import ClubhouseClient
from clubhouse_migration.display import ProgressTracker, get_logger
from clubhouse_migration.mappings.epic_registry import EpicRegistry
from clubhouse_migration.mappings.user_mapping import UserMapping
from clubhouse_migration.models import ComponentResult, MigrationSetupError
from clubhouse_migration.models.clubhouse import (
    CreateCommentParams,
    CreateExternalTicketParams,
    CreateLabelParams,
    CreateStoryParams,
    CreateTaskParams,
    SearchStoriesParams,
    StoryType,
)
from clubhouse_migration.models.records import SourceComment, SourceRecord
from clubhouse_migration.type_definitions import ApiPayload
from clubhouse_migration.utils.content import (
    author_prefix,
    build_footer,
    import_note,
    normalize_color,
    reporter_note,
)
from clubhouse_migration.utils.retry import RecordTask, RetryPolicy, TaskState

DEFAULT_WORKERS = 32
DEFAULT_WAIT_TIMEOUT = 24 * 60 * 60
COMPLETED_STATE = "Completed"


class MigrationOutcome(StrEnum):
    """What a finished record task did."""

    MIGRATED = "migrated"
    SKIPPED = "skipped"


class BaseMigration:
    """Base class for all pipelines.

    Args:
        clubhouse: Target workspace client
        dry_run: Log writes instead of sending them
        retry_policy: Backoff for rate-limited tasks
        wait_timeout: Seconds to wait for the pool to drain
        show_progress: Render a progress bar while waiting
        sleep, rng, clock: Injected into the record tasks for tests

    """

    component_name = "migration"

    def __init__(
        self,
        clubhouse: ClubhouseClient,
        *,
        dry_run: bool = False,
        retry_policy: RetryPolicy | None = None,
        wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
        show_progress: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        rng: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.clubhouse = clubhouse
        self.dry_run = dry_run
        self.retry_policy = retry_policy or RetryPolicy()
        self.wait_timeout = wait_timeout
        self.show_progress = show_progress
        self._sleep = sleep
        self._rng = rng
        self._clock = clock
        self.logger = get_logger(self.component_name)

    def _make_task(self, label: str, work: Callable[[], Any], deadline: float | None) -> RecordTask:
        return RecordTask(
            label,
            work,
            self.retry_policy,
            self.logger,
            deadline=deadline,
            sleep=self._sleep,
            rng=self._rng,
            clock=self._clock,
        )

    def _run_tasks[T](
        self,
        items: Iterable[T],
        work: Callable[[T], Any],
        describe: Callable[[T], str],
        *,
        workers: int = DEFAULT_WORKERS,
        description: str = "migration",
    ) -> ComponentResult:
        """Run ``work`` for every item on a fixed-size pool and wait for the pool to drain.

        The pool is closed to new work once everything is submitted. Waiting
        stops after ``wait_timeout`` seconds without cancelling the tasks that
        are still running; they keep going in the background.

        Raises:
            KeyboardInterrupt: Re-raised after logging; finished tasks stay done

        """
        items = list(items)
        result = ComponentResult(dry_run=self.dry_run, total_count=len(items))
        if not items:
            result.success = True
            result.message = f"Nothing to do for {description}"
            return result

        deadline = self._clock() + self.wait_timeout
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self.component_name)
        futures = [
            executor.submit(self._make_task(describe(item), partial(work, item), deadline).run)
            for item in items
        ]
        executor.shutdown(wait=False)

        self.logger.info("Waiting for completion of %d pending tasks...", len(futures))
        finished: list[RecordTask] = []
        try:
            with ProgressTracker(description, len(futures), enabled=self.show_progress) as tracker:
                for future in as_completed(futures, timeout=self.wait_timeout):
                    finished.append(future.result())
                    tracker.increment()
        except TimeoutError:
            result.timed_out = True
            self.logger.warning(
                "Stopped waiting for %s after %.0f seconds, %d tasks are still running",
                description, self.wait_timeout, len(futures) - len(finished),
            )
        except KeyboardInterrupt:
            self.logger.warning(
                "Interrupted while waiting for %s to finish, migration possibly incomplete", description,
            )
            raise

        for task in finished:
            if task.state is TaskState.FAILED:
                result.failed_count += 1
                result.add_error(f"{task.label}: {task.error}")
            elif task.result == MigrationOutcome.SKIPPED:
                result.skipped_count += 1
            else:
                result.success_count += 1

        result.success = result.failed_count == 0 and not result.timed_out
        result.message = (
            f"{description}: {result.success_count} done, {result.skipped_count} skipped, "
            f"{result.failed_count} failed out of {result.total_count}"
        )
        if result.timed_out:
            result.add_warning(f"{result.total_count - len(finished)} tasks did not finish in time")
        return result

    def run(self, workers: int = DEFAULT_WORKERS) -> ComponentResult:
        raise NotImplementedError


class RecordMigration(BaseMigration):
    """Idempotent migration of source records into Clubhouse stories.

    Subclasses list the records and may override the transform hooks
    (``story_type``, ``workflow_state_id``, ``labels``, ``fetch_comments``,
    ``tasks``, ``linked_files``, ``epic_name``, ``render_text``).
    """

    source_name = "source"
    source_label = "Source"
    record_kind = "record"
    prefix_unknown_comment_authors = False

    def __init__(self, clubhouse: ClubhouseClient, project_name: str, **kwargs: Any) -> None:
        super().__init__(clubhouse, **kwargs)
        self.project_name = project_name
        self.project: ApiPayload = {}
        self.workflow_states: dict[str, ApiPayload] = {}
        self.completed_state_id: int | None = None
        self.epics = EpicRegistry(clubhouse, dry_run=self.dry_run)
        self._users: UserMapping | None = None
        self._ready = False

    # Setup

    def setup(self) -> None:
        """Resolve the project, workflow states and members.

        Raises:
            MigrationSetupError: When the project or a required state is unknown

        """
        if self._ready:
            return
        self.project = self._find_project(self.project_name)
        self.workflow_states = self._load_workflow_states(self.project)
        self.completed_state_id = self.state_id(COMPLETED_STATE)
        self._users = self.create_user_mapping(self.clubhouse.list_members())
        self._ready = True

    def _find_project(self, name: str) -> ApiPayload:
        for project in self.clubhouse.list_projects():
            if project.get("name") == name:
                return project
        msg = f"Unknown project on Clubhouse: {name}"
        raise MigrationSetupError(msg)

    def _load_workflow_states(self, project: ApiPayload) -> dict[str, ApiPayload]:
        team = self.clubhouse.get_team(project["team_id"])
        states = (team.get("workflow") or {}).get("states") or []
        return {state["name"]: state for state in states}

    def state_id(self, name: str) -> int:
        """Workflow state id by name, case-insensitively."""
        for state_name, state in self.workflow_states.items():
            if state_name.lower() == name.lower():
                return state["id"]
        msg = f"Cannot find the state '{name}' for project {self.project_name}"
        raise MigrationSetupError(msg)

    @property
    def users(self) -> UserMapping:
        if self._users is None:
            msg = f"{type(self).__name__}.setup() has not been called"
            raise RuntimeError(msg)
        return self._users

    def create_user_mapping(self, members: list[ApiPayload]) -> UserMapping:
        raise NotImplementedError

    # Listing

    def list_record_pages(self) -> Iterator[list[SourceRecord]]:
        """Yield pages of records the target can represent."""
        raise NotImplementedError

    def collect_records(self) -> list[SourceRecord]:
        """All candidate records, deduplicated by source id."""
        self.logger.info("Collecting %ss to migrate.", self.record_kind)
        records: dict[str, SourceRecord] = {}
        for page in self.list_record_pages():
            for record in page:
                records.setdefault(record.id, record)
            self.logger.info("Found %d %ss to migrate.", len(records), self.record_kind)
        return list(records.values())

    # Per-record work

    def describe(self, record: SourceRecord) -> str:
        return f"{self.record_kind} #{record.id}"

    def find_existing(self, record: SourceRecord) -> ApiPayload | None:
        """Story already carrying the record's external id, if any."""
        stories = self.clubhouse.search_stories(SearchStoriesParams(external_id=record.external_id))
        return stories[0] if stories else None

    def migrate_record(self, record: SourceRecord) -> MigrationOutcome:
        """One attempt at migrating a record; rebuilt from scratch on every retry."""
        existing = self.find_existing(record)
        if existing is not None:
            self.logger.info(
                "Skipping %s: already migrated to Clubhouse with id=%s", self.describe(record), existing.get("id"),
            )
            return MigrationOutcome.SKIPPED

        params = self.build_story(record)
        if self.dry_run:
            self.logger.info("Dry run: would create story '%s' for %s", params.name, self.describe(record))
            return MigrationOutcome.MIGRATED

        story = self.clubhouse.create_story(params)
        self.logger.success("Migrated %s as story %s", self.describe(record), story.get("id"))
        return MigrationOutcome.MIGRATED

    def run(self, workers: int = DEFAULT_WORKERS) -> ComponentResult:
        """Migrate every candidate record.

        Raises:
            MigrationSetupError: Before any record is processed
            KeyboardInterrupt: While waiting for the pool

        """
        self.setup()
        records = self.collect_records()
        self.logger.info("Migrating the %s %ss.", self.source_label, self.record_kind)
        result = self._run_tasks(
            records,
            self.migrate_record,
            self.describe,
            workers=workers,
            description=f"{self.source_name} {self.record_kind}s",
        )
        self.logger.info("Done. %s", result.message)
        return result

    def migrate_single(self, record: SourceRecord) -> ComponentResult:
        """Migrate one record on the calling thread."""
        self.setup()
        task = self._make_task(self.describe(record), partial(self.migrate_record, record), None).run()
        result = ComponentResult(dry_run=self.dry_run, total_count=1)
        if task.state is TaskState.FAILED:
            result.failed_count = 1
            result.add_error(f"{task.label}: {task.error}")
        elif task.result == MigrationOutcome.SKIPPED:
            result.skipped_count = 1
        else:
            result.success_count = 1
        result.success = task.state is TaskState.DONE
        result.message = f"{task.label}: {task.state.value}"
        return result

    # Transform

    def build_story(self, record: SourceRecord) -> CreateStoryParams:
        """Clubhouse story for a record."""
        notes = [import_note(self.source_label, self.record_kind, record.id, record.url)]
        requested_by_id = self.users.member_id(record.author)
        if requested_by_id is None and record.author is not None:
            notes.append(reporter_note(self.users.display_name(record.author)))

        owner_ids = [member_id for user in record.assignees if (member_id := self.users.member_id(user))]

        epic_id = None
        epic_name = self.epic_name(record)
        if epic_name:
            epic = self.epics.get_or_create(epic_name)
            epic_id = epic["id"] if epic else None

        return CreateStoryParams(
            name=record.title,
            project_id=self.project["id"],
            story_type=self.story_type(record),
            description=self.description(record) + build_footer(notes),
            created_at=record.created_at,
            updated_at=record.updated_at,
            completed_at_override=record.closed_at,
            workflow_state_id=self.workflow_state_id(record),
            labels=self.labels(record),
            requested_by_id=requested_by_id,
            owner_ids=owner_ids,
            epic_id=epic_id,
            external_id=record.external_id,
            external_tickets=[
                CreateExternalTicketParams(external_id=record.external_id, external_url=record.url),
            ],
            comments=self.comments(record),
            tasks=self.tasks(record),
            linked_file_ids=self.linked_files(record),
        )

    def render_text(self, text: str | None) -> str:
        return text or ""

    def description(self, record: SourceRecord) -> str:
        return self.render_text(record.body)

    def story_type(self, record: SourceRecord) -> StoryType:
        return "feature"

    def workflow_state_id(self, record: SourceRecord) -> int | None:
        return self.completed_state_id if record.closed else None

    def labels(self, record: SourceRecord) -> list[CreateLabelParams]:
        return [CreateLabelParams(name=label.name, color=normalize_color(label.color)) for label in record.labels]

    def epic_name(self, record: SourceRecord) -> str | None:
        return record.group

    def fetch_comments(self, record: SourceRecord) -> list[SourceComment]:
        return []

    def comments(self, record: SourceRecord) -> list[CreateCommentParams]:
        result = []
        ordered = sorted(
            self.fetch_comments(record),
            key=lambda c: c.created_at.timestamp() if c.created_at else float("-inf"),
        )
        for comment in ordered:
            author_id = self.users.member_id(comment.author)
            text = self.render_text(comment.text)
            if author_id is None and comment.author is not None and self.prefix_unknown_comment_authors:
                text = author_prefix(self.users.display_name(comment.author), text)
            result.append(
                CreateCommentParams(
                    text=text,
                    author_id=author_id,
                    created_at=comment.created_at,
                    updated_at=comment.updated_at,
                ),
            )
        return result

    def tasks(self, record: SourceRecord) -> list[CreateTaskParams]:
        return []

    def linked_files(self, record: SourceRecord) -> list[int]:
        return []
