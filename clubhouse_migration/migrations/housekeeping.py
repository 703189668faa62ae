"""Periodic clean-up of the Clubhouse workspace.

Archives what has been completed for a while, closes epics whose stories
are all done, groups release epics under milestones and keeps the
milestones sorted by name.
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from clubhouse_migration.clients.clubhouse_client import ClubhouseClient
from clubhouse_migration.clients.exceptions import ApiError
from clubhouse_migration.migrations.base_migration import DEFAULT_WORKERS, BaseMigration
from clubhouse_migration.models import ComponentResult, MigrationSetupError
from clubhouse_migration.models.clubhouse import (
    CreateMilestoneParams,
    SearchStoriesParams,
    UpdateEpicParams,
    UpdateMilestoneParams,
    UpdateStoryParams,
)
from clubhouse_migration.models.records import parse_timestamp
from clubhouse_migration.type_definitions import ApiPayload, HousekeepingConfig

DEFAULT_MILESTONE_EPIC_PATTERN = r"^(?P<version>\d+\.\d+\.\d+) Enhancements$"
DEFAULT_MILESTONE_NAME_FORMAT = "DSS {version}"
DONE_EPIC_STATE_TYPE = "done"


def _not_archived(item: ApiPayload) -> bool:
    return item.get("archived") is False


def _done_but_not_complete(epic: ApiPayload) -> bool:
    stats = epic.get("stats") or {}
    return (
        not epic.get("completed")
        and stats.get("num_stories_done", 0) > 0
        and stats.get("num_stories_started", 0) == 0
        and stats.get("num_stories_unstarted", 0) == 0
    )


def _describe_epic(epic: ApiPayload) -> str:
    return f"epic {epic['id']} > {epic.get('name')}"


def _completed_before(epic: ApiPayload, deadline: datetime) -> bool:
    completed_at = parse_timestamp(epic.get("completed_at"))
    return bool(epic.get("completed")) and completed_at is not None and completed_at < deadline


class Housekeeping(BaseMigration):
    """Housekeeping steps; :meth:`run` executes the ones enabled in ``options``."""

    component_name = "housekeeping"

    def __init__(
        self,
        clubhouse: ClubhouseClient,
        options: HousekeepingConfig | None = None,
        *,
        now: Callable[[], datetime] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(clubhouse, **kwargs)
        self.options: HousekeepingConfig = options or {}
        self._now = now or (lambda: datetime.now(UTC))

    def run(self, workers: int = DEFAULT_WORKERS) -> ComponentResult:
        result = ComponentResult(dry_run=self.dry_run, success=True)

        archive_after_days = self.options.get("archive_after_days")
        if archive_after_days is not None:
            result.merge(self.archive_completed(timedelta(days=archive_after_days), workers=workers))
        if self.options.get("close_done_epics"):
            result.merge(self.close_done_epics(workers=workers))
        if self.options.get("milestones"):
            result.merge(
                self.reconcile_epics_to_milestones(
                    self.options.get("milestone_epic_pattern", DEFAULT_MILESTONE_EPIC_PATTERN),
                    self.options.get("milestone_name_format", DEFAULT_MILESTONE_NAME_FORMAT),
                ),
            )
        for prefix in self.options.get("archive_prefixes") or []:
            result.merge(self.archive_by_prefix(prefix, workers=workers))

        result.success = result.failed_count == 0 and not result.timed_out
        result.message = (
            f"Housekeeping: {result.success_count} updates, {result.failed_count} failures"
        )
        self.logger.info("Done. %s", result.message)
        return result

    # Archiving

    def archive_completed(self, grace_period: timedelta, workers: int = DEFAULT_WORKERS) -> ComponentResult:
        """Archive stories, then epics, completed more than ``grace_period`` ago."""
        deadline = self._now() - grace_period
        stories = self.clubhouse.search_stories(SearchStoriesParams(archived=False, completed_at_end=deadline))
        self.logger.info("Archiving %d stories", len(stories))
        result = self._run_tasks(
            stories,
            self._archive_story,
            lambda story: f"story {story['id']} > {story.get('name')}",
            workers=workers,
            description="archiving stories",
        )

        epics = [
            epic
            for epic in self.clubhouse.list_epics()
            if _not_archived(epic) and _completed_before(epic, deadline)
        ]
        self.logger.info("Archiving %d epics", len(epics))
        result.merge(self._archive_epics(epics, workers=workers))
        result.success = result.failed_count == 0 and not result.timed_out
        return result

    def _archive_story(self, story: ApiPayload) -> None:
        if self.dry_run:
            self.logger.info("Dry run: would archive story %s", story["id"])
            return
        self.logger.info("Archiving story %s", story["id"])
        self.clubhouse.update_story(story["id"], UpdateStoryParams(archived=True))

    def _archive_epic(self, epic: ApiPayload) -> None:
        if self.dry_run:
            self.logger.info("Dry run: would archive epic %s", epic["id"])
            return
        self.logger.info("Archiving epic %s", epic["id"])
        self.clubhouse.update_epic(epic["id"], UpdateEpicParams(archived=True))

    def _archive_epics(self, epics: list[ApiPayload], workers: int = DEFAULT_WORKERS) -> ComponentResult:
        return self._run_tasks(
            epics, self._archive_epic, _describe_epic, workers=workers, description="archiving epics",
        )

    def archive_by_prefix(self, prefix: str, workers: int = DEFAULT_WORKERS) -> ComponentResult:
        """Archive every non-archived epic whose name starts with ``prefix``."""
        epics = [
            epic
            for epic in self.clubhouse.list_epics()
            if _not_archived(epic) and (epic.get("name") or "").startswith(prefix)
        ]
        self.logger.info("Archiving %d epics starting with '%s'", len(epics), prefix)
        return self._archive_epics(epics, workers=workers)

    # Epics

    def _done_epic_state_id(self) -> int:
        workflow = self.clubhouse.get_epic_workflow()
        for state in workflow.get("epic_states") or []:
            if (state.get("type") or "").lower() == DONE_EPIC_STATE_TYPE:
                return state["id"]
        msg = "Cannot find the Epic Finished state"
        raise MigrationSetupError(msg)

    def close_done_epics(self, workers: int = DEFAULT_WORKERS) -> ComponentResult:
        """Move epics whose stories are all done to the epic workflow's done state.

        Raises:
            MigrationSetupError: If the epic workflow has no state of type ``done``

        """
        done_state_id = self._done_epic_state_id()
        epics = self.clubhouse.list_epics()
        to_close = [epic for epic in epics if _not_archived(epic) and _done_but_not_complete(epic)]
        self.logger.info("Will close %d epics out of %d", len(to_close), len(epics))

        def close(epic: ApiPayload) -> None:
            if self.dry_run:
                self.logger.info("Dry run: would close epic %s: %s", epic["id"], epic.get("name"))
                return
            self.logger.info("Closing epic %s: %s", epic["id"], epic.get("name"))
            self.clubhouse.update_epic(epic["id"], UpdateEpicParams(epic_state_id=done_state_id))

        return self._run_tasks(to_close, close, _describe_epic, workers=workers, description="closing epics")

    # Milestones

    def reconcile_epics_to_milestones(
        self,
        pattern: str = DEFAULT_MILESTONE_EPIC_PATTERN,
        name_format: str = DEFAULT_MILESTONE_NAME_FORMAT,
    ) -> ComponentResult:
        """Attach release epics to a milestone named after their version, then reorder milestones.

        ``pattern`` must define a ``version`` group; ``name_format`` receives it
        as ``{version}``. Epics are linked one at a time: epics of the same
        version share the milestone created for the first of them. A failing
        epic is logged and counted, the others are still linked.
        """
        epic_pattern = re.compile(pattern)
        milestones = {milestone["name"]: milestone for milestone in self.clubhouse.list_milestones()}
        result = ComponentResult(dry_run=self.dry_run, success=True)

        for epic in self.clubhouse.list_epics():
            match = epic_pattern.match(epic.get("name") or "")
            if match is None or epic.get("milestone_id") is not None:
                continue
            result.total_count += 1

            milestone_name = name_format.format(version=match.group("version"))
            try:
                self._link_milestone(epic, milestone_name, milestones)
            except Exception as e:
                self.logger.warning("Failed to attach %s to milestone %s: %s", _describe_epic(epic), milestone_name, e)
                result.failed_count += 1
                result.add_error(f"{_describe_epic(epic)}: {e}")
                continue
            result.success_count += 1

        result.merge(self.reorder_milestones())
        result.success = result.failed_count == 0
        return result

    def _link_milestone(self, epic: ApiPayload, milestone_name: str, milestones: dict[str, ApiPayload]) -> None:
        milestone = milestones.get(milestone_name)
        if milestone is None:
            self.logger.info("Creating missing milestone %s", milestone_name)
            if self.dry_run:
                return
            milestone = self.clubhouse.create_milestone(
                CreateMilestoneParams(
                    name=milestone_name,
                    state=epic.get("state"),
                    completed_at_override=parse_timestamp(epic.get("completed_at_override")),
                ),
            )
            milestones[milestone_name] = milestone

        self.logger.info("Associating milestone %s with epic %s", milestone_name, epic["name"])
        if not self.dry_run:
            self.clubhouse.update_epic(epic["id"], UpdateEpicParams(milestone_id=milestone["id"]))

    def reorder_milestones(self) -> ComponentResult:
        """Sort milestones by name, newest version first.

        A move Clubhouse rejects means the milestone is already in place.
        """
        self.logger.info("Reordering milestones")
        current = self.clubhouse.list_milestones()
        ordered = sorted(current, key=lambda milestone: milestone["name"], reverse=True)
        result = ComponentResult(dry_run=self.dry_run, success=True, total_count=len(ordered))
        if not ordered:
            return result

        moves = [(ordered[0], UpdateMilestoneParams(before_id=current[0]["id"]), current[0])]
        moves.extend(
            (milestone, UpdateMilestoneParams(after_id=previous["id"]), previous)
            for previous, milestone in zip(ordered, ordered[1:])
        )

        for milestone, move, anchor in moves:
            if milestone["id"] == anchor["id"]:
                self.logger.info("Milestone %s already ordered", milestone["name"])
                continue
            where = "before" if move.before_id is not None else "after"
            self.logger.info("Move milestone %s %s %s", milestone["name"], where, anchor["name"])
            if self.dry_run:
                continue
            try:
                self.clubhouse.update_milestone(milestone["id"], move)
            except ApiError as e:
                self.logger.info("Milestone %s already ordered (%s)", milestone["name"], e)
                continue
            result.success_count += 1
        return result
