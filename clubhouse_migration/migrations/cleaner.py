"""Wipe a Clubhouse workspace between trial migrations."""

from clubhouse_migration.migrations.base_migration import DEFAULT_WORKERS, BaseMigration
from clubhouse_migration.models import ComponentResult
from clubhouse_migration.models.clubhouse import SearchStoriesParams, UpdateStoriesParams
from clubhouse_migration.type_definitions import ApiPayload


class ClubhouseCleaner(BaseMigration):
    """Delete every label, epic, milestone and story of the workspace.

    Stories cannot be deleted while active: they are archived in bulk first,
    then every archived story is deleted in bulk.
    """

    component_name = "cleaner"

    def run(self, workers: int = DEFAULT_WORKERS) -> ComponentResult:
        deletions: list[tuple[str, ApiPayload]] = []
        self.logger.info("Deleting labels...")
        deletions.extend(("label", label) for label in self.clubhouse.list_labels())
        self.logger.info("Deleting epics...")
        deletions.extend(("epic", epic) for epic in self.clubhouse.list_epics())
        self.logger.info("Deleting milestones...")
        deletions.extend(("milestone", milestone) for milestone in self.clubhouse.list_milestones())

        result = self._run_tasks(
            deletions,
            self._delete,
            lambda item: f"{item[0]} {item[1]['id']} > {item[1].get('name')}",
            workers=workers,
            description="cleaning workspace",
        )

        self.logger.info("Deleting stories...")
        result.merge(self.delete_stories())
        result.success = result.failed_count == 0 and not result.timed_out
        self.logger.info("Done.")
        return result

    def _delete(self, item: tuple[str, ApiPayload]) -> None:
        kind, entity = item
        if self.dry_run:
            self.logger.info("Dry run: would delete %s %s > %s", kind, entity["id"], entity.get("name"))
            return
        self.logger.info("Deleting %s %s > %s", kind, entity["id"], entity.get("name"))
        match kind:
            case "label":
                self.clubhouse.delete_label(entity["id"])
            case "epic":
                self.clubhouse.delete_epic(entity["id"])
            case "milestone":
                self.clubhouse.delete_milestone(entity["id"])

    def delete_stories(self) -> ComponentResult:
        """Archive the active stories, then delete every archived one."""
        result = ComponentResult(dry_run=self.dry_run, success=True)
        try:
            active = [story["id"] for story in self.clubhouse.search_stories(SearchStoriesParams(archived=False))]
            if active:
                self.logger.info("Archiving %d stories", len(active))
                if not self.dry_run:
                    self.clubhouse.update_stories(UpdateStoriesParams(story_ids=active, archived=True))

            archived = [story["id"] for story in self.clubhouse.search_stories(SearchStoriesParams(archived=True))]
            if self.dry_run:
                archived = sorted(set(archived) | set(active))
            if archived:
                self.logger.info("Deleting %d stories", len(archived))
                if not self.dry_run:
                    self.clubhouse.delete_stories(archived)
            result.total_count = result.success_count = len(archived)
        except Exception as e:
            self.logger.warning("Error while deleting stories: %s", e, exc_info=True)
            result.success = False
            result.failed_count += 1
            result.add_error(f"stories: {e}")
        return result
