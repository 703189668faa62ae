"""Run the migration components against one Clubhouse workspace.

Components run one after the other in a fixed order (Trello, GitHub,
housekeeping); each drains its own worker pool before the next starts.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, cast

from rich.console import Console

from clubhouse_migration import config
from clubhouse_migration.clients import ClubhouseClient, GithubClient, TrelloClient
from clubhouse_migration.migrations.base_migration import DEFAULT_WORKERS, BaseMigration
from clubhouse_migration.migrations.cleaner import ClubhouseCleaner
from clubhouse_migration.migrations.github_migration import GithubMigration
from clubhouse_migration.migrations.housekeeping import Housekeeping
from clubhouse_migration.migrations.trello_migration import TrelloMigration
from clubhouse_migration.models import ComponentResult, MigrationError, MigrationResult, MigrationSetupError
from clubhouse_migration.models.trello import TrelloMigrationParams
from clubhouse_migration.type_definitions import ComponentName
from clubhouse_migration.utils import data_handler
from clubhouse_migration.utils.retry import RetryPolicy

COMPONENT_ORDER: tuple[ComponentName, ...] = ("trello", "github", "housekeeping")

console = Console()

type ComponentFactories = dict[str, Callable[[], BaseMigration]]


def print_component_header(component_name: str) -> None:
    """Print a formatted header for a migration component."""
    console.rule(f"RUNNING COMPONENT: {component_name}")


def create_clubhouse_client() -> ClubhouseClient:
    settings = config.clubhouse_config
    if settings.get("url"):
        return ClubhouseClient(settings.get("api_token"), url=settings["url"])
    return ClubhouseClient(settings.get("api_token"))


def create_github_client() -> GithubClient:
    settings = config.github_config
    if settings.get("url"):
        return GithubClient(settings.get("api_token"), url=settings["url"])
    return GithubClient(settings.get("api_token"))


def create_trello_client() -> TrelloClient:
    settings = config.trello_config
    if settings.get("url"):
        return TrelloClient(settings.get("api_key"), settings.get("token"), url=settings["url"])
    return TrelloClient(settings.get("api_key"), settings.get("token"))


def pipeline_options() -> dict[str, Any]:
    """Keyword arguments shared by every pipeline, read from the ``migration`` section."""
    settings = config.migration_config
    return {
        "dry_run": bool(settings.get("dry_run", False)),
        "retry_policy": RetryPolicy.from_config(dict(settings)),
        "wait_timeout": float(settings.get("wait_timeout_hours", 24)) * 60 * 60,
        "show_progress": bool(settings.get("show_progress", True)),
    }


def workers_for(component: str) -> int:
    return int((config.migration_config.get("workers") or {}).get(component, DEFAULT_WORKERS))


def create_github_migration(clubhouse: ClubhouseClient) -> GithubMigration:
    settings = config.github_config
    return GithubMigration(
        clubhouse,
        config.clubhouse_config.get("project", ""),
        create_github_client(),
        settings.get("repository", ""),
        issue_state=settings.get("issue_state", "open"),
        labels=settings.get("labels"),
        users_mapping=settings.get("users_mapping"),
        **pipeline_options(),
    )


def create_trello_migration(clubhouse: ClubhouseClient) -> TrelloMigration:
    settings = config.trello_config
    return TrelloMigration(
        clubhouse,
        config.clubhouse_config.get("project", ""),
        create_trello_client(),
        settings.get("organization", ""),
        TrelloMigrationParams.from_config(dict(settings)),
        **pipeline_options(),
    )


def _build_component_factories(clubhouse: ClubhouseClient) -> ComponentFactories:
    """Return lazy factories for all available components.

    Source clients are only built for the components that actually run.
    """
    return {
        "trello": lambda: create_trello_migration(clubhouse),
        "github": lambda: create_github_migration(clubhouse),
        "housekeeping": lambda: Housekeeping(
            clubhouse, config.migration_config.get("housekeeping") or {}, **pipeline_options(),
        ),
        "clean": lambda: ClubhouseCleaner(clubhouse, **pipeline_options()),
    }


def _failed_result(message: str) -> ComponentResult:
    return ComponentResult(
        success=False,
        message=message,
        errors=[message],
        dry_run=bool(config.migration_config.get("dry_run", False)),
    )


def _finish(results: MigrationResult, kind: str) -> MigrationResult:
    """Stamp the end of the run, log the outcome and save the results file."""
    results.overall["end_time"] = datetime.now(tz=UTC).isoformat()
    start_time = datetime.fromisoformat(results.overall["start_time"])
    end_time = datetime.fromisoformat(results.overall["end_time"])
    total_seconds = (end_time - start_time).total_seconds()
    results.overall["total_time_seconds"] = total_seconds

    if results.succeeded:
        config.logger.success("%s completed successfully in %.2f seconds.", kind.capitalize(), total_seconds)
    else:
        config.logger.error(
            "%s completed with status '%s' in %.2f seconds.",
            kind.capitalize(), results.overall["status"], total_seconds,
        )

    results_file = f"{kind}_results_{results.overall['timestamp']}.json"
    try:
        data_handler.save_results(results, filename=results_file)
    except MigrationError as e:
        config.logger.warning("Could not save %s results: %s", kind, e)
    return results


def _run_component(name: str, results: MigrationResult, run: Callable[[], ComponentResult]) -> bool:
    """Run one component and record its result.

    Returns:
        False when the remaining components must not run

    Raises:
        KeyboardInterrupt: After marking the run as interrupted

    """
    print_component_header(name)
    try:
        result = run()
    except MigrationSetupError as e:
        config.logger.error("Setup of component '%s' failed: %s", name, e)
        results.record(name, _failed_result(str(e)))
        return False
    except KeyboardInterrupt:
        results.record(name, _failed_result("Interrupted by user"))
        results.overall["status"] = "interrupted"
        results.overall["message"] = "Migration was interrupted by user"
        raise
    except Exception as e:
        config.logger.exception("Component '%s' failed: %s", name, e)
        results.record(name, _failed_result(f"Unhandled error in {name}: {e}"))
        return True

    results.record(name, result)
    if result.success:
        config.logger.success("Component '%s' completed: %s", name, result.message)
    else:
        config.logger.error("Component '%s' completed with errors: %s", name, result.message)
    return True


def run_migration(
    components: list[str] | None = None,
    factories: ComponentFactories | None = None,
) -> MigrationResult:
    """Run the selected components in their fixed order.

    Args:
        components: Components to run; defaults to ``migration.components``
        factories: Component factories by name, built from the configuration when omitted

    Returns:
        The per-component results; ``overall["status"]`` is ``success`` only
        when every component succeeded

    Raises:
        KeyboardInterrupt: Re-raised after the partial results are saved

    """
    selected = list(components or config.migration_config.get("components") or COMPONENT_ORDER)
    unknown = [name for name in selected if name not in COMPONENT_ORDER]
    if unknown:
        msg = f"Unknown components: {', '.join(unknown)}"
        raise ValueError(msg)

    if factories is None:
        factories = _build_component_factories(create_clubhouse_client())

    results = MigrationResult(
        overall={
            "input_params": {
                "components": selected,
                "dry_run": bool(config.migration_config.get("dry_run", False)),
            },
        },
    )
    config.logger.info("Starting migration with components: %s", ", ".join(selected))

    try:
        for name in COMPONENT_ORDER:
            if name not in selected:
                continue
            factory = factories[name]
            if not _run_component(name, results, lambda: factory().run(workers=workers_for(name))):
                break
    finally:
        _finish(results, "migration")
    return results


def run_single(
    *,
    github_issue: int | None = None,
    trello_card: str | None = None,
    factories: ComponentFactories | None = None,
) -> MigrationResult:
    """Migrate one GitHub issue and/or one Trello card on the calling thread."""
    if github_issue is None and trello_card is None:
        msg = "Nothing to migrate: give a GitHub issue number or a Trello card id"
        raise ValueError(msg)

    if factories is None:
        factories = _build_component_factories(create_clubhouse_client())

    results = MigrationResult(
        overall={"input_params": {"github_issue": github_issue, "trello_card": trello_card}},
    )
    try:
        if trello_card is not None:
            trello = cast(Callable[[], TrelloMigration], factories["trello"])
            _run_component("trello", results, lambda: trello().migrate_card(trello_card))
        if github_issue is not None:
            github = cast(Callable[[], GithubMigration], factories["github"])
            _run_component("github", results, lambda: github().migrate_issue(github_issue))
    finally:
        _finish(results, "migration")
    return results


def run_clean(factories: ComponentFactories | None = None) -> MigrationResult:
    """Delete everything in the Clubhouse workspace."""
    if factories is None:
        factories = _build_component_factories(create_clubhouse_client())

    results = MigrationResult(
        overall={"input_params": {"dry_run": bool(config.migration_config.get("dry_run", False))}},
    )
    try:
        _run_component("clean", results, lambda: factories["clean"]().run(workers=workers_for("clean")))
    finally:
        _finish(results, "clean")
    return results
