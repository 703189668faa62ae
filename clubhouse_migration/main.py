"""Main entry point for the GitHub/Trello to Clubhouse migration tool.

Three commands share one configuration: ``migrate`` runs the migration
components, ``housekeeping`` tidies the workspace and ``clean`` wipes it.
"""

import argparse
import sys

from clubhouse_migration.config import logger, migration_config, update_from_cli_args, validate_config
from clubhouse_migration.models import MigrationResult

COMPONENT_CHOICES = ["trello", "github", "housekeeping"]


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        description="GitHub issues and Trello cards to Clubhouse migration tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Create the parser for the "migrate" command
    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Migrate GitHub issues and Trello cards into Clubhouse stories",
    )
    migrate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run without making changes to Clubhouse",
    )
    migrate_parser.add_argument(
        "--components",
        nargs="+",
        choices=COMPONENT_CHOICES,
        help="Specific components to run (trello, github, housekeeping)",
    )
    migrate_parser.add_argument(
        "--workers",
        type=int,
        help="Number of concurrent record tasks per component",
    )
    migrate_parser.add_argument(
        "--issue-state",
        choices=["open", "closed", "all"],
        help="State of the GitHub issues to migrate",
    )
    migrate_parser.add_argument(
        "--github-issue",
        type=int,
        metavar="NUMBER",
        help="Migrate only this GitHub issue",
    )
    migrate_parser.add_argument(
        "--trello-card",
        metavar="CARD_ID",
        help="Migrate only this Trello card",
    )

    housekeeping_parser = subparsers.add_parser(
        "housekeeping",
        help="Archive completed work, close done epics and order milestones",
    )
    housekeeping_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the changes instead of applying them",
    )
    housekeeping_parser.add_argument(
        "--workers",
        type=int,
        help="Number of concurrent archive tasks",
    )
    housekeeping_parser.add_argument(
        "--archive-after-days",
        type=int,
        metavar="DAYS",
        help="Archive stories and epics completed more than DAYS ago",
    )
    housekeeping_parser.add_argument(
        "--close-epics",
        action="store_true",
        help="Close epics whose stories are all done",
    )
    housekeeping_parser.add_argument(
        "--milestones",
        action="store_true",
        help="Attach release epics to their milestone and reorder milestones",
    )
    housekeeping_parser.add_argument(
        "--archive-prefix",
        action="append",
        metavar="PREFIX",
        help="Archive epics whose name starts with PREFIX (repeatable)",
    )

    clean_parser = subparsers.add_parser(
        "clean",
        help="Delete every label, epic, milestone and story of the workspace",
    )
    clean_parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the deletion; nothing happens without it",
    )
    clean_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the deletions instead of performing them",
    )
    clean_parser.add_argument(
        "--workers",
        type=int,
        help="Number of concurrent deletions",
    )

    return parser


def apply_housekeeping_args(args: argparse.Namespace) -> None:
    """Override the configured housekeeping steps when any step is given on the command line."""
    steps = {
        "archive_after_days": args.archive_after_days,
        "close_done_epics": args.close_epics or None,
        "milestones": args.milestones or None,
        "archive_prefixes": args.archive_prefix,
    }
    if all(value is None for value in steps.values()):
        return

    housekeeping = dict(migration_config.get("housekeeping") or {})
    for key in ("archive_after_days", "close_done_epics", "milestones", "archive_prefixes"):
        housekeeping.pop(key, None)
    housekeeping.update({key: value for key, value in steps.items() if value is not None})
    migration_config["housekeeping"] = housekeeping  # type: ignore[typeddict-item]
    logger.debug("Setting housekeeping=%s from CLI arguments", housekeeping)


def exit_code(result: MigrationResult) -> int:
    return 0 if result.succeeded else 1


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and execute the appropriate command.

    Returns:
        Process exit status: 0 when every component succeeded

    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        # No command specified, show help
        parser.print_help()
        return 1

    # Update configuration with CLI arguments BEFORE building any component
    update_from_cli_args(args)

    from clubhouse_migration import migration  # noqa: PLC0415

    match args.command:
        case "migrate":
            single = args.github_issue is not None or args.trello_card is not None
            if single:
                components = [
                    name
                    for name, given in (("trello", args.trello_card), ("github", args.github_issue))
                    if given is not None
                ]
            else:
                components = list(migration_config.get("components") or COMPONENT_CHOICES)
            if not validate_config(components):
                return 1
            if single:
                return exit_code(migration.run_single(github_issue=args.github_issue, trello_card=args.trello_card))
            return exit_code(migration.run_migration(components))

        case "housekeeping":
            apply_housekeeping_args(args)
            if not validate_config(["housekeeping"]):
                return 1
            return exit_code(migration.run_migration(["housekeeping"]))

        case "clean":
            if not args.yes:
                logger.error("Refusing to delete the Clubhouse workspace without --yes")
                return 1
            if not validate_config([]):
                return 1
            return exit_code(migration.run_clean())

    parser.print_help()
    return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Migration interrupted by user")
        sys.exit(1)
    except (ConnectionError, TimeoutError) as e:
        logger.error("Network connectivity error: %s", e)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error occurred during migration: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    run()
