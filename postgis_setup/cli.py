"""CLI commands for database provisioning."""

from __future__ import annotations

import argparse
import logging
import sys

from postgis_setup.core import config, errors
from postgis_setup.db import database
from postgis_setup.services import registry

logger = logging.getLogger(__name__)

SQL_COMMANDS = {
    "create": "create",
    "drop": "drop",
    "purge": "purge",
    "setup-gis": "setup_gis",
}
FILE_COMMANDS = {
    "structure-dump": "structure_dump",
    "structure-load": "structure_load",
}
DESTRUCTIVE_COMMANDS = {"drop", "purge"}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="postgis-setup",
        description="Create PostgreSQL databases and install PostGIS into them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", help="Override POSTGIS_SETUP_LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (
        ("create", "Create the database and set up PostGIS"),
        ("drop", "Drop the database"),
        ("purge", "Drop and re-create the database"),
        ("setup-gis", "Install PostGIS into an existing database"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the SQL instead of running it",
        )
        if name in DESTRUCTIVE_COMMANDS:
            sub.add_argument("--yes-i-am-sure", action="store_true")

    dump_parser = subparsers.add_parser(
        "structure-dump",
        help="Dump the database schema with pg_dump",
    )
    dump_parser.add_argument("filename")

    load_parser = subparsers.add_parser(
        "structure-load",
        help="Load a schema dump with psql",
    )
    load_parser.add_argument("filename")

    return parser


def handle_sql_command(
    settings: config.Settings,
    action: str,
    dry_run: bool = False,
) -> None:
    configuration = settings.to_configuration()
    recorder = database.DryRunConnection.for_preview() if dry_run else None
    tasks = registry.task_for(
        configuration,
        recorder.connector() if recorder is not None else None,
        settings.client_commands(),
    )
    if action == "setup_gis" and not hasattr(tasks, "setup_gis"):
        raise errors.DatabaseNotSupported(
            f"Adapter '{configuration.adapter}' does not support GIS setup"
        )
    getattr(tasks, action)()
    if recorder is not None:
        for statement in recorder.preview:
            print(f"{statement.rstrip().rstrip(';')};")


def handle_file_command(
    settings: config.Settings,
    action: str,
    filename: str,
) -> None:
    tasks = registry.task_for(
        settings.to_configuration(),
        commands=settings.client_commands(),
    )
    getattr(tasks, action)(filename)


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = config.get_settings()
    config.configure_logging(args.log_level or settings.log_level)

    if (
        args.command in DESTRUCTIVE_COMMANDS
        and not args.dry_run
        and not args.yes_i_am_sure
    ):
        print(f"{args.command} requires --yes-i-am-sure flag", file=sys.stderr)
        return 1

    try:
        if args.command in SQL_COMMANDS:
            handle_sql_command(settings, SQL_COMMANDS[args.command], args.dry_run)
        elif args.command in FILE_COMMANDS:
            handle_file_command(settings, FILE_COMMANDS[args.command], args.filename)
        else:
            print(f"Unknown command: {args.command}", file=sys.stderr)
            return 1
    except errors.ProvisioningError as e:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
