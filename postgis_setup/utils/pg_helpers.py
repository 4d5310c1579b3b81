"""Safe execution wrapper for PostgreSQL command-line utilities.

This module provides a safe interface for executing the PostgreSQL client
tools (pg_dump, psql, pg_config) as subprocesses. It handles error checking
and provides clear error messages when commands fail.

All commands are executed with proper error handling, and non-zero exit codes
result in CommandError exceptions with the command's stderr output.

Example:
    Dump the schema of a database:
        >>> from postgis_setup.utils.pg_helpers import run_command
        >>> from postgis_setup.core.errors import CommandError

        >>> try:
        ...     run_command(
        ...         ["pg_dump", "-s", "-x", "-O", "-f", "structure.sql", "gis"],
        ...         env=psql_env(configuration),
        ...     )
        ... except CommandError as e:
        ...     print(f"Command failed: {e}")

    Ask pg_config for the shared data directory:
        >>> share_dir = run_command(["pg_config", "--sharedir"]).strip()
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import TYPE_CHECKING, NamedTuple

from postgis_setup.core import errors

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable, Mapping

    from postgis_setup.db import models as db_models

logger = logging.getLogger(__name__)

DEFAULT_SHARE_DIR = "/usr/share"


class ClientCommands(NamedTuple):
    """Executables used for dump, load and installation probing."""

    pg_dump: str = "pg_dump"
    psql: str = "psql"
    pg_config: str = "pg_config"


def run_command(
    command: Iterable[str | pathlib.Path],
    workdir: pathlib.Path | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Execute a command and raise on non-zero exit.

    Args:
        command: Iterable arguments to execute (e.g., ["pg_dump", "-s", ...]).
        workdir: Optional working directory for the command execution.
        env: Extra environment variables layered over the current process
            environment.

    Returns:
        The command's stdout.

    Raises:
        CommandError: if the command exits with a non-zero status code.
            The exception message contains the stderr output from the command.
    """
    args = [str(part) for part in command]
    logger.info("Running %s", " ".join(args))
    result = subprocess.run(
        args,
        cwd=workdir,
        env={**os.environ, **env} if env else None,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        raise errors.CommandError(
            result.stderr.strip() or "Unknown command failure"
        )
    return result.stdout


def psql_env(configuration: db_models.DatabaseConfiguration) -> dict[str, str]:
    """Build the libpq environment for the client utilities.

    Only the settings present in the configuration are exported, so unset
    values fall back to whatever the caller's environment provides.
    """
    env: dict[str, str] = {"PGUSER": configuration.username}
    if configuration.host:
        env["PGHOST"] = configuration.host
    if configuration.port:
        env["PGPORT"] = str(configuration.port)
    if configuration.password:
        env["PGPASSWORD"] = configuration.password
    return env


def pg_share_dir(pg_config: str = "pg_config") -> str:
    """Return the PostgreSQL shared data directory.

    Falls back to /usr/share when pg_config is missing or fails.
    """
    try:
        share_dir = run_command([pg_config, "--sharedir"]).strip()
    except (errors.CommandError, OSError) as exc:
        logger.warning(
            "pg_config --sharedir failed (%s), using %s",
            exc,
            DEFAULT_SHARE_DIR,
        )
        return DEFAULT_SHARE_DIR
    return share_dir or DEFAULT_SHARE_DIR
