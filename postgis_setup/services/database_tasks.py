"""Generic PostgreSQL provisioning tasks.

PostgreSQLDatabaseTasks creates, drops and purges a database and dumps or
loads its schema through the PostgreSQL client utilities. Adapter-specific
task classes (see postgis_tasks) subclass it and override the hooks they
need.

Example:
    Create a plain PostgreSQL database:
        >>> from postgis_setup.db.models import DatabaseConfiguration
        >>> from postgis_setup.services.database_tasks import (
        ...     PostgreSQLDatabaseTasks,
        ... )

        >>> configuration = DatabaseConfiguration(
        ...     database="app",
        ...     username="app",
        ...     password="secret",
        ...     adapter="postgresql",
        ... )
        >>> tasks = PostgreSQLDatabaseTasks(configuration)
        >>> tasks.create()
        >>> tasks.structure_dump("db/structure.sql")
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from postgis_setup.core import errors
from postgis_setup.db import database
from postgis_setup.utils import pg_helpers

if TYPE_CHECKING:
    import pathlib

    from postgis_setup.db import models as db_models

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf8"
MAINTENANCE_DATABASE = "postgres"

_ALREADY_EXISTS = re.compile(r"database .* already exists")


def is_already_exists(error: errors.StatementInvalid) -> bool:
    """Return True if the server reported a duplicate database."""
    return _ALREADY_EXISTS.search(str(error)) is not None


class PostgreSQLDatabaseTasks:
    """Create, drop, dump and load a PostgreSQL database.

    The task holds at most one connection at a time. Opening a new one with
    establish_connection() closes the previous one.

    Attributes:
        configuration: The database being provisioned.
        connector: Callable that opens a connection for a configuration.
        commands: Client utility executables.
    """

    def __init__(
        self,
        configuration: db_models.DatabaseConfiguration,
        connector: database.Connector | None = None,
        commands: pg_helpers.ClientCommands | None = None,
    ) -> None:
        self.configuration = configuration
        self.connector = connector or database.connect
        self.commands = commands or pg_helpers.ClientCommands()
        self._connection: database.ConnectionProtocol | None = None

    @property
    def connection(self) -> database.ConnectionProtocol:
        """Current connection, opened with the task configuration if needed."""
        if self._connection is None:
            return self.establish_connection(self.configuration)
        return self._connection

    def establish_connection(
        self, configuration: db_models.DatabaseConfiguration
    ) -> database.ConnectionProtocol:
        """Replace the current connection with one for ``configuration``."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._connection = self.connector(configuration)
        return self._connection

    @property
    def encoding(self) -> str:
        return self.configuration.encoding or DEFAULT_ENCODING

    def create_options(self) -> dict[str, object]:
        """Options passed to CREATE DATABASE."""
        return {
            "encoding": self.encoding,
            "collation": self.configuration.collation,
            "ctype": self.configuration.ctype,
            "template": self.configuration.template,
            "tablespace": self.configuration.tablespace,
            "connection_limit": self.configuration.connection_limit,
        }

    def create(self, master_established: bool = False) -> None:
        """Create the configured database.

        Args:
            master_established: Skip connecting to the maintenance database
                because the caller already did.

        Raises:
            DatabaseAlreadyExists: If the database already exists.
            StatementInvalid: For any other server error.
        """
        try:
            if not master_established:
                self.establish_master_connection()
            logger.info("Creating database %s", self.configuration.database)
            self.connection.create_database(
                self.configuration.database, self.create_options()
            )
        except errors.StatementInvalid as exc:
            if is_already_exists(exc):
                raise errors.DatabaseAlreadyExists(str(exc)) from exc
            raise

    def drop(self) -> None:
        """Drop the configured database if it exists."""
        self.establish_master_connection()
        logger.info("Dropping database %s", self.configuration.database)
        self.connection.drop_database(self.configuration.database)

    def purge(self) -> None:
        """Drop and re-create the configured database."""
        self.drop()
        self.create(master_established=True)

    def charset(self) -> str | None:
        rows = self.connection.execute(
            "SELECT pg_encoding_to_char(encoding) AS encoding "
            "FROM pg_catalog.pg_database WHERE datname = current_database()"
        )
        return str(rows[0]["encoding"]) if rows else None

    def collation(self) -> str | None:
        rows = self.connection.execute(
            "SELECT datcollate AS collation "
            "FROM pg_catalog.pg_database WHERE datname = current_database()"
        )
        return str(rows[0]["collation"]) if rows else None

    def dump_schemas(self) -> list[str]:
        """Schemas passed to pg_dump as ``--schema``; empty dumps all."""
        return self.configuration.search_path_list()

    def structure_dump(self, filename: str | pathlib.Path) -> None:
        """Dump the schema of the database to ``filename``.

        The dump is schema-only without privileges or ownership. A
        ``SET search_path`` line restoring the session search path is
        appended so the file loads into the same schemas.

        Raises:
            CommandError: If pg_dump exits with a non-zero status.
        """
        command = [
            self.commands.pg_dump,
            "-s",
            "-x",
            "-O",
            "-f",
            str(filename),
            *(f"--schema={schema}" for schema in self.dump_schemas()),
            self.configuration.database,
        ]
        pg_helpers.run_command(command, env=pg_helpers.psql_env(self.configuration))
        search_path = self.connection.schema_search_path
        with open(filename, "a", encoding="utf-8") as dump:
            dump.write(f"SET search_path TO {search_path};\n\n")
        logger.info(
            "Dumped structure of %s to %s", self.configuration.database, filename
        )

    def structure_load(self, filename: str | pathlib.Path) -> None:
        """Load a schema dump produced by structure_dump().

        Raises:
            CommandError: If psql exits with a non-zero status.
        """
        command = [
            self.commands.psql,
            "-v",
            "ON_ERROR_STOP=1",
            "-q",
            "-f",
            str(filename),
            self.configuration.database,
        ]
        pg_helpers.run_command(command, env=pg_helpers.psql_env(self.configuration))
        logger.info("Loaded %s into %s", filename, self.configuration.database)

    def establish_master_connection(self) -> database.ConnectionProtocol:
        """Connect to the maintenance database to create or drop databases."""
        return self.establish_connection(
            self.configuration.merge(
                database=MAINTENANCE_DATABASE,
                schema_search_path="public",
            )
        )
