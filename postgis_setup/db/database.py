"""Database connection abstractions used by the provisioning tasks.

The tasks only need a narrow surface: execute a statement and get rows back
as dictionaries, create or drop a database, quote identifiers and read the
session search path. ConnectionProtocol describes that surface,
PostgresConnection implements it on psycopg2 and DryRunConnection records
statements without a server, for previews and tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from postgis_setup.core import errors
from postgis_setup.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

Row = dict[str, Any]

# Version reported by DryRunConnection so ownership steps can be previewed.
DRY_RUN_POSTGIS_VERSION = "3.4 USE_GEOS=1 USE_PROJ=1 USE_STATS=1"


def quote_ident(name: str) -> str:
    """Quote an SQL identifier the way the server expects."""
    return '"%s"' % name.replace('"', '""')


def quote_literal(value: str) -> str:
    """Quote an SQL string literal."""
    return "'%s'" % value.replace("'", "''")


def _render_param(value: object) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int | float):
        return str(value)
    return quote_literal(str(value))


def render_statement(
    sql: str, params: Mapping[str, object] | tuple[object, ...] | None = None
) -> str:
    """Inline bound parameters so a recorded statement can be run as is."""
    if params is None:
        return sql
    if isinstance(params, tuple):
        return sql % tuple(_render_param(value) for value in params)
    return sql % {key: _render_param(value) for key, value in params.items()}


def build_create_database_sql(
    name: str,
    options: Mapping[str, object],
    quote: Callable[[str], str] = quote_ident,
) -> str:
    """Build a CREATE DATABASE statement.

    Args:
        name: Database name.
        options: Any of owner, template, encoding, collation, ctype,
            tablespace and connection_limit. None values are skipped.
        quote: Identifier quoting function.

    Returns:
        The statement text.
    """
    clauses = []
    for key, value in options.items():
        if value is None:
            continue
        match key:
            case "owner":
                clauses.append(f"OWNER = {quote(str(value))}")
            case "template":
                clauses.append(f"TEMPLATE = {quote(str(value))}")
            case "encoding":
                clauses.append(f"ENCODING = {quote_literal(str(value))}")
            case "collation":
                clauses.append(f"LC_COLLATE = {quote_literal(str(value))}")
            case "ctype":
                clauses.append(f"LC_CTYPE = {quote_literal(str(value))}")
            case "tablespace":
                clauses.append(f"TABLESPACE = {quote(str(value))}")
            case "connection_limit":
                clauses.append(f"CONNECTION LIMIT = {int(str(value))}")
    return " ".join([f"CREATE DATABASE {quote(name)}", *clauses])


def _describe(sql: str) -> str:
    """Shorten a statement for the log."""
    first_line = sql.strip().splitlines()[0] if sql.strip() else ""
    return first_line if len(first_line) < 200 else first_line[:197] + "..."


class ConnectionProtocol(Protocol):
    """Protocol interface for a single database session.

    Implementations execute statements against one database as one user,
    supporting both psycopg2 (production) and recording (dry-run, testing)
    backends.
    """

    def execute(
        self,
        sql: str,
        params: Mapping[str, object] | tuple[object, ...] | None = None,
    ) -> list[Row]: ...

    def create_database(self, name: str, options: Mapping[str, object]) -> None: ...

    def drop_database(self, name: str) -> None: ...

    def quote_ident(self, name: str) -> str: ...

    @property
    def schema_search_path(self) -> str: ...

    def close(self) -> None: ...


Connector = Callable[[db_models.DatabaseConfiguration], ConnectionProtocol]


class PostgresConnection(ConnectionProtocol):
    """psycopg2-backed session in autocommit mode.

    CREATE DATABASE and DROP DATABASE cannot run inside a transaction block,
    so every statement is committed as it runs. Driver errors surface as
    StatementInvalid with the server message.
    """

    def __init__(self, configuration: db_models.DatabaseConfiguration) -> None:
        """Open a connection described by the configuration.

        Args:
            configuration: Database, credentials, host, port and search path.

        Raises:
            ConnectionNotEstablished: If the server refuses the connection.
        """
        self.configuration = configuration
        connect_kwargs: dict[str, Any] = {
            "dbname": configuration.database,
            "user": configuration.username,
        }
        if configuration.password:
            connect_kwargs["password"] = configuration.password
        if configuration.host:
            connect_kwargs["host"] = configuration.host
        if configuration.port:
            connect_kwargs["port"] = configuration.port
        search_path = configuration.search_path_string()
        if search_path:
            connect_kwargs["options"] = f"-c search_path={search_path}"
        try:
            self._conn: psycopg2.extensions.connection = psycopg2.connect(
                **connect_kwargs
            )
        except psycopg2.Error as exc:
            raise errors.ConnectionNotEstablished(str(exc).strip()) from exc
        self._conn.autocommit = True

    def execute(
        self,
        sql: str,
        params: Mapping[str, object] | tuple[object, ...] | None = None,
    ) -> list[Row]:
        logger.debug("SQL: %s", _describe(sql))
        try:
            with self._conn.cursor(
                cursor_factory=psycopg2.extras.RealDictCursor
            ) as cur:
                cur.execute(sql, params)
                if cur.description is None:
                    return []
                return [dict(row) for row in cur.fetchall()]
        except psycopg2.Error as exc:
            raise errors.StatementInvalid(str(exc).strip()) from exc

    def create_database(self, name: str, options: Mapping[str, object]) -> None:
        self.execute(build_create_database_sql(name, options, self.quote_ident))

    def drop_database(self, name: str) -> None:
        self.execute(f"DROP DATABASE IF EXISTS {self.quote_ident(name)}")

    def quote_ident(self, name: str) -> str:
        return psycopg2.extensions.quote_ident(name, self._conn)

    @property
    def schema_search_path(self) -> str:
        rows = self.execute("SHOW search_path")
        return str(rows[0]["search_path"]) if rows else ""

    def close(self) -> None:
        self._conn.close()


class DryRunConnection(ConnectionProtocol):
    """Records statements instead of sending them to a server.

    A single instance can stand in for every connection a task opens: the
    callable returned by connector() rebinds it to the requested
    configuration and logs the swap in ``connections``. Queries return rows
    registered in ``responses``, keyed by a fragment of the SQL text; the
    first fragment contained in the statement wins.
    """

    def __init__(
        self,
        configuration: db_models.DatabaseConfiguration | None = None,
        responses: Mapping[str, list[Row]] | None = None,
    ) -> None:
        self.configuration = configuration
        self.responses: dict[str, list[Row]] = dict(responses or {})
        self.executed: list[
            tuple[str, Mapping[str, object] | tuple[object, ...] | None]
        ] = []
        self.connections: list[db_models.DatabaseConfiguration] = []
        self.closed = False

    @classmethod
    def for_preview(
        cls, configuration: db_models.DatabaseConfiguration | None = None
    ) -> DryRunConnection:
        """Recorder that reports a PostGIS version for the ownership steps."""
        return cls(
            configuration,
            {"postgis_version()": [{"postgis_version": DRY_RUN_POSTGIS_VERSION}]},
        )

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]

    @property
    def preview(self) -> list[str]:
        """Recorded statements with their parameters inlined."""
        return [render_statement(sql, params) for sql, params in self.executed]

    def connector(
        self,
    ) -> Callable[[db_models.DatabaseConfiguration], DryRunConnection]:
        def connect(
            configuration: db_models.DatabaseConfiguration,
        ) -> DryRunConnection:
            logger.info(
                "Dry run: connect to %s as %s",
                configuration.database,
                configuration.username,
            )
            self.configuration = configuration
            self.connections.append(configuration)
            self.closed = False
            return self

        return connect

    def execute(
        self,
        sql: str,
        params: Mapping[str, object] | tuple[object, ...] | None = None,
    ) -> list[Row]:
        logger.debug("Dry run SQL: %s", _describe(sql))
        self.executed.append((sql, params))
        for fragment, rows in self.responses.items():
            if fragment in sql:
                return [dict(row) for row in rows]
        return []

    def create_database(self, name: str, options: Mapping[str, object]) -> None:
        self.execute(build_create_database_sql(name, options, self.quote_ident))

    def drop_database(self, name: str) -> None:
        self.execute(f"DROP DATABASE IF EXISTS {self.quote_ident(name)}")

    def quote_ident(self, name: str) -> str:
        return quote_ident(name)

    @property
    def schema_search_path(self) -> str:
        if self.configuration is None:
            return "public"
        return self.configuration.search_path_string() or "public"

    def close(self) -> None:
        self.closed = True


def connect(configuration: db_models.DatabaseConfiguration) -> ConnectionProtocol:
    """Factory function to open a psycopg2 connection.

    Args:
        configuration: Connection settings.

    Returns:
        PostgresConnection instance for production use.
    """
    logger.info(
        "Connecting to %s as %s", configuration.database, configuration.username
    )
    return PostgresConnection(configuration)
