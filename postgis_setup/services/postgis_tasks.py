"""PostGIS provisioning on top of the generic PostgreSQL tasks.

PostGISDatabaseTasks extends database creation with the steps needed to make
a database spatially enabled:

1. connect as the superuser (or the normal user when none is configured),
2. create every non-public schema in the search path,
3. install PostGIS with ``CREATE EXTENSION`` or run the legacy SQL scripts,
4. grant the owning user access to the PostGIS tables and functions and hand
   over ownership of the PostGIS catalog tables and views,
5. reconnect as the normal user.

A failure in any step aborts the run and leaves the superuser connection in
place.

Example:
    Create a spatial database owned by ``gis``:
        >>> from postgis_setup.db.models import DatabaseConfiguration
        >>> from postgis_setup.services.postgis_tasks import PostGISDatabaseTasks

        >>> configuration = DatabaseConfiguration(
        ...     database="gis",
        ...     username="gis",
        ...     su_username="postgres",
        ...     schema_search_path="public,postgis",
        ...     setup="default",
        ... )
        >>> PostGISDatabaseTasks(configuration).create()

    Add topology support:
        >>> configuration.schema_search_path = "public,postgis,topology"
        >>> configuration.postgis_extension = "postgis,postgis_topology"
        >>> PostGISDatabaseTasks(configuration).setup_gis()
"""

from __future__ import annotations

import functools
import logging
import os
import pathlib
import re
from typing import TYPE_CHECKING

from postgis_setup.core import errors
from postgis_setup.db import database
from postgis_setup.services import database_tasks
from postgis_setup.utils import pg_helpers

if TYPE_CHECKING:
    from postgis_setup.db import models as db_models

logger = logging.getLogger(__name__)

POSTGIS_SCHEMA = "postgis"
TOPOLOGY_SCHEMA = "topology"
TOPOLOGY_EXTENSION = "postgis_topology"
DEFAULT_EXTENSIONS = ("postgis",)
LEGACY_SCRIPT_DIR = "contrib/postgis-1.5"
CONTROL_FILE = "extension/postgis.control"
SCRIPT_FILES = ("postgis.sql", "spatial_ref_sys.sql")


class PostGISDatabaseTasks(database_tasks.PostgreSQLDatabaseTasks):
    """Provisioning tasks for databases using the ``postgis`` adapter.

    Installation auto-detection runs on construction and may fill in
    ``postgis_extension`` or ``script_dir`` on the configuration.
    """

    def __init__(
        self,
        configuration: db_models.DatabaseConfiguration,
        connector: database.Connector | None = None,
        commands: pg_helpers.ClientCommands | None = None,
    ) -> None:
        super().__init__(configuration, connector, commands)
        self.ensure_installation_configs()

    @property
    def username(self) -> str:
        return self.configuration.username

    @property
    def password(self) -> str | None:
        return self.configuration.password

    @property
    def su_username(self) -> str:
        return self.configuration.su_username or self.username

    @property
    def su_password(self) -> str | None:
        return self.configuration.su_password or self.password

    @property
    def has_su(self) -> bool:
        """True only when a superuser name is configured."""
        return self.configuration.su_username is not None

    @property
    def quoted_username(self) -> str:
        return self.connection.quote_ident(self.username)

    @functools.cached_property
    def search_path(self) -> list[str]:
        return self.configuration.search_path_list()

    @functools.cached_property
    def postgis_schema(self) -> str:
        """Schema PostGIS is installed into."""
        if POSTGIS_SCHEMA in self.search_path:
            return POSTGIS_SCHEMA
        return self.search_path[-1] if self.search_path else "public"

    @property
    def script_dir(self) -> str | None:
        """Legacy script directory, unless extension mode is forced."""
        if self.configuration.setup == "extension":
            return None
        return self.configuration.script_dir

    @property
    def extension_names(self) -> list[str]:
        extensions = self.configuration.postgis_extension
        if isinstance(extensions, str):
            return [name.strip() for name in extensions.split(",") if name.strip()]
        if isinstance(extensions, list):
            return list(extensions)
        return list(DEFAULT_EXTENSIONS)

    def create_options(self) -> dict[str, object]:
        options = super().create_options()
        if self.has_su:
            options["owner"] = self.username
        return options

    def create(self, master_established: bool = False) -> None:
        """Create the database as the superuser, then set up PostGIS.

        Raises:
            ConfigurationError: If the PostGIS configuration is invalid; no
                SQL is issued in that case.
            DatabaseAlreadyExists: If the database already exists.
        """
        self.validate_installation_configs()
        super().create(master_established)
        self.setup_gis()

    def purge(self) -> None:
        """Drop and re-create the database, validating before the drop."""
        self.validate_installation_configs()
        super().purge()

    def setup_gis(self) -> None:
        """Install PostGIS into the configured database.

        Raises:
            ConfigurationError: If the configuration cannot be satisfied.
            StatementInvalid: If any statement fails. The superuser
                connection is left open in that case.
        """
        self.validate_installation_configs()
        self.establish_su_connection()
        self.setup_gis_schemas()
        if self.script_dir:
            self.setup_gis_from_script_dir()
        elif self.extension_names:
            self.setup_gis_from_extension()
        if self.has_su and (self.script_dir or self.extension_names):
            self.setup_gis_grant_privileges()
        self.establish_connection(self.configuration)
        logger.info("PostGIS set up in %s", self.configuration.database)

    def dump_schemas(self) -> list[str]:
        """Search path without the PostGIS schema."""
        schemas = [
            schema for schema in self.search_path if schema != POSTGIS_SCHEMA
        ]
        return schemas or ["public"]

    def validate_installation_configs(self) -> None:
        """Reject configurations that would fail halfway through setup_gis."""
        setup = self.configuration.setup
        if setup == "script" and not self.configuration.script_dir:
            raise errors.ConfigurationError(
                "script_dir must be set when setup is 'script'"
            )
        if self.script_dir:
            missing = [
                script
                for script in SCRIPT_FILES
                if not (pathlib.Path(self.script_dir) / script).is_file()
            ]
            if missing:
                raise errors.ConfigurationError(
                    f"Missing PostGIS scripts in {self.script_dir}: "
                    + ", ".join(missing)
                )
            return
        if (
            TOPOLOGY_EXTENSION in self.extension_names
            and TOPOLOGY_SCHEMA not in self.search_path
        ):
            raise errors.ConfigurationError(
                f"'{TOPOLOGY_SCHEMA}' must be in schema_search_path "
                f"for {TOPOLOGY_EXTENSION}"
            )

    def ensure_installation_configs(self) -> None:
        """Detect how PostGIS is installed on this host.

        Only applies in "default" setup mode with neither extensions nor a
        script directory configured. An extension control file wins over a
        legacy script directory; when neither exists the configuration is
        left alone.
        """
        configuration = self.configuration
        if (
            configuration.setup != "default"
            or configuration.script_dir
            or configuration.postgis_extension
        ):
            return
        share_dir = pathlib.Path(pg_helpers.pg_share_dir(self.commands.pg_config))
        control_file = share_dir / CONTROL_FILE
        script_dir = share_dir / LEGACY_SCRIPT_DIR
        if control_file.is_file() and os.access(control_file, os.R_OK):
            logger.info("Found %s, installing PostGIS as an extension", control_file)
            configuration.postgis_extension = "postgis"
        elif script_dir.is_dir():
            logger.info("Found %s, installing PostGIS from scripts", script_dir)
            configuration.script_dir = str(script_dir)

    def establish_master_connection(self) -> database.ConnectionProtocol:
        return self.establish_connection(
            self.configuration.merge(
                database=database_tasks.MAINTENANCE_DATABASE,
                schema_search_path="public",
                username=self.su_username,
                password=self.su_password,
            )
        )

    def establish_su_connection(self) -> database.ConnectionProtocol:
        return self.establish_connection(
            self.configuration.merge(
                schema_search_path="public",
                username=self.su_username,
                password=self.su_password,
            )
        )

    def setup_gis_schemas(self) -> None:
        authorization = f" AUTHORIZATION {self.quoted_username}" if self.has_su else ""
        for schema in self.search_path:
            if schema.lower() == "public":
                continue
            exists = self.connection.execute(
                "SELECT 1 FROM pg_catalog.pg_namespace WHERE nspname = %s",
                (schema,),
            )
            if exists:
                continue
            logger.info("Creating schema %s", schema)
            self.connection.execute(
                f"CREATE SCHEMA {self.connection.quote_ident(schema)}{authorization}"
            )

    def setup_gis_from_extension(self) -> None:
        for name in self.extension_names:
            schema = (
                TOPOLOGY_SCHEMA
                if name == TOPOLOGY_EXTENSION
                else self.postgis_schema
            )
            logger.info("Installing extension %s into schema %s", name, schema)
            self.connection.execute(
                f"CREATE EXTENSION IF NOT EXISTS {self.connection.quote_ident(name)} "
                f"SCHEMA {self.connection.quote_ident(schema)}"
            )

    def setup_gis_from_script_dir(self) -> None:
        if self.script_dir is None:
            raise errors.ConfigurationError("script_dir is not configured")
        script_dir = pathlib.Path(self.script_dir)
        logger.info("Installing PostGIS from scripts in %s", script_dir)
        self.connection.execute(
            f"SET search_path TO {self.connection.quote_ident(self.postgis_schema)}"
        )
        self.connection.execute("CREATE OR REPLACE LANGUAGE plpgsql")
        for script in SCRIPT_FILES:
            try:
                sql = (script_dir / script).read_text(encoding="utf-8")
            except OSError as exc:
                raise errors.ConfigurationError(
                    f"Cannot read {script_dir / script}: {exc}"
                ) from exc
            self.connection.execute(sql)

    def postgis_major_version(self) -> int:
        schema = self.connection.quote_ident(self.postgis_schema)
        rows = self.connection.execute(
            f"SELECT {schema}.postgis_version() AS postgis_version"
        )
        if not rows:
            raise errors.StatementInvalid("postgis_version() returned no rows")
        version = str(rows[0]["postgis_version"])
        match = re.match(r"\s*(\d+)", version)
        if match is None:
            raise errors.StatementInvalid(f"Unrecognised PostGIS version: {version}")
        return int(match.group(1))

    def setup_gis_grant_privileges(self) -> None:
        schema = self.connection.quote_ident(self.postgis_schema)
        user = self.quoted_username
        logger.info(
            "Granting PostGIS privileges in %s to %s",
            self.postgis_schema,
            self.username,
        )
        self.connection.execute(
            f"GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA {schema} TO {user}"
        )
        self.connection.execute(
            f"GRANT ALL PRIVILEGES ON ALL FUNCTIONS IN SCHEMA {schema} TO {user}"
        )
        # PostGIS 2 turned the column catalogs into views.
        if self.postgis_major_version() >= 2:
            for view in ("geometry_columns", "geography_columns"):
                self.connection.execute(
                    f"ALTER VIEW {schema}.{view} OWNER TO {user}"
                )
        else:
            self.connection.execute(
                f"ALTER TABLE {schema}.geometry_columns OWNER TO {user}"
            )
        self.connection.execute(
            f"ALTER TABLE {schema}.spatial_ref_sys OWNER TO {user}"
        )
