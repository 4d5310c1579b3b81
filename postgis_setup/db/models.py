"""Data model for a provisioning run.

This module defines the configuration record consumed by the database tasks.
A record describes one database: where it lives, who owns it, which
superuser (if any) performs the privileged steps, and how PostGIS should be
installed into it.

Example:
    Creating a configuration for an extension-based install:
        >>> from postgis_setup.db.models import DatabaseConfiguration
        >>> configuration = DatabaseConfiguration(
        ...     database="gis",
        ...     username="gis",
        ...     password="secret",
        ...     su_username="postgres",
        ...     schema_search_path="public,postgis",
        ...     setup="extension",
        ... )

    Deriving the superuser connection configuration:
        >>> su = configuration.merge(
        ...     username="postgres",
        ...     schema_search_path="public",
        ... )
"""

from __future__ import annotations

import dataclasses
from typing import Literal

SetupMode = Literal["default", "extension", "script"]


@dataclasses.dataclass
class DatabaseConfiguration:
    """Connection and provisioning settings for a single database.

    The record is mutable: installation auto-detection fills in
    ``postgis_extension`` or ``script_dir`` in place.

    Attributes:
        database: Target database name.
        username: Normal application user; owns the database when a
            superuser performs the provisioning.
        password: Password for ``username``.
        adapter: Adapter name used to select the task class.
        host: Server host name, None for the libpq default.
        port: Server port, None for the libpq default.
        su_username: Superuser name. Its presence alone enables the
            ownership and grant steps.
        su_password: Superuser password.
        schema_search_path: Comma-separated string or list of schema names.
        setup: Install mode. "default" inspects the local PostgreSQL share
            directory; "extension" and "script" force one mechanism.
        postgis_extension: Comma-separated string or list of extensions.
        script_dir: Directory containing postgis.sql and spatial_ref_sys.sql.
        encoding: Database encoding for CREATE DATABASE.
        collation: LC_COLLATE for CREATE DATABASE.
        ctype: LC_CTYPE for CREATE DATABASE.
        template: Template database for CREATE DATABASE.
        tablespace: Tablespace for CREATE DATABASE.
        connection_limit: Connection limit for CREATE DATABASE.
    """

    database: str
    username: str
    password: str | None = None
    adapter: str = "postgis"
    host: str | None = None
    port: int | None = None
    su_username: str | None = None
    su_password: str | None = None
    schema_search_path: str | list[str] | None = None
    setup: SetupMode | None = None
    postgis_extension: str | list[str] | None = None
    script_dir: str | None = None
    encoding: str | None = None
    collation: str | None = None
    ctype: str | None = None
    template: str | None = None
    tablespace: str | None = None
    connection_limit: int | None = None

    def merge(self, **overrides: object) -> DatabaseConfiguration:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **overrides)  # type: ignore[arg-type]

    def search_path_list(self) -> list[str]:
        """Return the search path as an ordered list of stripped names."""
        value = self.schema_search_path
        if value is None:
            return []
        parts = value if isinstance(value, list) else str(value).split(",")
        return [part.strip() for part in parts if part.strip()]

    def search_path_string(self) -> str:
        """Return the search path in ``SET search_path`` form."""
        return ",".join(self.search_path_list())
