"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings describe
the database to provision (name, credentials, optional superuser
credentials, schema search path, PostGIS install mode) and the locations of
the PostgreSQL client utilities.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from postgis_setup.core.config import get_settings
        >>> settings = get_settings()
        >>> configuration = settings.to_configuration()

    Environment variables can override defaults:
        >>> POSTGIS_SETUP_DATABASE=gis
        >>> POSTGIS_SETUP_SU_USERNAME=postgres
        >>> POSTGIS_SETUP_SCHEMA_SEARCH_PATH=public,postgis
"""

import functools
import logging
import pathlib
from typing import Literal

import pydantic_settings

from postgis_setup.db import models as db_models
from postgis_setup.utils import pg_helpers

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via ``POSTGIS_SETUP_*`` environment
    variables or a .env file. ``su_username`` left unset means the
    provisioning runs without superuser privileges.

    Attributes:
        adapter: Adapter name used to pick the task class.
        database: Name of the database to provision.
        host: Server host name; None uses the libpq default.
        port: Server port; None uses the libpq default.
        username: Owner of the provisioned database.
        password: Password for ``username``.
        su_username: Superuser used for privileged steps.
        su_password: Password for ``su_username``.
        schema_search_path: Comma-separated schema search path.
        setup: PostGIS install mode ("default" auto-detects).
        postgis_extension: Comma-separated extension names.
        script_dir: Directory with legacy PostGIS SQL scripts.
        encoding: Encoding for CREATE DATABASE.
        pg_dump_path: pg_dump executable.
        psql_path: psql executable.
        pg_config_path: pg_config executable.
        dump_dir: Directory the HTTP API reads and writes schema dumps in.
        log_level: Root logging level.
    """

    adapter: str = "postgis"
    database: str = "gis"
    host: str | None = None
    port: int | None = None
    username: str = "gis"
    password: str | None = None
    su_username: str | None = None
    su_password: str | None = None
    schema_search_path: str = "public"
    setup: Literal["default", "extension", "script"] | None = "default"
    postgis_extension: str | None = None
    script_dir: str | None = None
    encoding: str = "utf8"
    pg_dump_path: str = "pg_dump"
    psql_path: str = "psql"
    pg_config_path: str = "pg_config"
    dump_dir: pathlib.Path = pathlib.Path("db")
    log_level: str = "INFO"

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="POSTGIS_SETUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def to_configuration(self) -> db_models.DatabaseConfiguration:
        """Build the provisioning record from these settings.

        Returns:
            A fresh DatabaseConfiguration; tasks may mutate it freely.
        """
        return db_models.DatabaseConfiguration(
            adapter=self.adapter,
            database=self.database,
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            su_username=self.su_username,
            su_password=self.su_password,
            schema_search_path=self.schema_search_path,
            setup=self.setup,
            postgis_extension=self.postgis_extension,
            script_dir=self.script_dir,
            encoding=self.encoding,
        )

    def client_commands(self) -> pg_helpers.ClientCommands:
        """Executables for pg_dump, psql and pg_config."""
        return pg_helpers.ClientCommands(
            pg_dump=self.pg_dump_path,
            psql=self.psql_path,
            pg_config=self.pg_config_path,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the process.

    Returns:
        Settings instance with all configuration values populated.
    """
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the CLI and the HTTP app."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
