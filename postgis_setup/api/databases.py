"""Database provisioning API endpoints.

This module exposes the provisioning tasks over HTTP for the database
described by the application settings. SQL-only operations accept a
``dry_run`` flag that records the statements instead of executing them and
returns them in the response.

Example:
    Preview the statements for creating the database:
        >>> response = client.post("/api/databases", params={"dry_run": True})
        >>> response.json()["statements"][0]
        'CREATE DATABASE "gis" ENCODING = \\'utf8\\' OWNER = "gis"'

    Install PostGIS into an existing database:
        >>> response = client.post("/api/databases/gis")
        >>> # Returns: {"database": "gis", "action": "setup_gis",
        >>> #           "statements": []}

    Dump the schema:
        >>> response = client.post(
        ...     "/api/databases/structure",
        ...     json={"filename": "structure.sql"},
        ... )
"""

from __future__ import annotations

import contextlib
import logging
import pathlib
from typing import TYPE_CHECKING

from typing_extensions import TypedDict

import fastapi
import pydantic

from postgis_setup.core import config, errors
from postgis_setup.db import database
from postgis_setup.db import models as db_models
from postgis_setup.services import registry
from postgis_setup.utils import pg_helpers

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api/databases", tags=["databases"])


class ProvisioningResponse(TypedDict):
    database: str
    action: str
    statements: list[str]


class StructureFileRequest(pydantic.BaseModel):
    filename: str


def _get_configuration(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> db_models.DatabaseConfiguration:
    """Resolve the configuration of the database to provision.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        A fresh DatabaseConfiguration built from the settings.
    """
    return settings.to_configuration()


def _get_commands(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> pg_helpers.ClientCommands:
    return settings.client_commands()


def _get_connector() -> database.Connector:
    """Resolve the connection factory used for real (non dry-run) calls."""
    return database.connect


def _get_dump_dir(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> pathlib.Path:
    return settings.dump_dir


def _resolve_dump_path(dump_dir: pathlib.Path, filename: str) -> pathlib.Path:
    """Resolve a client supplied file name inside the dump directory.

    Raises:
        HTTPException: 422 if the name points outside ``dump_dir``.
    """
    root = dump_dir.resolve()
    target = (root / filename).resolve()
    if not target.is_relative_to(root) or target == root:
        raise fastapi.HTTPException(
            status_code=422,
            detail=f"Filename must stay inside the dump directory: {filename}",
        )
    return target


@contextlib.contextmanager
def _http_errors() -> Iterator[None]:
    """Translate provisioning errors into HTTP errors."""
    try:
        yield
    except errors.DatabaseAlreadyExists as exc:
        raise fastapi.HTTPException(status_code=409, detail=str(exc)) from exc
    except errors.ConfigurationError as exc:
        raise fastapi.HTTPException(status_code=422, detail=str(exc)) from exc
    except errors.DatabaseNotSupported as exc:
        raise fastapi.HTTPException(status_code=400, detail=str(exc)) from exc
    except errors.ProvisioningError as exc:
        logger.error("Provisioning failed: %s", exc)
        raise fastapi.HTTPException(status_code=500, detail=str(exc)) from exc


def _run(
    action: str,
    configuration: db_models.DatabaseConfiguration,
    commands: pg_helpers.ClientCommands,
    connector: database.Connector,
    dry_run: bool,
) -> ProvisioningResponse:
    """Run one task method, optionally against a recording connection."""
    recorder = database.DryRunConnection.for_preview() if dry_run else None
    with _http_errors():
        tasks = registry.task_for(
            configuration,
            recorder.connector() if recorder is not None else connector,
            commands,
        )
        getattr(tasks, action)()
    return {
        "database": configuration.database,
        "action": action,
        "statements": recorder.preview if recorder is not None else [],
    }


@router.post("", status_code=201)
def create_database(
    dry_run: bool = False,
    configuration: db_models.DatabaseConfiguration = fastapi.Depends(  # noqa: B008
        _get_configuration
    ),
    commands: pg_helpers.ClientCommands = fastapi.Depends(_get_commands),  # noqa: B008
    connector: database.Connector = fastapi.Depends(_get_connector),  # noqa: B008
) -> ProvisioningResponse:
    """Create the configured database and, for PostGIS adapters, set up GIS.

    Raises:
        HTTPException: 409 if the database exists, 422 for an invalid
            configuration, 500 for server or command failures.
    """
    return _run("create", configuration, commands, connector, dry_run)


@router.post("/gis")
def setup_gis(
    dry_run: bool = False,
    configuration: db_models.DatabaseConfiguration = fastapi.Depends(  # noqa: B008
        _get_configuration
    ),
    commands: pg_helpers.ClientCommands = fastapi.Depends(_get_commands),  # noqa: B008
    connector: database.Connector = fastapi.Depends(_get_connector),  # noqa: B008
) -> ProvisioningResponse:
    """Install PostGIS into the configured database.

    Raises:
        HTTPException: 400 if the adapter has no GIS setup, 422 for an
            invalid configuration, 500 for server failures.
    """
    if not configuration.adapter.startswith("postgis"):
        raise fastapi.HTTPException(
            status_code=400,
            detail=f"Adapter '{configuration.adapter}' does not support GIS setup",
        )
    return _run("setup_gis", configuration, commands, connector, dry_run)


@router.delete("")
def drop_database(
    dry_run: bool = False,
    configuration: db_models.DatabaseConfiguration = fastapi.Depends(  # noqa: B008
        _get_configuration
    ),
    commands: pg_helpers.ClientCommands = fastapi.Depends(_get_commands),  # noqa: B008
    connector: database.Connector = fastapi.Depends(_get_connector),  # noqa: B008
) -> ProvisioningResponse:
    """Drop the configured database if it exists."""
    return _run("drop", configuration, commands, connector, dry_run)


@router.post("/structure")
def structure_dump(
    request: StructureFileRequest,
    configuration: db_models.DatabaseConfiguration = fastapi.Depends(  # noqa: B008
        _get_configuration
    ),
    commands: pg_helpers.ClientCommands = fastapi.Depends(_get_commands),  # noqa: B008
    connector: database.Connector = fastapi.Depends(_get_connector),  # noqa: B008
    dump_dir: pathlib.Path = fastapi.Depends(_get_dump_dir),  # noqa: B008
) -> dict[str, str]:
    """Dump the database schema to a file in the dump directory.

    Raises:
        HTTPException: 422 if the filename escapes the dump directory,
            500 if pg_dump fails.
    """
    target = _resolve_dump_path(dump_dir, request.filename)
    dump_dir.mkdir(parents=True, exist_ok=True)
    with _http_errors():
        tasks = registry.task_for(configuration, connector, commands)
        tasks.structure_dump(target)
    return {"database": configuration.database, "filename": str(target)}


@router.post("/structure/load")
def structure_load(
    request: StructureFileRequest,
    configuration: db_models.DatabaseConfiguration = fastapi.Depends(  # noqa: B008
        _get_configuration
    ),
    commands: pg_helpers.ClientCommands = fastapi.Depends(_get_commands),  # noqa: B008
    connector: database.Connector = fastapi.Depends(_get_connector),  # noqa: B008
    dump_dir: pathlib.Path = fastapi.Depends(_get_dump_dir),  # noqa: B008
) -> dict[str, str]:
    """Load a schema dump from the dump directory.

    Raises:
        HTTPException: 422 if the filename escapes the dump directory,
            500 if psql fails.
    """
    target = _resolve_dump_path(dump_dir, request.filename)
    with _http_errors():
        tasks = registry.task_for(configuration, connector, commands)
        tasks.structure_load(target)
    return {"database": configuration.database, "filename": str(target)}
