"""Adapter-name registry for database task classes.

Task classes register against a regular expression matched with
``re.search`` on the configured adapter name. Later registrations are tried
first, so a more specific adapter can shadow a generic one.

Example:
    Resolve the task class for a configuration:
        >>> from postgis_setup.services import registry
        >>> tasks = registry.task_for(configuration)
        >>> tasks.create()
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from postgis_setup.core import errors
from postgis_setup.services import database_tasks, postgis_tasks

if TYPE_CHECKING:
    from postgis_setup.db import database
    from postgis_setup.db import models as db_models
    from postgis_setup.utils import pg_helpers

TaskClass = type[database_tasks.PostgreSQLDatabaseTasks]

_registry: list[tuple[re.Pattern[str], TaskClass]] = []


def register_task(pattern: str | re.Pattern[str], task_class: TaskClass) -> None:
    """Associate adapter names matching ``pattern`` with ``task_class``."""
    _registry.insert(0, (re.compile(pattern), task_class))


def class_for_adapter(adapter: str) -> TaskClass:
    """Return the task class registered for ``adapter``.

    Raises:
        DatabaseNotSupported: If no registered pattern matches.
    """
    for pattern, task_class in _registry:
        if pattern.search(adapter):
            return task_class
    raise errors.DatabaseNotSupported(
        f"No database tasks registered for adapter '{adapter}'"
    )


def task_for(
    configuration: db_models.DatabaseConfiguration,
    connector: database.Connector | None = None,
    commands: pg_helpers.ClientCommands | None = None,
) -> database_tasks.PostgreSQLDatabaseTasks:
    """Instantiate the task class for the configuration's adapter."""
    task_class = class_for_adapter(configuration.adapter)
    return task_class(configuration, connector, commands)


register_task(r"postgresql", database_tasks.PostgreSQLDatabaseTasks)
register_task(r"postgis", postgis_tasks.PostGISDatabaseTasks)
