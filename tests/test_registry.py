"""Tests for the adapter-name task registry.

Covers the built-in registrations for the postgresql and postgis adapters,
precedence of later registrations, and unsupported adapters.
"""

from __future__ import annotations

import pytest

from postgis_setup.core import errors
from postgis_setup.db import database
from postgis_setup.db import models as db_models
from postgis_setup.services import database_tasks, postgis_tasks, registry


def test_builtin_adapters() -> None:
    """postgis and postgresql resolve to their task classes."""
    assert registry.class_for_adapter("postgis") is (
        postgis_tasks.PostGISDatabaseTasks
    )
    assert registry.class_for_adapter("postgresql") is (
        database_tasks.PostgreSQLDatabaseTasks
    )


def test_unknown_adapter() -> None:
    """Unregistered adapters raise DatabaseNotSupported."""
    with pytest.raises(errors.DatabaseNotSupported, match="sqlite3"):
        registry.class_for_adapter("sqlite3")


def test_later_registration_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    """A later, overlapping pattern takes precedence."""

    class CustomTasks(postgis_tasks.PostGISDatabaseTasks):
        pass

    monkeypatch.setattr(registry, "_registry", list(registry._registry))
    registry.register_task(r"^postgis$", CustomTasks)
    assert registry.class_for_adapter("postgis") is CustomTasks
    assert registry.class_for_adapter("postgresql") is (
        database_tasks.PostgreSQLDatabaseTasks
    )


def test_task_for_passes_connector() -> None:
    """task_for() builds the task with the given connector."""
    recorder = database.DryRunConnection()
    configuration = db_models.DatabaseConfiguration(database="gis", username="gis")
    tasks = registry.task_for(configuration, recorder.connector())
    assert isinstance(tasks, postgis_tasks.PostGISDatabaseTasks)
    assert tasks.connection is recorder
