"""Tests for the DatabaseConfiguration record.

Covers search path normalisation from strings and lists, and merge()
producing independent copies for the derived connection configurations.
"""

from __future__ import annotations

from postgis_setup.db import models as db_models


def test_search_path_from_string() -> None:
    """Comma-separated search paths are split and stripped."""
    configuration = db_models.DatabaseConfiguration(
        database="gis",
        username="gis",
        schema_search_path=" public , postgis,topology ",
    )
    assert configuration.search_path_list() == ["public", "postgis", "topology"]
    assert configuration.search_path_string() == "public,postgis,topology"


def test_search_path_from_list() -> None:
    """List search paths keep their order."""
    configuration = db_models.DatabaseConfiguration(
        database="gis",
        username="gis",
        schema_search_path=["postgis", " public"],
    )
    assert configuration.search_path_list() == ["postgis", "public"]


def test_search_path_empty() -> None:
    """A missing search path yields an empty list."""
    configuration = db_models.DatabaseConfiguration(database="gis", username="gis")
    assert configuration.search_path_list() == []
    assert configuration.search_path_string() == ""


def test_merge_returns_copy() -> None:
    """merge() leaves the original untouched."""
    configuration = db_models.DatabaseConfiguration(
        database="gis",
        username="gis",
        su_username="postgres",
    )
    master = configuration.merge(database="postgres", username="postgres")
    assert master.database == "postgres"
    assert master.username == "postgres"
    assert master.su_username == "postgres"
    assert configuration.database == "gis"
    assert configuration.username == "gis"
