"""Tests for the postgis-setup command line interface.

Settings are replaced through monkeypatching config.get_settings, and the
SQL commands run in dry-run mode so no database is needed.
"""

from __future__ import annotations

import pytest

from postgis_setup import cli
from postgis_setup.core import config


def _use_settings(monkeypatch: pytest.MonkeyPatch, **values: object) -> None:
    settings = config.Settings(
        database="gis",
        username="gis",
        su_username="postgres",
        schema_search_path="public,postgis",
        setup="extension",
        **values,
    )
    monkeypatch.setattr(config, "get_settings", lambda: settings)


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    """Running without a command prints help and fails."""
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_create_dry_run_prints_sql(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """create --dry-run prints each statement terminated by a semicolon."""
    _use_settings(monkeypatch)
    assert cli.main(["create", "--dry-run"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "CREATE DATABASE \"gis\" ENCODING = 'utf8' OWNER = \"gis\";"
    assert 'CREATE EXTENSION IF NOT EXISTS "postgis" SCHEMA "postgis";' in lines


def test_setup_gis_dry_run_without_su(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Without a superuser no GRANT statements are printed."""
    _use_settings(monkeypatch)
    settings = config.get_settings()
    settings.su_username = None
    assert cli.main(["setup-gis", "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "CREATE EXTENSION" in out
    assert "GRANT" not in out


def test_drop_requires_confirmation(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """drop refuses to run without --yes-i-am-sure."""
    _use_settings(monkeypatch)
    assert cli.main(["drop"]) == 1
    assert "--yes-i-am-sure" in capsys.readouterr().err


def test_purge_dry_run_needs_no_confirmation(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Previewing a purge is allowed without confirmation."""
    _use_settings(monkeypatch)
    assert cli.main(["purge", "--dry-run"]) == 0
    assert capsys.readouterr().out.startswith('DROP DATABASE IF EXISTS "gis";')


def test_configuration_error_exit_status(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Provisioning errors print a message and exit with status 1."""
    _use_settings(monkeypatch, postgis_extension="postgis,postgis_topology")
    assert cli.main(["setup-gis", "--dry-run"]) == 1
    err = capsys.readouterr().err
    assert "setup-gis failed" in err
    assert "topology" in err


def test_setup_gis_unsupported_adapter(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Plain PostgreSQL adapters have no GIS setup."""
    _use_settings(monkeypatch, adapter="postgresql")
    assert cli.main(["setup-gis", "--dry-run"]) == 1
    assert "does not support GIS setup" in capsys.readouterr().err


def test_dry_run_prints_bound_parameters(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Previewed statements are runnable, with parameters inlined."""
    _use_settings(monkeypatch)
    assert cli.main(["setup-gis", "--dry-run"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert (
        "SELECT 1 FROM pg_catalog.pg_namespace WHERE nspname = 'postgis';" in lines
    )
    assert not any("%s" in line for line in lines)
