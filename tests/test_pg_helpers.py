"""Unit tests for utilities in postgis_setup.utils.pg_helpers.

This module tests the PostgreSQL client command helpers:
    - Successful command execution (zero exit code) returns stdout
    - Failure handling and error message propagation (nonzero exit code)
    - libpq environment construction
    - pg_config share directory lookup and its fallback

Monkeypatching is used to avoid actual subprocess execution, ensuring tests
are isolated, fast, and reliable.
"""

import subprocess
from typing import Any

import pytest

from postgis_setup.core import errors
from postgis_setup.db import models as db_models
from postgis_setup.utils import pg_helpers


def _completed(
    returncode: int, stdout: str = "", stderr: str = ""
) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(
        args=[],
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
    )


def test_run_command_success(monkeypatch: pytest.MonkeyPatch) -> None:
    """Command with zero return code returns stdout."""

    def fake_run(*args: Any, **kwargs: Any) -> subprocess.CompletedProcess[str]:
        return _completed(0, stdout="ok\n")

    monkeypatch.setattr(pg_helpers.subprocess, "run", fake_run)
    assert pg_helpers.run_command(["echo", "ok"]) == "ok\n"


def test_run_command_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    """Command errors raise CommandError with message."""

    def fake_run(*args: Any, **kwargs: Any) -> subprocess.CompletedProcess[str]:
        return _completed(1, stderr="fail")

    monkeypatch.setattr(pg_helpers.subprocess, "run", fake_run)
    with pytest.raises(errors.CommandError, match="fail"):
        pg_helpers.run_command(["false"])


def test_run_command_failure_without_stderr(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """An empty stderr still yields a message."""
    monkeypatch.setattr(
        pg_helpers.subprocess, "run", lambda *a, **k: _completed(2)
    )
    with pytest.raises(errors.CommandError, match="Unknown command failure"):
        pg_helpers.run_command(["false"])


def test_run_command_merges_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Extra variables are layered over the process environment."""
    captured: dict[str, Any] = {}

    def fake_run(args: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        captured.update(kwargs)
        return _completed(0)

    monkeypatch.setenv("KEEP_ME", "1")
    monkeypatch.setattr(pg_helpers.subprocess, "run", fake_run)
    pg_helpers.run_command(["true"], env={"PGUSER": "gis"})
    assert captured["env"]["PGUSER"] == "gis"
    assert captured["env"]["KEEP_ME"] == "1"


def test_psql_env_only_sets_configured_values() -> None:
    """Unset host, port and password are not exported."""
    configuration = db_models.DatabaseConfiguration(database="gis", username="gis")
    assert pg_helpers.psql_env(configuration) == {"PGUSER": "gis"}


def test_pg_share_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    """pg_config output is stripped."""
    monkeypatch.setattr(
        pg_helpers.subprocess,
        "run",
        lambda *a, **k: _completed(0, stdout="/usr/share/postgresql/16\n"),
    )
    assert pg_helpers.pg_share_dir() == "/usr/share/postgresql/16"


def test_pg_share_dir_falls_back_on_failure(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failing pg_config falls back to /usr/share."""
    monkeypatch.setattr(
        pg_helpers.subprocess, "run", lambda *a, **k: _completed(1, stderr="x")
    )
    assert pg_helpers.pg_share_dir() == "/usr/share"


def test_pg_share_dir_falls_back_when_missing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A missing pg_config executable falls back to /usr/share."""

    def fake_run(*args: Any, **kwargs: Any) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError("pg_config")

    monkeypatch.setattr(pg_helpers.subprocess, "run", fake_run)
    assert pg_helpers.pg_share_dir("pg_config") == "/usr/share"
