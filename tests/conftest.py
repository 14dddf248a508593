"""Shared fixtures: a TmpPgConfig wired to the fake PostgreSQL tools."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from tmppg.config import BinariesConfig, TmpPgConfig

HELPERS_DIR = Path(__file__).parent / "helpers"


def helper_command(script: str) -> list[str]:
    """argv prefix that runs one of the fake tools in tests/helpers."""
    return [sys.executable, str(HELPERS_DIR / script)]


@pytest.fixture(autouse=True)
def _isolate_fake_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test with the fake tools' switches unset."""
    for name in (
        "FAKE_INITDB_EXIT",
        "FAKE_POSTGRES_CRASH",
        "FAKE_POSTGRES_EXIT_CODE",
        "FAKE_POSTGRES_EXIT_DELAY",
        "FAKE_PG_ISREADY_CODES",
        "FAKE_PG_EVENTS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def events_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Event log the fake tools append to."""
    path = tmp_path / "events.log"
    monkeypatch.setenv("FAKE_PG_EVENTS", str(path))
    return path


@pytest.fixture
def scratch_parent(tmp_path: Path) -> Path:
    """Directory that holds scratch directories created during a test."""
    parent = tmp_path / "scratch"
    parent.mkdir()
    return parent


@pytest.fixture
def fake_config(scratch_parent: Path, events_file: Path) -> TmpPgConfig:
    """Configuration that drives the fake initdb/postgres/pg_isready."""
    config = TmpPgConfig()
    config.binaries = BinariesConfig(
        initdb=helper_command("fake_initdb.py"),
        postgres=helper_command("fake_postgres.py"),
        pg_isready=helper_command("fake_pg_isready.py"),
    )
    config.server.poll_interval_ms = 20
    config.scratch.parent = str(scratch_parent)
    return config
