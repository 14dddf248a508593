"""pytest fixtures providing a temporary PostgreSQL server.

Enable in a conftest.py with::

    pytest_plugins = ["tmppg.pytest_plugin"]

Override ``tmppg_config`` to change binaries or server settings.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from tmppg.config import TmpPgConfig, load_config
from tmppg.lifecycle import temporary_postgres


@pytest.fixture(scope="session")
def tmppg_config(pytestconfig: pytest.Config) -> TmpPgConfig:
    """Configuration loaded from the test run's root directory."""
    return load_config(Path(pytestconfig.rootpath))


@pytest.fixture
def tmppg_socket_dir(tmppg_config: TmpPgConfig) -> Iterator[Path]:
    """A fresh server for this test; yields its socket directory."""
    with temporary_postgres(tmppg_config) as socket_dir:
        yield socket_dir


@pytest.fixture
def tmppg_env(tmppg_socket_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Like ``tmppg_socket_dir`` with PGHOST exported for libpq clients."""
    monkeypatch.setenv("PGHOST", str(tmppg_socket_dir))
    return tmppg_socket_dir
