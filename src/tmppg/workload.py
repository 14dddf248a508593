"""Run a command against a temporary PostgreSQL server."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence
from pathlib import Path

from tmppg.config import TmpPgConfig
from tmppg.errors import TmpPgError
from tmppg.lifecycle import with_postgres
from tmppg.supervisor import describe_returncode

logger = logging.getLogger(__name__)


class WorkloadError(TmpPgError):
    """Raised when the wrapped command fails or cannot be launched."""

    def __init__(self, command: Sequence[str], reason: str, returncode: int | None = None) -> None:
        super().__init__(f"{list(command)}: {reason}")
        self.command = list(command)
        self.returncode = returncode


def workload_env(socket_dir: Path) -> dict[str, str]:
    """Our environment plus PGHOST pointing at the socket directory.

    Everything else (PGUSER, PGDATABASE, ...) keeps libpq's defaults.
    See https://www.postgresql.org/docs/current/libpq-envars.html
    """
    env = dict(os.environ)
    env["PGHOST"] = str(socket_dir)
    return env


def run_workload(command: Sequence[str], socket_dir: Path) -> None:
    """Run ``command`` with stdio inherited and PGHOST set.

    Raises:
        WorkloadError: If the command exits non-zero or cannot be launched.
    """
    logger.debug("Running %s", list(command))
    try:
        completed = subprocess.run(list(command), env=workload_env(socket_dir), check=False)
    except OSError as e:
        raise WorkloadError(command, str(e)) from e
    if completed.returncode != 0:
        raise WorkloadError(
            command, describe_returncode(completed.returncode), completed.returncode
        )


def run_with_postgres(command: Sequence[str], config: TmpPgConfig | None = None) -> None:
    """
    Run a command with a temporary PostgreSQL instance available.

    Connection information is passed through the standard PG* environment
    variables; only PGHOST is set.

    Args:
        command: argv of the command to run.
        config: Server configuration (defaults apply when omitted).

    Raises:
        ValueError: If ``command`` is empty.
        WorkloadError: If the command fails.
        TmpPgError: If the server could not be provided.
    """
    if not command:
        raise ValueError("No command given")
    with_postgres(lambda socket_dir: run_workload(command, socket_dir), config)
