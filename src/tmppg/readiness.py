"""Wait for the server to accept connections, racing against its exit."""

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from tmppg.config import TmpPgConfig, resolve_command
from tmppg.errors import TmpPgError
from tmppg.supervisor import describe_returncode, run_tool

if TYPE_CHECKING:
    from tmppg.oneshot import OneShot
    from tmppg.supervisor import ExitStatus

logger = logging.getLogger(__name__)

# pg_isready exit codes
PQPING_OK = 0
PQPING_REJECT = 1
PQPING_NO_RESPONSE = 2
PQPING_NO_ATTEMPT = 3


class ReadinessError(TmpPgError):
    """Raised when pg_isready reports a fatal condition or cannot be run."""


class ReadinessTimeoutError(ReadinessError):
    """Raised when the server is not ready within ``server.ready_timeout_s``."""


class UnexpectedExitError(TmpPgError):
    """Raised when the server exits before it became ready."""

    def __init__(self, status: ExitStatus) -> None:
        super().__init__(f"postgres exited unexpectedly: {status.describe()}")
        self.status = status


class Readiness(Enum):
    """Outcome of a single pg_isready probe."""

    READY = "ready"
    NOT_READY = "not_ready"
    FATAL = "fatal"


def classify(returncode: int) -> Readiness:
    if returncode == PQPING_OK:
        return Readiness.READY
    if returncode in (PQPING_REJECT, PQPING_NO_RESPONSE):
        return Readiness.NOT_READY
    return Readiness.FATAL


def probe(socket_dir: Path, config: TmpPgConfig) -> int:
    """Run pg_isready once against the socket in ``socket_dir``.

    Returns:
        pg_isready's exit code.

    Raises:
        ReadinessError: If pg_isready could not be launched.
    """
    args = [
        *resolve_command(config, "pg_isready"),
        "-q",
        "-h",
        str(socket_dir),
        "-d",
        config.server.database,
    ]
    try:
        return run_tool(args, config.output)
    except OSError as e:
        raise ReadinessError(f"pg_isready: {e}") from e


def wait_until_ready(
    socket_dir: Path, exit_signal: OneShot[ExitStatus], config: TmpPgConfig
) -> None:
    """
    Poll pg_isready until the server accepts connections.

    Before every probe the loop waits one poll interval on ``exit_signal``;
    if the server has exited by then, polling stops at once.  "Rejecting"
    and "no response" are retried without limit unless
    ``server.ready_timeout_s`` is set.

    Args:
        socket_dir: Directory holding the server's Unix socket.
        exit_signal: Published by the exit monitor when the server exits.
        config: Configuration with poll interval, timeout and database name.

    Raises:
        UnexpectedExitError: If the server exited before becoming ready.
        ReadinessError: If pg_isready reports a fatal code or cannot be run.
        ReadinessTimeoutError: If the optional deadline passes.
    """
    interval = config.server.poll_interval_ms / 1000.0
    timeout = config.server.ready_timeout_s
    deadline = None if timeout is None else time.monotonic() + timeout

    while True:
        status = exit_signal.wait(interval)
        if status is not None:
            raise UnexpectedExitError(status)

        returncode = probe(socket_dir, config)
        outcome = classify(returncode)
        if outcome is Readiness.READY:
            logger.info("PostgreSQL is ready")
            return
        if outcome is Readiness.FATAL:
            raise ReadinessError(f"pg_isready: {describe_returncode(returncode)}")

        logger.info("waiting for PostgreSQL to be ready")
        if deadline is not None and time.monotonic() >= deadline:
            raise ReadinessTimeoutError(f"PostgreSQL not ready after {timeout} seconds")
