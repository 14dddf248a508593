"""Scoped PostgreSQL instances with guaranteed, ordered teardown.

Order on the way out is always: SIGTERM the server, wait for the exit
monitor to report, then delete the scratch directory.  Deleting the
directory first would pull files out from under a server that is still
shutting down.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TypeVar

from tmppg.config import TmpPgConfig
from tmppg.readiness import wait_until_ready
from tmppg.scratch import CleanupError, create_scratch_dir, remove_scratch_dir
from tmppg.supervisor import ServerProcess, SignalError, initialize_data_dir

logger = logging.getLogger(__name__)

T = TypeVar("T")


def teardown(server: ServerProcess) -> None:
    """Stop the server and wait for it to exit.

    Every problem found here is logged, never raised: by the time teardown
    runs, the result of the invocation is already decided.
    """
    try:
        server.terminate()
    except SignalError as e:
        logger.error("%s", e)

    status = server.exit_signal.wait()
    if status is None:
        logger.error("no exit status reported for postgres")
    elif status.wait_failed:
        logger.error("failed to wait for postgres to exit: %s", status.error)
    elif not status.clean:
        logger.error("postgres exited with error: %s", status.describe())
    else:
        logger.debug("postgres shut down cleanly")


@contextlib.contextmanager
def temporary_postgres(config: TmpPgConfig | None = None) -> Iterator[Path]:
    """
    Run a throwaway PostgreSQL server for the duration of a ``with`` block.

    Yields the directory holding the server's Unix socket (usable as
    ``PGHOST``).  The server is stopped and the directory deleted however
    the block is left, including exceptions, ``KeyboardInterrupt`` and
    pytest's fail/skip outcomes.  If teardown itself is interrupted before
    postgres has exited, the directory is left in place and logged.

    Raises:
        SetupError: The scratch directory could not be created.
        InitializationError: initdb failed; no server was started.
        StartError: postgres could not be launched.
        UnexpectedExitError: postgres exited before it was ready.
        ReadinessError: pg_isready reported a fatal condition.
    """
    config = config or TmpPgConfig()
    scratch_dir = create_scratch_dir(config.scratch.parent, config.scratch.prefix)
    server: ServerProcess | None = None
    try:
        initialize_data_dir(scratch_dir, config)
        server = ServerProcess.start(scratch_dir, config)
        try:
            wait_until_ready(scratch_dir, server.exit_signal, config)
            yield scratch_dir
        finally:
            teardown(server)
    finally:
        if server is not None and server.running:
            # Teardown was interrupted before postgres exited
            logger.error(
                "postgres (pid %d) is still running; leaving temporary directory %s",
                server.pid,
                scratch_dir,
            )
        else:
            try:
                remove_scratch_dir(scratch_dir)
            except CleanupError as e:
                logger.error("failed to remove temporary directory: %s", e)


def with_postgres(fn: Callable[[Path], T], config: TmpPgConfig | None = None) -> T:
    """Call ``fn(socket_dir)`` while a temporary server is running."""
    with temporary_postgres(config) as socket_dir:
        return fn(socket_dir)
