"""PostgreSQL process supervision: initdb, server start, exit monitoring, SIGTERM.

Every tool tmppg launches (initdb, postgres, pg_isready) shares the same
output routing, configured through :class:`tmppg.config.OutputConfig`.  A sink
that has a real file descriptor is handed to the child directly; anything else
that can ``write(str)`` is fed line by line from a pipe by a relay thread.

The server itself gets exactly one background thread, the exit monitor, which
blocks in ``Popen.wait()`` and publishes the outcome once to
:attr:`ServerProcess.exit_signal`.
"""

from __future__ import annotations

import logging
import signal
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from tmppg.config import OutputConfig, TmpPgConfig, resolve_command
from tmppg.errors import TmpPgError
from tmppg.oneshot import OneShot

logger = logging.getLogger(__name__)

# Logger receiving server tool output when output.mode == "log"
OUTPUT_LOGGER_NAME = "tmppg.postgres"


class InitializationError(TmpPgError):
    """Raised when initdb fails or cannot be launched."""


class StartError(TmpPgError):
    """Raised when the postgres server process cannot be launched."""


class SignalError(TmpPgError):
    """Raised when SIGTERM cannot be delivered to the server."""


def describe_returncode(returncode: int) -> str:
    """Render a Popen return code as ``exit status N`` or ``signal: NAME``."""
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"signal: {name}"
    return f"exit status {returncode}"


@dataclass(frozen=True)
class ExitStatus:
    """How the server process ended.

    ``returncode`` is None when waiting on the process failed; ``error`` then
    holds the exception raised by the wait.
    """

    returncode: int | None
    error: BaseException | None = None

    @property
    def clean(self) -> bool:
        return self.error is None and self.returncode == 0

    @property
    def wait_failed(self) -> bool:
        return self.error is not None

    def describe(self) -> str:
        if self.error is not None:
            return f"wait failed: {self.error}"
        if self.returncode is None:
            return "exit status unknown"
        return describe_returncode(self.returncode)


class LogOutput:
    """Output sink that forwards each line to a logger, tagged with its stream."""

    def __init__(self, logger: logging.Logger, stream: str, level: int = logging.INFO) -> None:
        self.logger = logger
        self.stream = stream
        self.level = level

    def write(self, text: str) -> int:
        for line in text.splitlines():
            if line:
                self.logger.log(self.level, "[%s] %s", self.stream, line)
        return len(text)


def resolve_sinks(output: OutputConfig) -> tuple[Any, Any]:
    """Turn an OutputConfig into (stdout, stderr) sinks for child processes."""
    if output.mode == "inherit":
        defaults: tuple[Any, Any] = (None, None)
    elif output.mode == "log":
        level = logging.getLevelName(output.level.upper())
        if not isinstance(level, int):
            level = logging.INFO
        out_logger = logging.getLogger(OUTPUT_LOGGER_NAME)
        defaults = (LogOutput(out_logger, "stdout", level), LogOutput(out_logger, "stderr", level))
    else:
        defaults = (subprocess.DEVNULL, subprocess.DEVNULL)

    stdout = output.stdout if output.stdout is not None else defaults[0]
    stderr = output.stderr if output.stderr is not None else defaults[1]
    return stdout, stderr


def _popen_target(sink: Any) -> Any:
    if sink is None or isinstance(sink, int):
        return sink
    try:
        sink.fileno()
    except (AttributeError, OSError):
        return subprocess.PIPE
    if hasattr(sink, "flush"):
        sink.flush()
    return sink


def _relay(pipe: IO[bytes], sink: Any) -> None:
    with pipe:
        try:
            for raw in iter(pipe.readline, b""):
                sink.write(raw.decode("utf-8", errors="replace"))
        except Exception:
            logger.exception("output sink %r failed; discarding remaining output", sink)
            # Keep reading so the child never blocks on a full pipe
            while pipe.read(65536):
                pass


def _start_relay(pipe: IO[bytes], sink: Any) -> threading.Thread:
    thread = threading.Thread(target=_relay, args=(pipe, sink), daemon=True, name="OutputRelay")
    thread.start()
    return thread


def _spawn(
    args: list[str], output: OutputConfig, start_new_session: bool = False
) -> tuple[subprocess.Popen[bytes], list[threading.Thread]]:
    """Launch a tool with its output routed per ``output``.

    Raises:
        OSError: If the process could not be launched.
    """
    stdout_sink, stderr_sink = resolve_sinks(output)
    process = subprocess.Popen(
        args,
        stdin=subprocess.DEVNULL,
        stdout=_popen_target(stdout_sink),
        stderr=_popen_target(stderr_sink),
        start_new_session=start_new_session,
    )
    relays = []
    if process.stdout is not None:
        relays.append(_start_relay(process.stdout, stdout_sink))
    if process.stderr is not None:
        relays.append(_start_relay(process.stderr, stderr_sink))
    return process, relays


def run_tool(args: list[str], output: OutputConfig) -> int:
    """Run a tool to completion and return its exit code.

    Raises:
        OSError: If the tool could not be launched.
    """
    process, relays = _spawn(args, output)
    try:
        return process.wait()
    finally:
        for relay in relays:
            relay.join()


def initialize_data_dir(data_dir: Path, config: TmpPgConfig) -> None:
    """Run initdb against ``data_dir``.

    Raises:
        InitializationError: If initdb exits non-zero or cannot be launched.
    """
    args = [
        *resolve_command(config, "initdb"),
        "-D",
        str(data_dir),
        "--no-sync",
        "--no-instructions",
    ]
    logger.info("Initializing database cluster in %s", data_dir)
    try:
        returncode = run_tool(args, config.output)
    except OSError as e:
        logger.debug("initdb failed with arguments %s", args)
        raise InitializationError(f"initdb: {e}") from e
    if returncode != 0:
        logger.debug("initdb failed with arguments %s", args)
        raise InitializationError(f"initdb: {describe_returncode(returncode)}")


def server_command(data_dir: Path, config: TmpPgConfig) -> list[str]:
    """Build the postgres command line.

    TCP listening is disabled; the only listener is a Unix socket inside
    ``data_dir``.  Durability is traded for speed since the cluster is
    thrown away afterwards.
    """
    args = [
        *resolve_command(config, "postgres"),
        "-D",
        str(data_dir),
        "--listen_addresses=",
        f"--unix_socket_directories={data_dir}",
        "--fsync=off",
        "--synchronous_commit=off",
        "--full_page_writes=off",
    ]
    args.extend(f"--{name}={value}" for name, value in config.server.settings.items())
    return args


class ServerProcess:
    """
    A running postgres server and its exit monitor.

    ``exit_signal`` is published exactly once, by the monitor thread, when
    the process has exited and its output has been drained.
    """

    def __init__(
        self, process: subprocess.Popen[bytes], relays: list[threading.Thread] | None = None
    ) -> None:
        self.process = process
        self.exit_signal: OneShot[ExitStatus] = OneShot()
        self._relays = relays or []
        self._monitor = threading.Thread(
            target=self._monitor_exit,
            daemon=True,
            name="PostgresExitMonitor",
        )
        self._monitor.start()

    @classmethod
    def start(cls, data_dir: Path, config: TmpPgConfig) -> ServerProcess:
        """Launch postgres on ``data_dir`` and begin monitoring it.

        Raises:
            StartError: If the process could not be launched.
        """
        args = server_command(data_dir, config)
        try:
            # Own session so a terminal Ctrl-C reaches us, not the server
            process, relays = _spawn(args, config.output, start_new_session=True)
        except OSError as e:
            logger.debug("postgres failed with arguments %s", args)
            raise StartError(f"start postgres: {e}") from e
        logger.info("Started postgres (pid %d)", process.pid)
        return cls(process, relays)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return not self.exit_signal.is_set()

    def _monitor_exit(self) -> None:
        try:
            status = ExitStatus(self.process.wait())
        except Exception as e:
            status = ExitStatus(None, e)
        else:
            # Pipes close once the process is gone
            for relay in self._relays:
                relay.join()
        logger.debug("postgres (pid %d) exited: %s", self.process.pid, status.describe())
        self.exit_signal.set(status)

    def terminate(self) -> None:
        """Ask the server to shut down (SIGTERM, postgres' "smart" shutdown).

        Raises:
            SignalError: If the signal could not be delivered.
        """
        try:
            self.process.send_signal(signal.SIGTERM)
        except OSError as e:
            raise SignalError(f"failed to send SIGTERM to postgres: {e}") from e
