"""Configuration loading and resolution for tmppg."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


OUTPUT_MODES = ("discard", "inherit", "log")


@dataclass
class BinariesConfig:
    """Commands used to drive PostgreSQL.

    Each command is an argv prefix; the tool's own arguments are appended.
    """

    initdb: list[str] = field(default_factory=lambda: ["initdb"])
    postgres: list[str] = field(default_factory=lambda: ["postgres"])
    pg_isready: list[str] = field(default_factory=lambda: ["pg_isready"])
    bin_dir: str | None = None  # e.g. /usr/lib/postgresql/16/bin


@dataclass
class ServerConfig:
    """Server startup and readiness behavior."""

    database: str = "postgres"
    poll_interval_ms: int = 100
    ready_timeout_s: float | None = None  # None waits forever
    settings: dict[str, str] = field(default_factory=dict)


@dataclass
class ScratchConfig:
    """Location of the per-run data directory."""

    parent: str | None = None  # None uses the system temp directory
    prefix: str = "tmppg"


@dataclass
class OutputConfig:
    """Where the output of initdb, postgres and pg_isready goes.

    ``mode`` is one of ``discard`` (default), ``inherit`` (our own stdout and
    stderr) or ``log`` (the ``tmppg.postgres`` logger at ``level``).  Setting
    ``stdout`` or ``stderr`` to a file object or any object with a
    ``write(str)`` method overrides ``mode`` for that stream.
    """

    mode: str = "discard"
    level: str = "INFO"
    stdout: Any = None
    stderr: Any = None


@dataclass
class TmpPgConfig:
    """Complete tmppg configuration."""

    binaries: BinariesConfig = field(default_factory=BinariesConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    scratch: ScratchConfig = field(default_factory=ScratchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def load_config(
    project_path: Path | None = None, cli_overrides: dict[str, Any] | None = None
) -> TmpPgConfig:
    """
    Load configuration with priority order (highest to lowest):
    1. CLI args (via cli_overrides)
    2. .tmppg.toml in project root
    3. ~/.config/tmppg/config.toml (user-global)
    4. Built-in defaults

    Args:
        project_path: Directory to look for .tmppg.toml in
        cli_overrides: Dictionary of CLI overrides (e.g., {"output": {"mode": "log"}})

    Returns:
        Fully resolved TmpPgConfig
    """
    config = TmpPgConfig()

    user_config_path = Path.home() / ".config" / "tmppg" / "config.toml"
    if user_config_path.exists():
        _merge_config_from_file(config, user_config_path)

    if project_path:
        project_config_path = project_path / ".tmppg.toml"
        if project_config_path.exists():
            _merge_config_from_file(config, project_config_path)

    if cli_overrides:
        _merge_config_from_dict(config, cli_overrides)

    if config.output.mode not in OUTPUT_MODES:
        raise ValueError(
            f"Invalid output mode {config.output.mode!r} (expected one of {', '.join(OUTPUT_MODES)})"
        )

    return config


def _merge_config_from_file(config: TmpPgConfig, path: Path) -> None:
    """Load TOML file and merge into existing config."""
    with path.open("rb") as f:
        data = tomllib.load(f)
    _merge_config_from_dict(config, data)


def _merge_config_from_dict(config: TmpPgConfig, data: dict[str, Any]) -> None:
    """Merge dictionary data into config object."""
    if "binaries" in data:
        bin_data = data["binaries"]
        for name in ("initdb", "postgres", "pg_isready"):
            if name in bin_data:
                setattr(config.binaries, name, _as_argv(bin_data[name]))
        if "bin_dir" in bin_data:
            config.binaries.bin_dir = bin_data["bin_dir"]

    if "server" in data:
        server_data = data["server"]
        if "database" in server_data:
            config.server.database = server_data["database"]
        if "poll_interval_ms" in server_data:
            config.server.poll_interval_ms = server_data["poll_interval_ms"]
        if "ready_timeout_s" in server_data:
            config.server.ready_timeout_s = server_data["ready_timeout_s"]
        if "settings" in server_data:
            config.server.settings.update(
                {str(k): str(v) for k, v in server_data["settings"].items()}
            )

    if "scratch" in data:
        scratch_data = data["scratch"]
        if "parent" in scratch_data:
            config.scratch.parent = scratch_data["parent"]
        if "prefix" in scratch_data:
            config.scratch.prefix = scratch_data["prefix"]

    if "output" in data:
        output_data = data["output"]
        if "mode" in output_data:
            config.output.mode = output_data["mode"]
        if "level" in output_data:
            config.output.level = output_data["level"]


def _as_argv(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [value]
    return [str(part) for part in value]


def resolve_command(config: TmpPgConfig, tool: str) -> list[str]:
    """
    Get the argv prefix for one of the PostgreSQL tools.

    A bare tool name (no directory component) is looked up in
    ``binaries.bin_dir`` when that is set; otherwise it is left for PATH
    resolution.

    Args:
        config: The loaded configuration
        tool: "initdb", "postgres" or "pg_isready"

    Returns:
        Command prefix as a new list
    """
    command = list(getattr(config.binaries, tool))
    bin_dir = config.binaries.bin_dir
    if bin_dir and len(command) == 1 and Path(command[0]).name == command[0]:
        command[0] = str(Path(bin_dir) / command[0])
    return command
