"""Throwaway PostgreSQL servers for tests and one-off commands."""

from tmppg.config import TmpPgConfig, load_config
from tmppg.errors import TmpPgError
from tmppg.lifecycle import temporary_postgres, with_postgres
from tmppg.workload import run_with_postgres

__version__ = "0.1.0"

__all__ = [
    "TmpPgConfig",
    "TmpPgError",
    "__version__",
    "load_config",
    "run_with_postgres",
    "temporary_postgres",
    "with_postgres",
]
