"""Scratch directory that holds one server's data files and socket."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from tmppg.errors import TmpPgError

logger = logging.getLogger(__name__)


class SetupError(TmpPgError):
    """Raised when the scratch directory cannot be created."""


class CleanupError(TmpPgError):
    """Raised when the scratch directory cannot be removed."""


def create_scratch_dir(parent: str | Path | None = None, prefix: str = "tmppg") -> Path:
    """Create a fresh, uniquely named directory readable only by us.

    Args:
        parent: Directory to create it in (default: system temp directory).
        prefix: Name prefix for the directory.

    Returns:
        Absolute path of the new directory.

    Raises:
        SetupError: If the directory could not be created.
    """
    try:
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=parent)).resolve()
    except OSError as e:
        raise SetupError(f"setup temporary directory: {e}") from e
    logger.debug("Created scratch directory %s", path)
    return path


def remove_scratch_dir(path: Path) -> None:
    """Recursively delete a scratch directory.

    A directory that no longer exists is treated as already removed.

    Raises:
        CleanupError: If deletion failed for any other reason.
    """
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        logger.debug("Scratch directory %s already removed", path)
        return
    except OSError as e:
        raise CleanupError(f"remove temporary directory {path}: {e}") from e
    logger.debug("Removed scratch directory %s", path)
