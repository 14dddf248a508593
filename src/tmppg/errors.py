"""Base exception shared by every tmppg failure."""


class TmpPgError(Exception):
    """Base exception for tmppg errors."""
