"""Exception types raised across component boundaries.

Detector-level gaps (missing days, small samples, zero variance) are not
exceptions: they come back as ``None`` or an empty result.
"""


class DawnLedgerError(Exception):
    """Base class for dawnledger errors."""


class ConfigError(DawnLedgerError):
    """Invalid configuration value."""


class FetchError(DawnLedgerError):
    """Atmosphere provider unreachable or returned a non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SnapshotError(DawnLedgerError):
    """Persisted snapshot is unreadable or written by a newer schema."""
