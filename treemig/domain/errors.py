"""Error types for the batch migration pipeline.

All errors inherit from TreeMigError. Each carries the fields the UI needs
to explain the failure next to the item it belongs to.
"""

from pathlib import Path
from typing import Optional


class TreeMigError(Exception):
    """Base exception for all treemig failures."""
    pass


class ConfigValidationError(TreeMigError):
    """Raised when a job configuration file cannot be read or is malformed.

    Stored on the item instead of a configuration; never retried.
    """

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Invalid config {self.path.name}: {reason}")


class MigrationError(TreeMigError):
    """Raised by the migration engine. Fatal for the job."""

    def __init__(self, reason: str, returncode: Optional[int] = None):
        self.reason = reason
        self.returncode = returncode
        super().__init__(reason)


class EncodingConfigError(TreeMigError):
    """Raised when an encoding configuration cannot be derived from a job."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cannot build video config: {reason}")


class EncodingError(TreeMigError):
    """Raised when the video encoder fails. Logged, never fatal for the job."""

    def __init__(self, reason: str, returncode: Optional[int] = None):
        self.reason = reason
        self.returncode = returncode
        super().__init__(reason)


class SettingsError(TreeMigError):
    """Raised when the application settings file is unusable."""
    pass
