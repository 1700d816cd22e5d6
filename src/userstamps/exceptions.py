"""Exception hierarchy for userstamps.

Only configuration problems and unusable migration calls raise. Everything
else (missing columns, no current user, disabled settings) simply skips the
stamp.
"""


class UserstampsError(Exception):
    """Base exception for all userstamps errors."""


class ConfigurationError(UserstampsError):
    """Raised when global or per-model configuration is invalid."""


class MigrationError(UserstampsError):
    """Raised when a migration helper cannot work out which table to change."""
