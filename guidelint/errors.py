"""Exception types raised outside the analysis core.

Rules never raise: when a precondition cannot be evaluated they abstain.
These exceptions cover the edges of a run (configuration, front end).
"""


class GuidelintError(Exception):
    """Base class for guidelint failures.

    Attributes:
        message: Human-readable error description
        details: Dict with extra context for debugging
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConfigError(GuidelintError):
    """Raised when a configuration file is unreadable or ill-typed."""


class FrontendError(GuidelintError):
    """Raised when source cannot be lowered into a semantic tree."""
