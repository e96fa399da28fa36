"""
Error taxonomy shared by every component.

Each error maps to one recovery policy:
- DataUnavailable: fall back to a static dataset or skip the subject
- AdvisorFailure: fall back to rule-based logic with reduced confidence
- NotFound: always surfaced to the caller
- ValidationError: rejected before any state mutation
- PersistenceFailure: fatal for the operation, no partial writes
"""


class AutopilotError(Exception):
    """Base class for all autopilot errors."""


class DataUnavailable(AutopilotError):
    """Roster or ranking data could not be fetched or came back empty."""

    def __init__(self, message: str, source: str = "unknown", retryable: bool = True):
        super().__init__(message)
        self.source = source
        self.retryable = retryable


class AdvisorFailure(AutopilotError):
    """The advisor errored, timed out or returned unusable output."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class NotFound(AutopilotError):
    """A referenced record does not exist."""


class ValidationError(AutopilotError):
    """Malformed input rejected before any state change."""


class PersistenceFailure(AutopilotError):
    """A durable write failed; existing state is left untouched."""


class ConfigurationError(AutopilotError):
    """Unrecoverable configuration problem (exit non-zero)."""
