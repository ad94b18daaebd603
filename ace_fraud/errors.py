"""Exception types raised by the ACE fraud detection engine."""

from typing import List, Optional


class FraudDetectionError(Exception):
    """Base class for engine errors."""


class TransactionValidationError(FraudDetectionError, ValueError):
    """Raised when an input transaction is malformed."""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


class ExperimentConfigError(FraudDetectionError, ValueError):
    """Raised when an experiment is requested without modes or data."""


class ConfigurationError(FraudDetectionError, ValueError):
    """Raised when an environment setting cannot be parsed."""


class PlaybookConflictError(FraudDetectionError):
    """Raised when a playbook update was computed against a stale version."""

    def __init__(self, expected_version: int, actual_version: int):
        super().__init__(
            f"Playbook changed since version {expected_version} "
            f"(now at {actual_version})"
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class PlaybookFrozenError(FraudDetectionError):
    """Raised when a frozen (offline) playbook is asked to change."""


class AnalysisNotFoundError(FraudDetectionError, LookupError):
    """Raised when a stored analysis or analyzer result does not exist."""


class FeedbackError(FraudDetectionError, ValueError):
    """Raised when feedback targets a non-online analysis or was already applied."""
