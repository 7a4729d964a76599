"""Error taxonomy for the upload relay."""
from __future__ import annotations

from typing import Optional


class RelayError(RuntimeError):
    """Base class for every failure the relay reports to its caller."""


class ConfigurationError(RelayError):
    """Raised when the request is missing its file or required config fields."""


class ExtractionError(RelayError):
    """Raised when embedded metadata could not be read."""


class ProcessError(ExtractionError):
    """The inspection process could not run or produced no usable output."""


class ParseError(ExtractionError):
    """The inspection output did not contain a readable JSON payload."""


class CommitError(RelayError):
    """Raised when the host rejected the write."""


class HostError(RelayError):
    """Failure reported by the repository host."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HostNotFoundError(HostError):
    """The requested path does not exist on the host."""


class HostAuthError(HostError):
    """The token was rejected or lacks access to the repository."""


class HostLookupError(HostError):
    """The dedup lookup failed for a reason other than absence."""
