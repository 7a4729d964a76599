"""
ghrelay - relay a single file into a GitHub repository.

Each upload is checked against the repository first, its embedded metadata
(description, title, comments, tags) is read, and the file is committed via
the contents API unless it is already there. The response carries the raw
content URL either way.

Usage:
    from ghrelay import UploadOrchestrator

    config = {"token": "...", "username": "octo", "repo": "assets"}
    async with UploadOrchestrator() as relay:
        outcome = await relay.upload(staged_path, "a.jpg", config)

    outcome.result.remote_url
    # https://raw.githubusercontent.com/octo/assets/main/images/a.jpg
"""
from .errors import (
    CommitError,
    ConfigurationError,
    ExtractionError,
    HostError,
    ParseError,
    ProcessError,
    RelayError,
)
from .models import (
    CommitResult,
    ErrorResponse,
    Metadata,
    RelayConfig,
    RelaySettings,
    UploadOutcome,
    UploadRequest,
    UploadStatus,
)
from .orchestrator import UploadOrchestrator
from .services import (
    ExifMetadataProvider,
    GitHubClient,
    ShellMetadataProvider,
    stage_upload,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    # Models
    "CommitResult",
    "ErrorResponse",
    "Metadata",
    "RelayConfig",
    "RelaySettings",
    "UploadOutcome",
    "UploadRequest",
    "UploadStatus",
    # Errors
    "RelayError",
    "ConfigurationError",
    "ExtractionError",
    "ProcessError",
    "ParseError",
    "CommitError",
    "HostError",
    # Services
    "ExifMetadataProvider",
    "GitHubClient",
    "ShellMetadataProvider",
    "stage_upload",
]
