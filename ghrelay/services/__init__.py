"""Services for the relay."""
from .api_client import GitHubClient
from .metadata import ExifMetadataProvider, ShellMetadataProvider, default_metadata_provider
from .shell import ShellResult, ShellRunner
from .staging import stage_upload

__all__ = [
    "GitHubClient",
    "ExifMetadataProvider",
    "ShellMetadataProvider",
    "default_metadata_provider",
    "ShellResult",
    "ShellRunner",
    "stage_upload",
]
