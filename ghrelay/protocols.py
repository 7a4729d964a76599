"""
Protocols (Interfaces) for Dependency Inversion.

Small, focused interfaces; the orchestrator only ever sees these.
"""
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable

from .models import Metadata


@runtime_checkable
class IRepositoryHost(Protocol):
    """Path-addressed read/write of repository content."""

    async def get_content(self, owner: str, repo: str, path: str, branch: str) -> Any:
        """Return the stored object, raise HostNotFoundError when absent."""
        ...

    async def create_or_update_content(
        self,
        owner: str,
        repo: str,
        path: str,
        message: str,
        content: str,
        branch: str,
    ) -> Dict[str, Any]:
        """Write base64 ``content`` at ``path`` as one commit."""
        ...

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        """Return repository details (used to verify access)."""
        ...


@runtime_checkable
class IMetadataProvider(Protocol):
    """Describe a file's embedded properties."""

    async def extract(self, local_path: Path, request_id: Optional[str] = None) -> Metadata:
        """Read metadata, raise ExtractionError on failure."""
        ...


@runtime_checkable
class IShellRunner(Protocol):
    """Run a command and capture its output."""

    async def run(self, argv: Sequence[str]) -> Any:
        """Return an object with ``returncode``, ``stdout`` and ``stderr``."""
        ...
