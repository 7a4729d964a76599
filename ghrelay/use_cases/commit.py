"""Write a file to the repository host as a single commit."""
from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, Dict

from ..errors import CommitError, HostError
from ..protocols import IRepositoryHost

logger = logging.getLogger(__name__)


def commit_message(filename: str) -> str:
    return f"Upload {filename}"


def encode_file(path: Path) -> str:
    """Whole file, base64 as the contents API expects."""
    return base64.b64encode(Path(path).read_bytes()).decode("ascii")


class ContentCommitter:
    """Base64-encode a local file and create or update it on the host."""

    def __init__(self, host: IRepositoryHost):
        self._host = host

    async def commit(
        self,
        owner: str,
        repo: str,
        path: str,
        filename: str,
        local_path: Path,
        branch: str,
    ) -> Dict[str, Any]:
        """
        Commit ``local_path`` to ``path``.

        Raises:
            CommitError: file unreadable or host rejected the write (no retry)
        """
        try:
            content = await asyncio.to_thread(encode_file, local_path)
        except OSError as exc:
            raise CommitError(f"Could not read {filename}: {exc}") from exc

        logger.info("Uploading to GitHub: %s", path)
        try:
            ack = await self._host.create_or_update_content(
                owner,
                repo,
                path,
                commit_message(filename),
                content,
                branch,
            )
        except HostError as exc:
            raise CommitError(str(exc)) from exc

        logger.info("GitHub upload successful")
        return ack
