"""Pre-write existence check against the repository host."""
from __future__ import annotations

import logging

from ..errors import HostError, HostNotFoundError
from ..models import DedupResult
from ..protocols import IRepositoryHost

logger = logging.getLogger(__name__)


class DedupChecker:
    """
    Ask the host whether ``path`` is already populated.

    Only a genuine 404 counts as absence and only a file entry counts as a
    hit; auth and transport failures, and directories at ``path``, come back
    as ``DedupResult.error`` so they are not mistaken for either.
    """

    def __init__(self, host: IRepositoryHost):
        self._host = host

    async def check(self, owner: str, repo: str, path: str, branch: str) -> DedupResult:
        logger.info("Checking if file exists: %s", path)
        try:
            content = await self._host.get_content(owner, repo, path, branch)
        except HostNotFoundError:
            logger.info("File does not exist in repository, proceeding with upload")
            return DedupResult.miss()
        except HostError as exc:
            logger.warning("Existence check failed for %s: %s", path, exc)
            return DedupResult.error(str(exc))

        if not isinstance(content, dict) or content.get("type") != "file":
            kind = content.get("type") if isinstance(content, dict) else "directory"
            logger.warning("%s exists in repository but is not a file (%s)", path, kind)
            return DedupResult.error(f"{path} exists in repository but is not a file ({kind})")
        logger.info("File already exists in repository")
        return DedupResult.hit(content)
