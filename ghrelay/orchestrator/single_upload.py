"""Single file upload handler: dedup, extract, commit."""
from __future__ import annotations

import logging
from typing import Optional

from ..errors import ExtractionError, HostLookupError
from ..models import (
    CommitResult,
    DedupStatus,
    Metadata,
    RelaySettings,
    UploadRequest,
    UploadStatus,
)
from ..protocols import IMetadataProvider, IRepositoryHost
from ..use_cases.commit import ContentCommitter
from ..use_cases.deduplication import DedupChecker

logger = logging.getLogger(__name__)


class SingleUploadHandler:
    """Runs one request against an open host client."""

    def __init__(
        self,
        metadata_provider: IMetadataProvider,
        settings: Optional[RelaySettings] = None,
    ):
        """
        Initialize single upload handler.

        Args:
            metadata_provider: IMetadataProvider used for every request
            settings: RelaySettings (raw host, degradation switches)
        """
        self._metadata = metadata_provider
        self._settings = settings or RelaySettings()

    async def process(self, request: UploadRequest, host: IRepositoryHost) -> CommitResult:
        """
        Dedup, then extract, then commit unless the file is already there.

        Raises:
            HostLookupError: existence could not be determined
            ExtractionError: metadata unreadable and metadata is required
            CommitError: host rejected the write
        """
        config = request.config
        name = request.original_filename
        path = config.target_path(name)

        dedup = await DedupChecker(host).check(config.owner, config.repo, path, config.branch)
        if dedup.status == DedupStatus.ERROR:
            if not self._settings.optimistic_lookup:
                raise HostLookupError(f"Could not check {path}: {dedup.detail}")
            logger.warning("Treating failed lookup of %s as absent: %s", path, dedup.detail)

        metadata = await self._extract(request)
        remote_url = config.raw_url(path, self._settings.raw_host)

        if dedup.found:
            return CommitResult(
                filename=name,
                local_path=str(request.local_path),
                metadata=metadata,
                remote_url=remote_url,
                message=f"{name} already exists in repository, using existing file",
                status=UploadStatus.EXISTING,
            )

        await ContentCommitter(host).commit(
            config.owner,
            config.repo,
            path,
            name,
            request.local_path,
            config.branch,
        )
        return CommitResult(
            filename=name,
            local_path=str(request.local_path),
            metadata=metadata,
            remote_url=remote_url,
            message=f"Successfully uploaded {name} to GitHub",
            status=UploadStatus.UPLOADED,
        )

    async def _extract(self, request: UploadRequest) -> Metadata:
        try:
            return await self._metadata.extract(request.local_path, request.request_id)
        except ExtractionError as exc:
            if self._settings.metadata_required:
                raise
            logger.warning(
                "Metadata extraction failed for %s, continuing without it: %s",
                request.original_filename,
                exc,
            )
            return Metadata.empty()
