"""Core orchestrator - coordinates the upload-to-commit pipeline."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from ..errors import ConfigurationError, HostError, RelayError
from ..models import (
    RelayConfig,
    RelaySettings,
    UploadOutcome,
    UploadRequest,
    new_request_id,
)
from ..protocols import IMetadataProvider
from ..services.api_client import GitHubClient
from ..services.metadata import default_metadata_provider
from ..utils.cleanup import remove_quietly
from .single_upload import SingleUploadHandler

logger = logging.getLogger(__name__)

ConfigPayload = Union[str, bytes, Mapping[str, Any], None]
HostFactory = Callable[[str], Any]


def _describe_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


class UploadOrchestrator:
    """
    Orchestrates single-file uploads using injected services.

    The host client is opened per request because the token travels with
    the request; the metadata provider is shared.

    Usage:
        async with UploadOrchestrator() as relay:
            outcome = await relay.upload(staged_path, "a.jpg", config_json)
            print(outcome.as_dict())
    """

    def __init__(
        self,
        settings: Optional[RelaySettings] = None,
        host_factory: Optional[HostFactory] = None,
        metadata_provider: Optional[IMetadataProvider] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            settings: Process-wide settings
            host_factory: token -> async context manager yielding an IRepositoryHost
            metadata_provider: Defaults to default_metadata_provider(settings)
        """
        self._settings = settings or RelaySettings()
        self._host_factory = host_factory or self._github_client
        self._metadata_provider = metadata_provider
        self._single_handler: Optional[SingleUploadHandler] = None

    def _github_client(self, token: str) -> GitHubClient:
        return GitHubClient(
            token,
            base_url=self._settings.api_url,
            timeout=self._settings.http_timeout,
        )

    async def __aenter__(self):
        if self._metadata_provider is None:
            self._metadata_provider = default_metadata_provider(self._settings)
        self._single_handler = SingleUploadHandler(self._metadata_provider, self._settings)
        return self

    async def __aexit__(self, *args):
        self._single_handler = None

    @staticmethod
    def build_request(
        local_path: Optional[Union[str, Path]],
        original_filename: Optional[str],
        config_payload: ConfigPayload,
        request_id: Optional[str] = None,
    ) -> UploadRequest:
        """
        Validate what the delivery layer handed over.

        Raises:
            ConfigurationError: no file, or config missing/invalid
        """
        if not local_path or not original_filename:
            raise ConfigurationError("No file uploaded")
        path = Path(local_path)
        if not path.is_file():
            raise ConfigurationError(f"No file uploaded: {path} does not exist")

        config = RelayConfig.from_payload(config_payload)
        return UploadRequest(
            local_path=path,
            original_filename=original_filename,
            config=config,
            request_id=request_id or new_request_id(),
        )

    async def upload(
        self,
        local_path: Optional[Union[str, Path]],
        original_filename: Optional[str],
        config_payload: ConfigPayload,
        request_id: Optional[str] = None,
    ) -> UploadOutcome:
        """
        Relay one delivered file to the repository host.

        The local file is deleted before returning, whatever the outcome.
        """
        assert self._single_handler is not None, "Use 'async with' context."
        logger.info("=== Starting Upload Process === %s", original_filename)

        try:
            request = self.build_request(local_path, original_filename, config_payload, request_id)
            logger.debug("GitHub config parsed: %s", request.config.describe())

            async with self._host_factory(request.config.token) as host:
                result = await self._single_handler.process(request, host)

            logger.info("%s", result.message)
            return UploadOutcome.ok(result)
        except RelayError as exc:
            logger.error("Upload process error: %s", _describe_exception(exc))
            return UploadOutcome.fail(_describe_exception(exc))
        except Exception as exc:
            logger.error(
                "Unexpected upload error for %s: %s",
                original_filename,
                _describe_exception(exc),
                exc_info=True,
            )
            return UploadOutcome.fail(_describe_exception(exc))
        finally:
            remove_quietly(local_path, "local file")

    async def verify_access(self, config_payload: ConfigPayload) -> Dict[str, Any]:
        """
        Check that the configured token can read the repository.

        Raises:
            ConfigurationError: config missing/invalid
            HostError: repository unreachable or token rejected
        """
        config = RelayConfig.from_payload(config_payload)
        logger.info("Checking repository access: %s/%s", config.owner, config.repo)
        async with self._host_factory(config.token) as host:
            try:
                await host.get_repository(config.owner, config.repo)
            except HostError as exc:
                logger.error("GitHub verification error: %s", exc)
                raise
        logger.info("GitHub configuration successful")
        return {"success": True, "message": "GitHub configuration successful"}
