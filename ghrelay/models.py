"""
Models for the relay.

Immutable dataclasses; every one of them lives for a single request.
"""
from __future__ import annotations

import json
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ConfigurationError

DEFAULT_BRANCH = "main"
DEFAULT_FOLDER = "images"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_RAW_HOST = "raw.githubusercontent.com"
MAX_OUTPUT_BYTES = 10 * 1024 * 1024

# Shell.Application GetDetailsOf column indices
METADATA_FIELDS: Dict[str, int] = {
    "description": 0,
    "title": 21,
    "comments": 6,
    "tags": 18,
}

FAILURE_MESSAGE = "Failed to process file"


def new_request_id() -> str:
    return uuid.uuid4().hex


class UploadStatus(Enum):
    """Outcome of a successful request."""
    UPLOADED = "uploaded"
    EXISTING = "existing"  # already on the host, nothing written


class DedupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class RelayConfig:
    """Per-request host configuration delivered alongside the upload."""
    token: str
    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    folder: str = DEFAULT_FOLDER

    @classmethod
    def from_payload(cls, payload: Union[str, bytes, Mapping[str, Any], None]) -> "RelayConfig":
        """
        Build config from the client payload.

        Accepts a JSON document or an already decoded mapping. The owner is
        read from the ``username`` key, as clients send it.

        Raises:
            ConfigurationError: payload missing, unparseable or incomplete
        """
        if payload is None or payload == "" or payload == b"":
            raise ConfigurationError("GitHub configuration missing")

        if isinstance(payload, (str, bytes)):
            try:
                data = json.loads(payload)
            except ValueError as exc:
                raise ConfigurationError(f"Invalid GitHub configuration: {exc}") from exc
        else:
            data = payload

        if not isinstance(data, Mapping):
            raise ConfigurationError("Invalid GitHub configuration: expected a JSON object")

        token = data.get("token")
        owner = data.get("username")
        repo = data.get("repo")
        if not token or not owner or not repo:
            raise ConfigurationError("Missing required fields")

        return cls(
            token=str(token),
            owner=str(owner),
            repo=str(repo),
            branch=str(data.get("branch") or DEFAULT_BRANCH),
            folder=str(data.get("folder") or DEFAULT_FOLDER),
        )

    def target_path(self, filename: str) -> str:
        return f"{self.folder}/{filename}"

    def raw_url(self, path: str, raw_host: str = DEFAULT_RAW_HOST) -> str:
        """Content URL for ``path``; the host never returns one, so it is derived."""
        return f"https://{raw_host}/{self.owner}/{self.repo}/{self.branch}/{path}"

    def describe(self) -> Dict[str, str]:
        """Loggable view without the token."""
        return {
            "username": self.owner,
            "repo": self.repo,
            "branch": self.branch,
            "folder": self.folder,
        }


@dataclass(frozen=True)
class UploadRequest:
    """A delivered upload: a local file plus its original name."""
    local_path: Path
    original_filename: str
    config: RelayConfig
    request_id: str = field(default_factory=new_request_id)


@dataclass(frozen=True)
class Metadata:
    """
    Descriptive fields embedded in a file.

    Missing values are empty strings, never missing keys.
    """
    description: str = ""
    title: str = ""
    comments: str = ""
    tags: str = ""

    @classmethod
    def empty(cls) -> "Metadata":
        return cls()

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "Metadata":
        if not data:
            return cls()
        values = {}
        for name in METADATA_FIELDS:
            value = data.get(name)
            values[name] = "" if value is None else str(value)
        return cls(**values)

    def as_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in METADATA_FIELDS}


@dataclass(frozen=True)
class DedupResult:
    """Three-way answer of the pre-write existence check."""
    status: DedupStatus
    content: Any = None
    detail: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status == DedupStatus.FOUND

    @classmethod
    def hit(cls, content: Any) -> "DedupResult":
        return cls(status=DedupStatus.FOUND, content=content)

    @classmethod
    def miss(cls) -> "DedupResult":
        return cls(status=DedupStatus.NOT_FOUND)

    @classmethod
    def error(cls, detail: str) -> "DedupResult":
        return cls(status=DedupStatus.ERROR, detail=detail)


@dataclass(frozen=True)
class CommitResult:
    """What the client gets back for a processed file."""
    filename: str
    local_path: str
    metadata: Metadata
    remote_url: str
    message: str
    status: UploadStatus = UploadStatus.UPLOADED

    def as_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "path": self.local_path,
            "metadata": self.metadata.as_dict(),
            "remoteUrl": self.remote_url,
            "message": self.message,
        }


@dataclass(frozen=True)
class ErrorResponse:
    error: str
    details: str

    def as_dict(self) -> Dict[str, str]:
        return {"error": self.error, "details": self.details}


@dataclass(frozen=True)
class UploadOutcome:
    """Either a result or a failure, never both."""
    result: Optional[CommitResult] = None
    failure: Optional[ErrorResponse] = None

    @property
    def success(self) -> bool:
        return self.result is not None

    @classmethod
    def ok(cls, result: CommitResult) -> "UploadOutcome":
        return cls(result=result)

    @classmethod
    def fail(cls, details: str, error: str = FAILURE_MESSAGE) -> "UploadOutcome":
        return cls(failure=ErrorResponse(error=error, details=details))

    def as_dict(self) -> Dict[str, Any]:
        if self.result is not None:
            return {"results": [self.result.as_dict()]}
        assert self.failure is not None
        return self.failure.as_dict()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    if value.strip().lower() in {"none", "off", "0"}:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


@dataclass(frozen=True)
class RelaySettings:
    """Process-wide settings, shared by every request."""
    api_url: str = DEFAULT_API_URL
    raw_host: str = DEFAULT_RAW_HOST
    http_timeout: float = 30.0
    shell: str = "powershell"
    script_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    staging_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "ghrelay-uploads")
    max_output_bytes: int = MAX_OUTPUT_BYTES
    extraction_timeout: Optional[float] = 60.0
    metadata_required: bool = True
    optimistic_lookup: bool = False  # treat failed lookups as "absent"
    metadata_provider: Optional[str] = None  # "shell" | "exif" | None (auto)

    @classmethod
    def from_env(cls) -> "RelaySettings":
        defaults = cls()
        script_dir = os.getenv("GHRELAY_SCRIPT_DIR")
        staging_dir = os.getenv("GHRELAY_STAGING_DIR")
        return cls(
            api_url=os.getenv("GHRELAY_API_URL") or defaults.api_url,
            raw_host=os.getenv("GHRELAY_RAW_HOST") or defaults.raw_host,
            http_timeout=_env_float("GHRELAY_HTTP_TIMEOUT", defaults.http_timeout) or defaults.http_timeout,
            shell=os.getenv("GHRELAY_SHELL") or defaults.shell,
            script_dir=Path(script_dir) if script_dir else defaults.script_dir,
            staging_dir=Path(staging_dir) if staging_dir else defaults.staging_dir,
            max_output_bytes=_env_int("GHRELAY_MAX_OUTPUT_BYTES", defaults.max_output_bytes),
            extraction_timeout=_env_float("GHRELAY_EXTRACTION_TIMEOUT", defaults.extraction_timeout),
            metadata_required=_env_bool("GHRELAY_METADATA_REQUIRED", defaults.metadata_required),
            optimistic_lookup=_env_bool("GHRELAY_OPTIMISTIC_LOOKUP", defaults.optimistic_lookup),
            metadata_provider=os.getenv("GHRELAY_METADATA_PROVIDER") or None,
        )
