"""
Upload delivery - stage a client file for the relay.

The orchestrator deletes the file it is handed, so the client's original is
copied to a private per-request name first.
"""
from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Optional, Tuple

from ..errors import ConfigurationError
from ..models import new_request_id

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def staged_name(original_filename: str, request_id: str) -> str:
    return f"{request_id}-{sanitize_filename(original_filename)}"


def stage_upload(
    source: Path,
    staging_dir: Path,
    request_id: Optional[str] = None,
) -> Tuple[Path, str]:
    """
    Copy ``source`` into ``staging_dir``.

    Returns:
        (staged path, request id)
    """
    source = Path(source)
    if not source.is_file():
        raise ConfigurationError(f"No file uploaded: {source}")

    request_id = request_id or new_request_id()
    staging_dir = Path(staging_dir)
    try:
        staging_dir.mkdir(parents=True, exist_ok=True)
        target = staging_dir / staged_name(source.name, request_id)
        shutil.copyfile(source, target)
    except OSError as exc:
        raise ConfigurationError(f"Could not stage {source.name}: {exc}") from exc

    logger.debug("Staged %s as %s", source, target)
    return target, request_id
